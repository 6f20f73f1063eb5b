import asyncio

import pytest
from langchain_core.messages import AIMessage

from assistant.completion import LangChainCompletionClient
from assistant.conversation import ConversationManager
from assistant.core.errors import InvariantViolation, UpstreamError
from assistant.core.models import MalformedResponse, Role, SessionState, WellFormedResponse

from .conftest import FALLBACK, SYSTEM_PROMPT


def roles(manager, session_id):
    return [m.role for m in manager.history(session_id)]


def test_first_turn_returns_reply_and_seeds_prompt(make_manager):
    manager = make_manager(WellFormedResponse("Hej! Hur kan jag hjälpa dig?"))

    result = asyncio.run(manager.handle_chat_turn("s1", "Hej"))

    history = manager.history("s1")
    assert result.reply == "Hej! Hur kan jag hjälpa dig?"
    assert result.fallback is False
    assert len(history) == 3
    assert history[0].role is Role.SYSTEM
    assert history[0].content == SYSTEM_PROMPT


def test_full_history_is_sent_in_order(make_manager):
    manager = make_manager(WellFormedResponse("Svar 1"), WellFormedResponse("Svar 2"))

    async def run():
        await manager.handle_chat_turn("s1", "Fråga 1")
        await manager.handle_chat_turn("s1", "Fråga 2")

    asyncio.run(run())

    sent = manager.client.calls[1]
    assert [(m.role, m.content) for m in sent] == [
        (Role.SYSTEM, SYSTEM_PROMPT),
        (Role.USER, "Fråga 1"),
        (Role.ASSISTANT, "Svar 1"),
        (Role.USER, "Fråga 2"),
    ]


def test_n_turns_alternate_roles(make_manager):
    manager = make_manager()

    async def run():
        for i in range(4):
            await manager.handle_chat_turn("s1", f"meddelande {i}")

    asyncio.run(run())

    assert len(manager.history("s1")) == 1 + 2 * 4
    assert roles(manager, "s1") == [Role.SYSTEM] + [Role.USER, Role.ASSISTANT] * 4


def test_malformed_response_commits_fallback(make_manager):
    manager = make_manager(MalformedResponse("empty response content"))

    result = asyncio.run(manager.handle_chat_turn("s1", "Hej"))

    history = manager.history("s1")
    assert result.reply == FALLBACK
    assert result.fallback is True
    assert len(history) == 3
    assert history[-1].role is Role.ASSISTANT
    assert history[-1].content == FALLBACK


def test_upstream_error_keeps_only_user_message(make_manager):
    manager = make_manager(UpstreamError("boom"))

    with pytest.raises(UpstreamError):
        asyncio.run(manager.handle_chat_turn("s1", "Hej"))

    assert roles(manager, "s1") == [Role.SYSTEM, Role.USER]
    assert manager.store.get("s1").state is SessionState.AWAITING_ASSISTANT


def test_timeout_scenario(store):
    class ScriptedModel:
        def __init__(self) -> None:
            self.calls = 0

        async def ainvoke(self, messages):
            self.calls += 1
            if self.calls == 1:
                return AIMessage(content="Hej! Hur kan jag hjälpa dig?")
            await asyncio.sleep(5)
            return AIMessage(content="för sent")

    client = LangChainCompletionClient(ScriptedModel(), timeout_seconds=0.05)
    manager = ConversationManager(store, client, fallback_reply=FALLBACK)

    result = asyncio.run(manager.handle_chat_turn("s1", "Hej"))
    assert result.reply == "Hej! Hur kan jag hjälpa dig?"
    assert len(manager.history("s1")) == 3

    with pytest.raises(UpstreamError):
        asyncio.run(manager.handle_chat_turn("s1", "Jag har ont i ryggen"))

    history = manager.history("s1")
    assert len(history) == 4
    assert history[-1].role is Role.USER
    assert history[-1].content == "Jag har ont i ryggen"


def test_retry_after_failure_does_not_duplicate_user_message(make_manager):
    manager = make_manager(UpstreamError("timeout"), WellFormedResponse("Vad tråkigt!"))

    with pytest.raises(UpstreamError):
        asyncio.run(manager.handle_chat_turn("s1", "Jag har ont i ryggen"))
    result = asyncio.run(manager.handle_chat_turn("s1", "Jag har ont i ryggen"))

    assert result.reply == "Vad tråkigt!"
    assert roles(manager, "s1") == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert manager.client.calls[0] == manager.client.calls[1]


def test_new_message_after_failure_closes_abandoned_turn(make_manager):
    manager = make_manager(UpstreamError("timeout"), WellFormedResponse("Absolut."))

    with pytest.raises(UpstreamError):
        asyncio.run(manager.handle_chat_turn("s1", "Första"))
    asyncio.run(manager.handle_chat_turn("s1", "Andra"))

    history = manager.history("s1")
    assert [(m.role, m.content) for m in history[1:]] == [
        (Role.USER, "Första"),
        (Role.ASSISTANT, FALLBACK),
        (Role.USER, "Andra"),
        (Role.ASSISTANT, "Absolut."),
    ]


def test_concurrent_turns_on_same_session_are_serialized(make_manager):
    manager = make_manager(WellFormedResponse("svar A"), WellFormedResponse("svar B"))

    async def run():
        await asyncio.gather(
            manager.handle_chat_turn("s1", "A"),
            manager.handle_chat_turn("s1", "B"),
        )

    asyncio.run(run())

    assert roles(manager, "s1") == [
        Role.SYSTEM,
        Role.USER,
        Role.ASSISTANT,
        Role.USER,
        Role.ASSISTANT,
    ]
    for sent in manager.client.calls:
        assert sent[-1].role is Role.USER
        assert sent[-2].role is not Role.USER


def test_distinct_sessions_do_not_block_each_other(make_manager):
    manager = make_manager()
    order = []

    class GatedClient:
        def __init__(self) -> None:
            self.release = asyncio.Event()

        async def complete(self, messages):
            text = messages[-1].content
            order.append(f"start {text}")
            if text == "slow":
                await self.release.wait()
            else:
                self.release.set()
            order.append(f"end {text}")
            return WellFormedResponse(text.upper())

    manager.client = GatedClient()

    async def run():
        return await asyncio.gather(
            manager.handle_chat_turn("s1", "slow"),
            manager.handle_chat_turn("s2", "fast"),
        )

    results = asyncio.run(run())

    assert [r.reply for r in results] == ["SLOW", "FAST"]
    assert order == ["start slow", "start fast", "end fast", "end slow"]


def test_blank_input_is_rejected(make_manager):
    manager = make_manager()

    with pytest.raises(ValueError):
        asyncio.run(manager.handle_chat_turn("", "Hej"))
    with pytest.raises(ValueError):
        asyncio.run(manager.handle_chat_turn("s1", ""))
    assert "s1" not in manager.store


def test_unknown_outcome_is_logged_and_raised(make_manager, caplog):
    manager = make_manager("not an outcome")

    with caplog.at_level("ERROR", logger="assistant.conversation"):
        with pytest.raises(InvariantViolation):
            asyncio.run(manager.handle_chat_turn("s1", "Hej"))

    assert any("turn left unanswered" in message for message in caplog.messages)
    assert roles(manager, "s1") == [Role.SYSTEM, Role.USER]
