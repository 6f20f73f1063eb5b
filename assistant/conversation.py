from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from assistant.completion import CompletionClient, build_completion_client
from assistant.core.errors import InvariantViolation
from assistant.core.memory import Session, SessionStore
from assistant.core.models import (
    CompletionOutcome,
    MalformedResponse,
    Message,
    ReplyResult,
    Role,
    SessionState,
    WellFormedResponse,
)

if TYPE_CHECKING:
    from config.settings import Settings


logger = logging.getLogger(__name__)


class ConversationManager:
    """Runs chat turns: user message in, one assistant message out.

    Turns on the same session are serialized by the session's lock; turns on
    different sessions interleave freely while awaiting the completion call.
    """

    def __init__(
        self,
        store: SessionStore,
        client: CompletionClient,
        *,
        fallback_reply: str,
    ) -> None:
        self.store = store
        self.client = client
        self.fallback_reply = fallback_reply

    async def handle_chat_turn(self, session_id: str, user_text: str) -> ReplyResult:
        if not session_id or not user_text:
            raise ValueError("session_id and user_text must be non-empty")

        session = self.store.get_or_create(session_id)
        session.pending += 1
        try:
            async with session.lock:
                return await self._run_turn(session, user_text)
        finally:
            session.pending -= 1

    def history(self, session_id: str) -> List[Message]:
        return self.store.history(session_id)

    async def _run_turn(self, session: Session, user_text: str) -> ReplyResult:
        history = self.store.history(session.id)
        if not history or history[0].role is not Role.SYSTEM:
            raise InvariantViolation(f"Session {session.id!r} has no system prompt")

        if session.state is SessionState.AWAITING_ASSISTANT:
            if history[-1].content == user_text:
                logger.info("Retrying unanswered turn: session=%s", session.id)
            else:
                logger.info("Closing unanswered turn with fallback: session=%s", session.id)
                self.store.append(session.id, Message(Role.ASSISTANT, self.fallback_reply))
                self.store.append(session.id, Message(Role.USER, user_text))
        else:
            self.store.append(session.id, Message(Role.USER, user_text))

        messages = self.store.history(session.id)
        logger.info(
            "Completion request: session=%s messages=%s", session.id, len(messages)
        )
        # UpstreamError propagates from here; nothing is appended for this turn.
        outcome = await self.client.complete(messages)

        result = self._resolve_reply(session.id, outcome)
        self.store.append(session.id, Message(Role.ASSISTANT, result.reply))
        return result

    def _resolve_reply(self, session_id: str, outcome: CompletionOutcome) -> ReplyResult:
        if isinstance(outcome, WellFormedResponse):
            return ReplyResult(reply=outcome.text)
        if isinstance(outcome, MalformedResponse):
            logger.warning(
                "Malformed completion for session=%s (%s); using fallback reply",
                session_id,
                outcome.reason,
            )
            return ReplyResult(reply=self.fallback_reply, fallback=True)
        logger.error(
            "Completion client returned %s for session=%s; turn left unanswered",
            type(outcome).__name__,
            session_id,
        )
        raise InvariantViolation(f"Unknown completion outcome: {outcome!r}")


def build_conversation_manager(settings: "Settings") -> ConversationManager:
    store = SessionStore(
        settings.system_prompt,
        max_sessions=settings.session_max_count,
        ttl_seconds=settings.session_ttl_seconds,
    )
    return ConversationManager(
        store,
        build_completion_client(settings),
        fallback_reply=settings.fallback_reply,
    )
