from __future__ import annotations

import asyncio
from typing import List, Sequence

import pytest

from assistant.conversation import ConversationManager
from assistant.core.memory import SessionStore
from assistant.core.models import CompletionOutcome, Message, WellFormedResponse


SYSTEM_PROMPT = "Du är en hjälpsam AI-assistent som svarar kort och tydligt på svenska."
FALLBACK = "Jag kunde inte svara just nu."


class ScriptedCompletionClient:
    """Returns (or raises) the queued outcomes in order, then echoes 'ok'."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[List[Message]] = []

    async def complete(self, messages: Sequence[Message]) -> CompletionOutcome:
        self.calls.append(list(messages))
        # Yield so concurrent turns get a chance to interleave.
        for _ in range(3):
            await asyncio.sleep(0)
        outcome = self.outcomes.pop(0) if self.outcomes else WellFormedResponse("ok")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(SYSTEM_PROMPT)


@pytest.fixture
def make_manager(store):
    def factory(*outcomes) -> ConversationManager:
        return ConversationManager(
            store, ScriptedCompletionClient(*outcomes), fallback_reply=FALLBACK
        )

    return factory
