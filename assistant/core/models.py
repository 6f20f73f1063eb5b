"""
Canonical data shapes for the conversation core.

- Message (role, content), immutable once appended.
- SessionState, derived from a session's role sequence.
- CompletionOutcome: WellFormedResponse | MalformedResponse.
- ReplyResult returned to the HTTP layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Union


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class SessionState(str, Enum):
    EMPTY = "empty"
    HAS_SYSTEM_PROMPT = "has_system_prompt"
    AWAITING_ASSISTANT = "awaiting_assistant"

    @classmethod
    def of(cls, history: Sequence[Message]) -> "SessionState":
        if not history:
            return cls.EMPTY
        if history[-1].role is Role.USER:
            return cls.AWAITING_ASSISTANT
        return cls.HAS_SYSTEM_PROMPT


@dataclass(frozen=True)
class WellFormedResponse:
    text: str


@dataclass(frozen=True)
class MalformedResponse:
    """The service answered, but not with a usable message."""

    reason: str


CompletionOutcome = Union[WellFormedResponse, MalformedResponse]


@dataclass(frozen=True)
class ReplyResult:
    reply: str
    fallback: bool = False
