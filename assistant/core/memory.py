"""In-process conversation memory.

Sessions live for the lifetime of the process (no persistence). The store is
created once at startup and handed to the ConversationManager; it is bounded
by an idle TTL and a maximum session count so it cannot grow without limit.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Iterator, List

from .errors import InvariantViolation
from .models import Message, Role, SessionState


@dataclass
class Session:
    id: str
    history: List[Message] = field(default_factory=list)
    last_accessed: float = 0.0
    # Serializes turns for this session; `pending` counts turns holding or
    # waiting for the lock so eviction can skip busy sessions.
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)
    pending: int = field(default=0, repr=False, compare=False)

    @property
    def state(self) -> SessionState:
        return SessionState.of(self.history)

    @property
    def busy(self) -> bool:
        return self.pending > 0 or self.lock.locked()


class SessionStore:
    def __init__(
        self,
        system_prompt: str,
        *,
        max_sessions: int = 1000,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.system_prompt = system_prompt
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # Ordered by recency of access, oldest first.
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()

    def get_or_create(self, session_id: str) -> Session:
        now = self._clock()
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(
                id=session_id,
                history=[Message(role=Role.SYSTEM, content=self.system_prompt)],
            )
            self._sessions[session_id] = session
        self._touch(session, now)
        self._evict(now, keep=session_id)
        return session

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise InvariantViolation(f"Session {session_id!r} was never created")
        return session

    def append(self, session_id: str, message: Message) -> None:
        session = self.get(session_id)
        session.history.append(message)
        self._touch(session, self._clock())

    def history(self, session_id: str) -> List[Message]:
        return list(self.get(session_id).history)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))

    def _touch(self, session: Session, now: float) -> None:
        session.last_accessed = now
        self._sessions.move_to_end(session.id)

    def _evict(self, now: float, keep: str) -> None:
        expired = [
            sid
            for sid, s in self._sessions.items()
            if sid != keep and not s.busy and now - s.last_accessed > self.ttl_seconds
        ]
        for sid in expired:
            del self._sessions[sid]

        overflow = len(self._sessions) - self.max_sessions
        if overflow <= 0:
            return
        # Least recently used first; busy sessions are kept even if that
        # leaves the store temporarily above its bound.
        idle = [sid for sid, s in self._sessions.items() if sid != keep and not s.busy]
        for sid in idle[:overflow]:
            del self._sessions[sid]
