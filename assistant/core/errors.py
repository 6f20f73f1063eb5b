from __future__ import annotations


class ConversationError(Exception):
    """Base class for errors raised by the conversation core."""


class UpstreamError(ConversationError):
    """The completion service call failed at the transport or service level.

    Fatal to the current turn; the session keeps the user message so the
    turn can be retried.
    """


class InvariantViolation(ConversationError):
    """Programmer error, e.g. operating on a session that was never created."""
