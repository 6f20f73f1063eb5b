from .completion import CompletionClient, LangChainCompletionClient, build_completion_client
from .conversation import ConversationManager, build_conversation_manager
from .core.errors import ConversationError, InvariantViolation, UpstreamError
from .core.memory import Session, SessionStore

__all__ = [
    "CompletionClient",
    "ConversationError",
    "ConversationManager",
    "InvariantViolation",
    "LangChainCompletionClient",
    "Session",
    "SessionStore",
    "UpstreamError",
    "build_completion_client",
    "build_conversation_manager",
]
