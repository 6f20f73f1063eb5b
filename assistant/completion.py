from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, List, Optional, Protocol, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from assistant.core.errors import UpstreamError
from assistant.core.models import (
    CompletionOutcome,
    MalformedResponse,
    Message,
    Role,
    WellFormedResponse,
)

if TYPE_CHECKING:
    from config.settings import Settings


class CompletionClient(Protocol):
    """Boundary to the hosted language-model service.

    ``complete`` raises ``UpstreamError`` when the call itself fails and
    returns a ``MalformedResponse`` when the service answered with something
    unusable.
    """

    async def complete(self, messages: Sequence[Message]) -> CompletionOutcome: ...


_LC_TYPES = {
    Role.SYSTEM: SystemMessage,
    Role.USER: HumanMessage,
    Role.ASSISTANT: AIMessage,
}


def to_lc_messages(history: Sequence[Message]) -> List[BaseMessage]:
    return [_LC_TYPES[item.role](content=item.content) for item in history]


def _content_text(content: Any) -> Optional[str]:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text") or ""))
        return "".join(parts)
    return None


def parse_completion(response: Any) -> CompletionOutcome:
    if not isinstance(response, BaseMessage):
        return MalformedResponse(f"unexpected response type {type(response).__name__}")
    text = _content_text(response.content)
    if text is None:
        return MalformedResponse(
            f"unexpected content type {type(response.content).__name__}"
        )
    if not text.strip():
        return MalformedResponse("empty response content")
    return WellFormedResponse(text)


class LangChainCompletionClient:
    """Runs the session history through a LangChain chat model."""

    def __init__(self, llm: BaseChatModel, *, timeout_seconds: float = 30.0) -> None:
        self.llm = llm
        self.timeout_seconds = timeout_seconds

    async def complete(self, messages: Sequence[Message]) -> CompletionOutcome:
        payload = to_lc_messages(messages)
        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke(payload), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamError(
                f"Completion timed out after {self.timeout_seconds:.1f}s"
            ) from exc
        except Exception as exc:
            raise UpstreamError(f"Completion call failed: {exc}") from exc
        return parse_completion(response)


def build_completion_client(settings: "Settings") -> LangChainCompletionClient:
    if not settings.google_api_key:
        raise RuntimeError(
            "GOOGLE_API_KEY not set. Please configure it in environment or .env"
        )

    llm = ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.temperature,
        top_p=settings.top_p,
        max_retries=settings.max_retries,
    )
    return LangChainCompletionClient(llm, timeout_seconds=settings.completion_timeout_seconds)
