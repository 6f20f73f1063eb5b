from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", description="Widget-generated conversation id")
    message: str = Field(..., description="User's latest message")

    @field_validator("session_id", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class ChatResponse(BaseModel):
    reply: str


class LeadResponse(BaseModel):
    ok: bool = True
    warning: Optional[str] = None
