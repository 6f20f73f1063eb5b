from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

from assistant.core.prompt import FALLBACK_REPLY, SYSTEM_PROMPT


load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    port: int = int(os.getenv("PORT", "3000"))

    # Completion service
    google_api_key: Optional[str] = os.getenv("GOOGLE_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
    top_p: float = float(os.getenv("MODEL_TOP_P", "0.9"))
    max_retries: int = int(os.getenv("MODEL_MAX_RETRIES", "2"))
    completion_timeout_seconds: float = float(os.getenv("COMPLETION_TIMEOUT_SECONDS", "30"))

    # Conversation behaviour
    system_prompt: str = os.getenv("SYSTEM_PROMPT", SYSTEM_PROMPT)
    fallback_reply: str = os.getenv("FALLBACK_REPLY", FALLBACK_REPLY)
    session_max_count: int = int(os.getenv("SESSION_MAX_COUNT", "1000"))
    session_ttl_seconds: float = float(os.getenv("SESSION_TTL_SECONDS", "3600"))

    # Lead mail delivery
    resend_api_key: Optional[str] = os.getenv("RESEND_API_KEY")
    resend_api_url: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    lead_email_from: str = os.getenv("LEAD_EMAIL_FROM", "Bokning <onboarding@resend.dev>")
    lead_email_to: List[str] = _split_csv(os.getenv("LEAD_EMAIL_TO", ""))

    # HTTP surface
    cors_allow_origins: List[str] = _split_csv(os.getenv("CORS_ALLOW_ORIGINS", "*"))
    static_dir: Optional[str] = os.getenv("STATIC_DIR")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
