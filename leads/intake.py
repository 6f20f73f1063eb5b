from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LeadSubmission(BaseModel):
    """Contact request posted by the booking widget."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    customer_id: str = Field("unknown", alias="customerId", description="Which business the lead is for")
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    issue: Optional[str] = None
    duration: Optional[str] = None
    pain_level: Optional[Union[int, float, str]] = Field(None, alias="painLevel")
    preferred_week: Optional[str] = Field(None, alias="preferredWeek")
    preferred_time: Optional[str] = Field(None, alias="preferredTime")
    message: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned = dict(values)
        for key, value in values.items():
            if isinstance(value, str) and not value.strip():
                cleaned[key] = None
        if cleaned.get("customerId") is None and cleaned.get("customer_id") is None:
            cleaned.pop("customerId", None)
            cleaned.pop("customer_id", None)
        return cleaned

    @field_validator("pain_level", mode="before")
    @classmethod
    def _coerce_pain_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            stripped = value.strip()
            try:
                return int(stripped)
            except ValueError:
                return stripped
        return value


class Lead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId")
    name: str
    phone: str
    email: Optional[str] = None
    issue: Optional[str] = None
    duration: Optional[str] = None
    pain_level: Optional[Union[int, float, str]] = Field(None, alias="painLevel")
    preferred_week: Optional[str] = Field(None, alias="preferredWeek")
    preferred_time: Optional[str] = Field(None, alias="preferredTime")
    message: Optional[str] = None
    created_at: str = Field(..., alias="createdAt")

    @classmethod
    def from_submission(cls, submission: LeadSubmission, now: Optional[datetime] = None) -> "Lead":
        created = (now or datetime.now(timezone.utc)).isoformat()
        return cls(**submission.model_dump(), created_at=created)

    def as_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


_EMAIL_LABELS = (
    ("customer_id", "Kund"),
    ("name", "Namn"),
    ("phone", "Telefon"),
    ("email", "E-post"),
    ("issue", "Besvär"),
    ("duration", "Hur länge"),
    ("pain_level", "Smärtnivå"),
    ("preferred_week", "Önskad vecka"),
    ("preferred_time", "Önskad tid"),
    ("message", "Meddelande"),
    ("created_at", "Inkommen"),
)


def format_lead_email(lead: Lead) -> Tuple[str, str]:
    """Return (subject, plain-text body) for the lead summary mail."""
    subject = f"Ny förfrågan: {lead.name} ({lead.customer_id})"
    lines = []
    for attr, label in _EMAIL_LABELS:
        value = getattr(lead, attr)
        lines.append(f"{label}: {value if value is not None else '-'}")
    return subject, "\n".join(lines)
