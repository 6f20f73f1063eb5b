from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import httpx

from leads.intake import Lead, format_lead_email

if TYPE_CHECKING:
    from config.settings import Settings


logger = logging.getLogger(__name__)


class LeadDeliveryError(RuntimeError):
    """The email service did not accept the lead summary."""


class LeadMailer:
    """Sends lead summaries through the Resend email API.

    Without an API key the mailer is disabled; callers still accept the lead
    and report a warning instead of failing.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_url: str,
        sender: str,
        recipients: Sequence[str],
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.sender = sender
        self.recipients: List[str] = list(recipients)
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, lead: Lead) -> Dict[str, Any]:
        subject, text = format_lead_email(lead)
        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": self.recipients,
            "subject": subject,
            "text": text,
        }
        if lead.email:
            payload["reply_to"] = lead.email
        return payload

    def send(self, lead: Lead) -> Dict[str, Any]:
        if not self.enabled:
            raise LeadDeliveryError("RESEND_API_KEY not configured")
        if not self.recipients:
            raise LeadDeliveryError("LEAD_EMAIL_TO not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.api_url, json=self.build_payload(lead), headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise LeadDeliveryError(f"Lead email delivery failed: {exc}") from exc
        except ValueError as exc:
            raise LeadDeliveryError(f"Lead email service returned invalid JSON: {exc}") from exc

        logger.info("Lead email sent: customer=%s id=%s", lead.customer_id, data.get("id"))
        return data


def build_lead_mailer(settings: "Settings") -> LeadMailer:
    return LeadMailer(
        settings.resend_api_key,
        api_url=settings.resend_api_url,
        sender=settings.lead_email_from,
        recipients=settings.lead_email_to,
    )
