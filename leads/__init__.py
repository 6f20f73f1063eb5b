from .intake import Lead, LeadSubmission, format_lead_email
from .mailer import LeadDeliveryError, LeadMailer, build_lead_mailer

__all__ = [
    "Lead",
    "LeadDeliveryError",
    "LeadMailer",
    "LeadSubmission",
    "build_lead_mailer",
    "format_lead_email",
]
