"""
Mail dispatcher service.

Renders submissions into provider-agnostic OutboundEmail models and hands
them to the configured mail provider. Exactly one provider call is made per
submission; failures are reported as DispatchError and never retried.

Supported providers (MAIL_PROVIDER):
  - resend   (default) — delivers through the Resend Python SDK
  - console  — logs the email and returns a synthetic id (local development)

Adding a new provider:
  1. Write a send_via_<provider>(email, settings) -> DispatchReceipt function.
  2. Register it in _SENDERS.
  3. Set MAIL_PROVIDER=<provider> in the environment.

Resend request field assumptions
--------------------------------
resend.Emails.send() takes a dict with snake_case keys:

  from          str        — sender, e.g. "Royal Post <contact@example.com>"
  to            list[str]  — recipient addresses
  subject       str
  html          str
  reply_to      str        — optional
  attachments   list       — each item has:
                               filename  str — attachment name
                               content   str — base64-encoded file bytes

If Resend changes their schema, only send_via_resend needs updating.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

import resend

from app.config import MailSettings, get_mail_settings
from app.models.outbound_email import DispatchReceipt, OutboundAttachment, OutboundEmail
from app.models.submission import ContactMessage
from app.services.email_renderer import (
    contact_subject,
    render_contact_html,
    render_royal_post_html,
    royal_post_subject,
)
from app.services.submission_assembler import (
    TransportPayload,
    photo_filename,
)

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Raised when the mail provider does not accept the email."""
    def __init__(self, message: str, error_code: str = "dispatch_failed"):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


# ---------------------------------------------------------------------------
# Email builders
# ---------------------------------------------------------------------------

def _photo_attachments(payload: TransportPayload) -> list[OutboundAttachment]:
    """Turn the encoded photo1 / photo2 payload fields into base64 attachments."""
    attachments: list[OutboundAttachment] = []
    for person in (1, 2):
        data_url = payload.get(f"photo{person}")
        if not data_url:
            continue
        content_type, _, encoded = data_url.partition(";base64,")
        content_type = content_type.removeprefix("data:")
        attachments.append(
            OutboundAttachment(
                filename=photo_filename(person, content_type),
                content=encoded,
                content_type=content_type,
            )
        )
    return attachments


def build_royal_post_email(
    payload: TransportPayload,
    settings: MailSettings,
    submitted_at: Optional[datetime] = None,
) -> OutboundEmail:
    return OutboundEmail(
        sender=settings.from_email,
        recipients=settings.recipients,
        subject=royal_post_subject(payload),
        html=render_royal_post_html(payload, submitted_at),
        attachments=_photo_attachments(payload),
    )


def build_contact_email(
    message: ContactMessage,
    settings: MailSettings,
    submitted_at: Optional[datetime] = None,
) -> OutboundEmail:
    """Contact emails set reply_to so staff can answer the sender directly."""
    return OutboundEmail(
        sender=settings.from_email,
        recipients=settings.recipients,
        subject=contact_subject(message),
        html=render_contact_html(message, submitted_at),
        reply_to=message.email,
    )


# ---------------------------------------------------------------------------
# Provider senders
# ---------------------------------------------------------------------------

def send_via_resend(email: OutboundEmail, settings: MailSettings) -> DispatchReceipt:
    """
    Deliver an OutboundEmail through Resend.

    Raises DispatchError for missing configuration, provider errors, network
    failures and timeouts alike; the provider's message is kept when present.
    """
    if not settings.api_key:
        raise DispatchError("RESEND_API_KEY is not configured")
    if not email.recipients:
        raise DispatchError("CONTACT_EMAIL is not configured")

    params: dict = {
        "from": email.sender,
        "to": email.recipients,
        "subject": email.subject,
        "html": email.html,
    }
    if email.reply_to:
        params["reply_to"] = email.reply_to
    if email.attachments:
        params["attachments"] = [
            {"filename": a.filename, "content": a.content}
            for a in email.attachments
        ]

    resend.api_key = settings.api_key
    try:
        response = resend.Emails.send(params)
    except Exception as e:
        logger.error(f"Resend send failed: {e}")
        raise DispatchError(str(e) or "Failed to send email") from e

    message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    if not message_id:
        logger.error("Resend response carried no message id")
        raise DispatchError("Mail provider returned no message id")

    return DispatchReceipt(id=message_id, provider="resend")


def send_via_console(email: OutboundEmail, settings: MailSettings) -> DispatchReceipt:
    """Log the email instead of sending it."""
    message_id = f"console-{uuid.uuid4().hex}"
    logger.info(
        "[DRY RUN] Email %s to=%s subject=%r attachments=%s",
        message_id,
        email.recipients,
        email.subject,
        [a.filename for a in email.attachments],
    )
    return DispatchReceipt(id=message_id, provider="console")


# ---------------------------------------------------------------------------
# Registry and dispatcher
# ---------------------------------------------------------------------------

_SENDERS: dict[str, Callable[[OutboundEmail, MailSettings], DispatchReceipt]] = {
    "resend": send_via_resend,
    "console": send_via_console,
}


def send_email(email: OutboundEmail, settings: MailSettings | None = None) -> DispatchReceipt:
    """
    Route an email to the provider named by settings.provider (MAIL_PROVIDER).

    Raises DispatchError for unknown providers and for any send failure.
    """
    settings = settings or get_mail_settings()

    sender = _SENDERS.get(settings.provider)
    if sender is None:
        raise DispatchError(
            f"Unknown mail provider {settings.provider!r}. "
            f"Supported providers: {sorted(_SENDERS)}"
        )

    receipt = sender(email, settings)
    logger.info(f"Email accepted by {receipt.provider}: id={receipt.id}")
    return receipt


def send_royal_post(payload: TransportPayload, settings: MailSettings | None = None) -> DispatchReceipt:
    """Render and deliver one Royal Post submission."""
    settings = settings or get_mail_settings()
    return send_email(build_royal_post_email(payload, settings), settings)


def send_contact(message: ContactMessage, settings: MailSettings | None = None) -> DispatchReceipt:
    """Render and deliver one contact form message."""
    settings = settings or get_mail_settings()
    return send_email(build_contact_email(message, settings), settings)
