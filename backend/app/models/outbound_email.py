"""
Provider-agnostic outbound email model.

These models represent a rendered email before provider-specific fields are
applied. The routers and renderer work exclusively with these models; only
the dispatcher's provider senders know about the Resend request format.
"""

from typing import Optional
from pydantic import BaseModel


class OutboundAttachment(BaseModel):
    """A single file attachment, base64 text ready for transport."""

    filename: str
    content: str            # base64 text, no data-URL prefix
    content_type: str


class OutboundEmail(BaseModel):
    """
    Rendered outbound email, provider-agnostic.

    recipients is a list because CONTACT_EMAIL may name several inboxes.
    """

    sender: str
    recipients: list[str]
    subject: str
    html: str
    reply_to: Optional[str] = None
    attachments: list[OutboundAttachment] = []


class DispatchReceipt(BaseModel):
    """Provider acknowledgement of an accepted email."""

    id: str
    provider: str
