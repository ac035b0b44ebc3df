"""
Email body renderer.

Builds the HTML bodies and subject lines for outbound notification emails.
Output depends only on the payload and the submitted_at timestamp, so the
same submission always renders the same body.

Photos are referenced by presence ("Photo ID 1 attached"); their content
travels as attachments and is never inlined in the visible body.

Public API:
  royal_post_subject(payload)                  -> str
  render_royal_post_html(payload, submitted_at) -> str
  contact_subject(message)                      -> str
  render_contact_html(message, submitted_at)    -> str
"""

from datetime import datetime, timezone
from html import escape
from typing import Optional

from app.models.submission import ContactMessage

# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

_WRAPPER_STYLE = "font-family: Arial, sans-serif; color: #333; max-width: 800px; margin: 0 auto;"
_HEADER_STYLE = (
    "background: linear-gradient(to right, #cc1b08, #b70505); padding: 20px; "
    "color: white; border-radius: 10px 10px 0 0;"
)
_BODY_STYLE = "background: #f8f9fa; padding: 20px; border-radius: 0 0 10px 10px;"
_FOOTER_STYLE = "color: #475569; font-size: 14px;"
_RULE = '<hr style="margin: 20px 0;" />'

# (payload key suffix, label) per person section, in display order
_PERSON_FIELDS = [
    ("firstName", "First Name"),
    ("lastName", "Last Name"),
    ("phone", "Phone"),
    ("dob", "Date of Birth"),
]

DEFAULT_CONTACT_SUBJECT = "New contact form submission"


def _row(label: str, value: str) -> str:
    return f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>"


def _timestamp(submitted_at: Optional[datetime]) -> str:
    submitted_at = submitted_at or datetime.now(timezone.utc)
    return submitted_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _document(title: str, subtitle: str, sections: list[str], submitted_at: Optional[datetime]) -> str:
    return (
        f'<div style="{_WRAPPER_STYLE}">'
        f'<div style="{_HEADER_STYLE}">'
        f'<h2 style="margin: 0;">{escape(title)}</h2>'
        f'<p style="margin-top: 5px;">{escape(subtitle)}</p>'
        "</div>"
        f'<div style="{_BODY_STYLE}">'
        + _RULE.join(sections)
        + _RULE
        + f'<p style="{_FOOTER_STYLE}">Submitted on: {escape(_timestamp(submitted_at))}</p>'
        "</div>"
        "</div>"
    )


# ---------------------------------------------------------------------------
# Royal Post
# ---------------------------------------------------------------------------

def royal_post_subject(payload: dict[str, str]) -> str:
    return f"New Royal Post Form - Branch {payload.get('branchNumber', '')}"


def _person_section(payload: dict[str, str], person: int) -> str:
    rows = [f"<h3>Person {person}</h3>"]
    for suffix, label in _PERSON_FIELDS:
        value = payload.get(f"{suffix}{person}")
        if value:
            rows.append(_row(label, value))
    if payload.get(f"photo{person}"):
        rows.append(f"<p>Photo ID {person} attached</p>")
    return "".join(rows)


def render_royal_post_html(payload: dict[str, str], submitted_at: Optional[datetime] = None) -> str:
    """
    Render the Royal Post notification body.

    The person two section is included only when showSecondPerson is "true".
    """
    sections = [_person_section(payload, 1)]
    if payload.get("showSecondPerson") == "true":
        sections.append(_person_section(payload, 2))
    return _document(
        "Royal Post Form Submission",
        f"Branch Number: {payload.get('branchNumber', '')}",
        sections,
        submitted_at,
    )


# ---------------------------------------------------------------------------
# Contact form
# ---------------------------------------------------------------------------

def contact_subject(message: ContactMessage) -> str:
    return message.subject or DEFAULT_CONTACT_SUBJECT


def render_contact_html(message: ContactMessage, submitted_at: Optional[datetime] = None) -> str:
    rows = [_row("Name", message.name), _row("Email", message.email)]
    if message.phone:
        rows.append(_row("Phone", message.phone))
    if message.subject:
        rows.append(_row("Subject", message.subject))
    # Preserve the sender's line breaks in the visible body
    body = escape(message.message).replace("\n", "<br />")
    rows.append(f"<p><strong>Message:</strong></p><p>{body}</p>")
    return _document("Contact Form Submission", f"From: {message.name}", ["".join(rows)], submitted_at)
