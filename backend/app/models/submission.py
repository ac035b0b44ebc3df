"""
Pydantic models for form submissions.

Models:
  FieldError          — one violated rule, keyed by the flat wire field name
  PersonDetails       — one applicant on the Royal Post form
  SubmissionRecord    — validated Royal Post submission
  ContactMessage      — validated contact form submission
  PhotoUpload         — a decoded client photo, raw bytes
  SubmissionResponse  — 200 response body for both endpoints
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel


class FieldError(BaseModel):
    """A single field-level validation failure."""
    field: str
    message: str


# ---------------------------------------------------------------------------
# Royal Post
# ---------------------------------------------------------------------------

class PersonDetails(BaseModel):
    first_name: str
    last_name: str
    phone: str
    date_of_birth: date


class SubmissionRecord(BaseModel):
    """
    A fully validated Royal Post submission.

    person_two is populated only when include_second_person is True; when the
    flag is off, anything the client sent for person two is discarded.
    """
    branch_number: str
    person_one: PersonDetails
    include_second_person: bool = False
    person_two: Optional[PersonDetails] = None


class PhotoUpload(BaseModel):
    """A client-supplied photo, already decoded from its data URL."""

    filename: str
    content_type: str
    content: bytes          # raw bytes; the assembler re-encodes for transport

    @property
    def size(self) -> int:
        return len(self.content)


# ---------------------------------------------------------------------------
# Contact form
# ---------------------------------------------------------------------------

class ContactMessage(BaseModel):
    name: str
    email: str
    message: str
    phone: Optional[str] = None
    subject: Optional[str] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class SubmissionResponse(BaseModel):
    """Returned with HTTP 200 once the provider has accepted the email."""
    message: str
    id: str
