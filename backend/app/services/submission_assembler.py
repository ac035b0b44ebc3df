"""
Submission assembler service.

Turns a validated SubmissionRecord plus up to two photos into the flat
TransportPayload handed to the mail dispatcher. No network calls happen here.

Photos arrive from the browser as data URLs (data:image/jpeg;base64,...).
They are decoded to raw bytes, size-checked against the 2 MB limit, and
re-encoded as data URLs so the dispatcher never receives raw binary.

Public API:
  parse_data_url(value, field)                      -> PhotoUpload
  encode_data_url(photo)                            -> str
  decode_data_url(text)                             -> (content_type, bytes)
  assemble(record, photo_one, photo_two, max_bytes) -> TransportPayload
"""

import base64
import binascii
import logging
import re
from typing import Optional

from app.config import DEFAULT_MAX_PHOTO_BYTES
from app.models.submission import PhotoUpload, SubmissionRecord
from app.services.intake_validator import MalformedInputError

logger = logging.getLogger(__name__)

# Flat field name → string value, including encoded photo1 / photo2
TransportPayload = dict[str, str]

_DATA_URL_PATTERN = re.compile(
    r"^data:(?P<content_type>[\w.+\-]+/[\w.+\-]+)(?:;[\w\-]+=[\w\-]+)*;base64,(?P<payload>.*)$",
    re.DOTALL,
)

# image MIME subtype → attachment file extension
_EXTENSIONS = {
    "jpeg": "jpg",
    "jpg": "jpg",
    "pjpeg": "jpg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
    "heic": "heic",
    "heif": "heif",
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class FileTooLarge(Exception):
    """Raised when a photo exceeds the size limit; nothing has been encoded yet."""
    def __init__(self, field: str, size: int, limit: int):
        limit_mb = limit / (1024 * 1024)
        message = f"File too large. Must be {limit_mb:g}MB or smaller."
        super().__init__(message)
        self.error_code = "file_too_large"
        self.message = message
        self.field = field
        self.size = size
        self.limit = limit


# ---------------------------------------------------------------------------
# Data URL transforms
# ---------------------------------------------------------------------------

def photo_filename(person: int, content_type: str) -> str:
    """person1-photo.jpg, person2-photo.png, ... (unknown subtypes fall back to jpg)."""
    subtype = content_type.split("/", 1)[-1].lower()
    return f"person{person}-photo.{_EXTENSIONS.get(subtype, 'jpg')}"


def decode_data_url(text: str) -> tuple[str, bytes]:
    """
    Split a base64 data URL into (content_type, raw bytes).

    Raises ValueError when the text is not a base64 data URL or the payload
    is not valid base64.
    """
    m = _DATA_URL_PATTERN.match(text.strip())
    if not m:
        raise ValueError("not a base64 data URL")
    payload = re.sub(r"\s+", "", m.group("payload"))
    try:
        content = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc
    return m.group("content_type").lower(), content


def encode_data_url(photo: PhotoUpload) -> str:
    """Self-describing text form of a photo: format marker plus base64 payload."""
    encoded = base64.b64encode(photo.content).decode("ascii")
    return f"data:{photo.content_type};base64,{encoded}"


def parse_data_url(value: object, field: str) -> Optional[PhotoUpload]:
    """
    Decode a client photo field into a PhotoUpload.

    Empty / missing values mean "no photo" and return None.

    Raises:
        MalformedInputError: value is not a base64 image data URL
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedInputError("Photo must be a data URL string", field=field)
    try:
        content_type, content = decode_data_url(value)
    except ValueError as exc:
        logger.info("Rejected %s: %s", field, exc)
        raise MalformedInputError("Photo could not be decoded", field=field)
    if not content_type.startswith("image/"):
        raise MalformedInputError("Photo must be an image", field=field)

    person = 2 if field.endswith("2") else 1
    return PhotoUpload(
        filename=photo_filename(person, content_type),
        content_type=content_type,
        content=content,
    )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def _check_size(photo: PhotoUpload, field: str, max_bytes: int) -> None:
    if photo.size > max_bytes:
        logger.info("Rejected %s: %d bytes exceeds %d", field, photo.size, max_bytes)
        raise FileTooLarge(field, photo.size, max_bytes)


def assemble(
    record: SubmissionRecord,
    photo_one: Optional[PhotoUpload] = None,
    photo_two: Optional[PhotoUpload] = None,
    max_bytes: int = DEFAULT_MAX_PHOTO_BYTES,
) -> TransportPayload:
    """
    Build the transport payload for a validated submission.

    photo_two is ignored (never size-checked or encoded) when the record
    excludes person two, so the payload can never carry photo2 in that case.

    Raises:
        FileTooLarge: a photo exceeds max_bytes (checked before any encoding)
    """
    if not record.include_second_person:
        photo_two = None

    # Size checks first so an oversized second photo wastes no encoding work.
    if photo_one is not None:
        _check_size(photo_one, "photo1", max_bytes)
    if photo_two is not None:
        _check_size(photo_two, "photo2", max_bytes)

    one = record.person_one
    payload: TransportPayload = {
        "branchNumber": record.branch_number,
        "firstName1": one.first_name,
        "lastName1": one.last_name,
        "phone1": one.phone,
        "dob1": one.date_of_birth.isoformat(),
        "showSecondPerson": "true" if record.include_second_person else "false",
    }

    if record.include_second_person and record.person_two is not None:
        two = record.person_two
        payload.update({
            "firstName2": two.first_name,
            "lastName2": two.last_name,
            "phone2": two.phone,
            "dob2": two.date_of_birth.isoformat(),
        })

    if photo_one is not None:
        payload["photo1"] = encode_data_url(photo_one)
    if photo_two is not None:
        payload["photo2"] = encode_data_url(photo_two)

    return payload
