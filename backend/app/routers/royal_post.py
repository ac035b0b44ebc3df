"""
Royal Post intake router.

Endpoints:
  POST ""   — validate an applicant submission, attach photos, email it

Each request runs strictly in order: validate → assemble → dispatch. Nothing
is sent when validation or photo checks fail.

Environment variables
---------------------
INTAKE_VALIDATION_POLICY  "standard" (default) or "strict".
MAX_PHOTO_BYTES           Per-photo limit in bytes (default: 2 MB).
"""

import logging

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from app.config import get_max_photo_bytes
from app.models.submission import SubmissionResponse
from app.routers.common import _error, intake_error, internal_error, read_json_body
from app.services.intake_validator import IntakeError, flatten_submission, validate_submission
from app.services.mail_dispatcher import DispatchError, send_royal_post
from app.services.submission_assembler import FileTooLarge, assemble, parse_data_url

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def submit_royal_post(request: Request) -> SubmissionResponse:
    """
    Accept a Royal Post form submission.

    Body: flat form fields (branchNumber, firstName1 ... dob2,
    showSecondPerson) plus optional photo1 / photo2 data URLs. The nested
    personOne / personTwo / includeSecondPerson shape is accepted too.

    Returns 200 with the provider's message id, 400 with per-field errors,
    or 500 when the email could not be dispatched.
    """
    try:
        body = await read_json_body(request)
        record = validate_submission(body)

        data = flatten_submission(body)
        photo_one = parse_data_url(data.get("photo1"), "photo1")
        photo_two = (
            parse_data_url(data.get("photo2"), "photo2")
            if record.include_second_person
            else None
        )
        payload = assemble(record, photo_one, photo_two, max_bytes=get_max_photo_bytes())

        # The Resend SDK is blocking; keep it off the event loop.
        receipt = await run_in_threadpool(send_royal_post, payload)
    except (IntakeError, FileTooLarge) as e:
        raise intake_error(e)
    except DispatchError as e:
        logger.error(f"Royal Post dispatch failed for branch submission: {e.message}")
        raise _error(500, e.message, e.error_code)
    except Exception as e:
        raise internal_error(e)

    return SubmissionResponse(message="Form submitted successfully", id=receipt.id)
