"""
Contact form router.

Endpoints:
  POST ""   — validate a contact message and email it to CONTACT_EMAIL
"""

import logging

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from app.models.submission import SubmissionResponse
from app.routers.common import _error, intake_error, internal_error, read_json_body
from app.services.intake_validator import IntakeError, validate_contact
from app.services.mail_dispatcher import DispatchError, send_contact

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def submit_contact(request: Request) -> SubmissionResponse:
    """Body: name, email, message, and optional phone / subject."""
    try:
        body = await read_json_body(request)
        message = validate_contact(body)
        receipt = await run_in_threadpool(send_contact, message)
    except IntakeError as e:
        raise intake_error(e)
    except DispatchError as e:
        logger.error(f"Contact dispatch failed: {e.message}")
        raise _error(500, e.message, e.error_code)
    except Exception as e:
        raise internal_error(e)

    return SubmissionResponse(message="Email sent successfully", id=receipt.id)
