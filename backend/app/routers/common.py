"""
Helpers shared by the form submission routers.
"""

import logging
from typing import Any, Optional

from fastapi import HTTPException, Request

from app.models.submission import FieldError
from app.services.intake_validator import IntakeError, MalformedInputError
from app.services.submission_assembler import FileTooLarge

logger = logging.getLogger(__name__)


def _error(
    status_code: int,
    message: str,
    error_code: str,
    fields: Optional[list[FieldError]] = None,
) -> HTTPException:
    """Build an HTTPException with a structured detail payload."""
    detail: dict[str, Any] = {"detail": message, "error_code": error_code}
    if fields is not None:
        detail["fields"] = [f.model_dump() for f in fields]
    return HTTPException(status_code=status_code, detail=detail)


def intake_error(exc: IntakeError | FileTooLarge) -> HTTPException:
    """400 for validation, malformed input and oversized photos alike."""
    if isinstance(exc, FileTooLarge):
        return _error(400, exc.message, exc.error_code, [FieldError(field=exc.field, message=exc.message)])
    return _error(400, exc.message, exc.error_code, exc.fields)


def internal_error(exc: Exception) -> HTTPException:
    logger.exception(f"Unexpected error while handling submission: {exc}")
    return _error(500, "Internal server error", "internal_error")


async def read_json_body(request: Request) -> Any:
    """
    Parse the request body as JSON.

    Raises MalformedInputError when the body is empty or not valid JSON.
    """
    try:
        return await request.json()
    except ValueError:
        raise MalformedInputError("Request body is not valid JSON")
