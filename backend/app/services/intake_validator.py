"""
Intake validator service.

Validates raw JSON bodies for the Royal Post and contact forms and turns them
into typed records. Validation never stops at the first failure: every
applicable rule runs and every violation is collected as a FieldError.

Royal Post rules run in two phases:
  1. ALWAYS rules      — branch number and person one, applied unconditionally
  2. SECOND_PERSON     — the same person rules for person two, applied only
                         when showSecondPerson / includeSecondPerson is true

Two policies are available (INTAKE_VALIDATION_POLICY):
  standard  — (default) every required field must be non-empty
  strict    — names are letters only, 2-50 chars; phones are 11-15 digits

Public API:
  collect_errors(raw, today, policy)       -> list[FieldError]
  validate_submission(raw, today, policy)  -> SubmissionRecord
  validate_contact(raw)                    -> ContactMessage
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from app.config import get_validation_policy_name
from app.models.submission import (
    ContactMessage,
    FieldError,
    PersonDetails,
    SubmissionRecord,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class IntakeError(Exception):
    """Base class for request-level intake failures that map to HTTP 400."""
    def __init__(self, message: str, error_code: str, fields: list[FieldError] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.fields = fields or []


class IntakeValidationError(IntakeError):
    """Raised when one or more field rules are violated."""
    def __init__(self, fields: list[FieldError]):
        super().__init__("Invalid form data", "validation_failed", fields)


class MalformedInputError(IntakeError):
    """Raised when the body (or an embedded photo) is not usable structured data."""
    def __init__(self, message: str, field: str = "body"):
        super().__init__(message, "malformed_input", [FieldError(field=field, message=message)])


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

# A check receives the stripped string value and the validator's "today" and
# returns an error message, or None when the value passes.
Check = Callable[[str, date], Optional[str]]


@dataclass(frozen=True)
class FieldRule:
    field: str
    check: Check
    skip_empty: bool = True     # empty values are left to the required rule
    blocking: bool = False      # a failure suppresses later rules on the same field


def required(field: str, label: str) -> FieldRule:
    return FieldRule(
        field=field,
        check=lambda value, _today: None if value else f"{label} is required",
        skip_empty=False,
        blocking=True,
    )


def matches(field: str, pattern: str, message: str) -> FieldRule:
    compiled = re.compile(pattern)
    return FieldRule(
        field=field,
        check=lambda value, _today: None if compiled.fullmatch(value) else message,
    )


def length_between(field: str, label: str, low: int, high: int) -> FieldRule:
    message = f"{label} must be {low}-{high} characters"
    return FieldRule(
        field=field,
        check=lambda value, _today: None if low <= len(value) <= high else message,
    )


def max_length(field: str, label: str, high: int) -> FieldRule:
    message = f"{label} must be at most {high} characters"
    return FieldRule(
        field=field,
        check=lambda value, _today: None if len(value) <= high else message,
    )


def parse_calendar_date(value: str) -> Optional[date]:
    """
    Parse an ISO date, or an ISO datetime truncated to its date part.

    Returns None when the value is not a real calendar date (e.g. 2023-02-30).
    """
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def not_in_future(field: str, label: str) -> FieldRule:
    def check(value: str, today: date) -> Optional[str]:
        parsed = parse_calendar_date(value)
        if parsed is None:
            return f"{label} must be a valid date (YYYY-MM-DD)"
        if parsed > today:
            return f"{label} must not be in the future"
        return None

    return FieldRule(field=field, check=check)


def email_address(field: str) -> FieldRule:
    adapter = TypeAdapter(EmailStr)

    def check(value: str, _today: date) -> Optional[str]:
        try:
            adapter.validate_python(value)
        except ValidationError:
            return "Email address is invalid"
        return None

    return FieldRule(field=field, check=check)


# ---------------------------------------------------------------------------
# Policies and rule sets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationPolicy:
    name: str
    alphabetic_names: bool = False
    digit_phones: bool = False


POLICIES: dict[str, ValidationPolicy] = {
    "standard": ValidationPolicy(name="standard"),
    "strict": ValidationPolicy(name="strict", alphabetic_names=True, digit_phones=True),
}

_NAME_PATTERN = r"[A-Za-z][A-Za-z '\-]*"
_PHONE_PATTERN = r"\d{11,15}"


def get_policy(name: str | None = None) -> ValidationPolicy:
    """
    Resolve a policy by name, falling back to INTAKE_VALIDATION_POLICY.

    Raises ValueError for unknown policy names.
    """
    resolved = (name or get_validation_policy_name()).lower().strip()
    policy = POLICIES.get(resolved)
    if policy is None:
        raise ValueError(
            f"Unknown validation policy {resolved!r}. "
            f"Supported policies: {sorted(POLICIES)}"
        )
    return policy


def person_rules(index: int, policy: ValidationPolicy) -> list[FieldRule]:
    """Rules for one person; field names carry the person index (firstName1...)."""
    first, last = f"firstName{index}", f"lastName{index}"
    phone, dob = f"phone{index}", f"dob{index}"

    rules = [required(first, "First name"), required(last, "Last name")]
    if policy.alphabetic_names:
        for field, label in ((first, "First name"), (last, "Last name")):
            rules.append(matches(field, _NAME_PATTERN, f"{label} must contain letters only"))
            rules.append(length_between(field, label, 2, 50))

    rules.append(required(phone, "Phone number"))
    if policy.digit_phones:
        rules.append(matches(phone, _PHONE_PATTERN, "Phone number must be 11-15 digits"))

    rules.append(required(dob, "Date of birth"))
    rules.append(not_in_future(dob, "Date of birth"))
    return rules


def always_rules(policy: ValidationPolicy) -> list[FieldRule]:
    return [required("branchNumber", "Branch number")] + person_rules(1, policy)


def second_person_rules(policy: ValidationPolicy) -> list[FieldRule]:
    return person_rules(2, policy)


CONTACT_RULES: list[FieldRule] = [
    required("name", "Name"),
    required("email", "Email"),
    email_address("email"),
    required("message", "Message"),
    max_length("message", "Message", 5000),
]


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------

_NOT_TEXT = object()


def _text_value(value: Any) -> Any:
    """Strip strings; finite numbers become strings; anything else is _NOT_TEXT."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and not math.isfinite(value):
        return _NOT_TEXT
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return _NOT_TEXT


def apply_rules(data: dict, rules: list[FieldRule], today: date) -> list[FieldError]:
    """Evaluate every rule against data and return the violations in rule order."""
    errors: list[FieldError] = []
    blocked: set[str] = set()

    for rule in rules:
        if rule.field in blocked:
            continue
        value = _text_value(data.get(rule.field))
        if value is _NOT_TEXT:
            errors.append(FieldError(field=rule.field, message="Must be text"))
            blocked.add(rule.field)
            continue
        if not value and rule.skip_empty:
            continue
        message = rule.check(value, today)
        if message:
            errors.append(FieldError(field=rule.field, message=message))
            if rule.blocking:
                blocked.add(rule.field)

    return errors


# ---------------------------------------------------------------------------
# Royal Post
# ---------------------------------------------------------------------------

# personOne / personTwo keys → flat suffix-less wire keys
_NESTED_KEYS = {
    "firstName": "firstName",
    "lastName": "lastName",
    "phoneNumber": "phone",
    "phone": "phone",
    "dateOfBirth": "dob",
    "dob": "dob",
    "photo": "photo",
}


def flatten_submission(raw: Any) -> dict:
    """
    Return the flat wire form of a Royal Post body.

    The browser form posts flat keys (firstName1, dob2, showSecondPerson).
    Nested bodies ({"personOne": {...}, "includeSecondPerson": true}) are
    flattened so both shapes share one rule set. Flat keys win when both
    are present.
    """
    if not isinstance(raw, dict):
        raise MalformedInputError("Request body must be a JSON object")

    data = dict(raw)
    for index, key in ((1, "personOne"), (2, "personTwo")):
        person = data.pop(key, None)
        if person is None:
            continue
        if not isinstance(person, dict):
            raise MalformedInputError(f"{key} must be an object", field=key)
        for nested, flat in _NESTED_KEYS.items():
            if nested in person:
                data.setdefault(f"{flat}{index}", person[nested])

    if "includeSecondPerson" in data:
        data.setdefault("showSecondPerson", data.pop("includeSecondPerson"))
    return data


def _second_person_flag(data: dict) -> tuple[bool, list[FieldError]]:
    value = data.get("showSecondPerson")
    if value is None:
        return False, []
    if isinstance(value, bool):
        return value, []
    return False, [FieldError(field="showSecondPerson", message="Must be true or false")]


def collect_errors(
    raw: Any,
    today: date | None = None,
    policy: ValidationPolicy | str | None = None,
) -> list[FieldError]:
    """
    Return every rule violation for a Royal Post body (empty list when valid).

    Pure apart from reading the clock when today is not given.
    """
    data = flatten_submission(raw)
    today = today or date.today()
    if not isinstance(policy, ValidationPolicy):
        policy = get_policy(policy)

    include_second, errors = _second_person_flag(data)
    errors = apply_rules(data, always_rules(policy), today) + errors
    if include_second:
        errors += apply_rules(data, second_person_rules(policy), today)
    return errors


def _person(data: dict, index: int) -> PersonDetails:
    return PersonDetails(
        first_name=_text_value(data.get(f"firstName{index}")),
        last_name=_text_value(data.get(f"lastName{index}")),
        phone=_text_value(data.get(f"phone{index}")),
        date_of_birth=parse_calendar_date(_text_value(data.get(f"dob{index}"))),
    )


def validate_submission(
    raw: Any,
    today: date | None = None,
    policy: ValidationPolicy | str | None = None,
) -> SubmissionRecord:
    """
    Validate a Royal Post body and build the SubmissionRecord.

    Raises:
        MalformedInputError: body is not a JSON object
        IntakeValidationError: one or more field rules failed
    """
    errors = collect_errors(raw, today=today, policy=policy)
    if errors:
        logger.info(
            "Royal Post submission rejected: %s",
            ", ".join(e.field for e in errors),
        )
        raise IntakeValidationError(errors)

    data = flatten_submission(raw)
    include_second = data.get("showSecondPerson") is True
    return SubmissionRecord(
        branch_number=_text_value(data.get("branchNumber")),
        person_one=_person(data, 1),
        include_second_person=include_second,
        person_two=_person(data, 2) if include_second else None,
    )


# ---------------------------------------------------------------------------
# Contact form
# ---------------------------------------------------------------------------

def validate_contact(raw: Any) -> ContactMessage:
    """
    Validate a contact form body.

    Raises:
        MalformedInputError: body is not a JSON object
        IntakeValidationError: one or more field rules failed
    """
    if not isinstance(raw, dict):
        raise MalformedInputError("Request body must be a JSON object")

    errors = apply_rules(raw, CONTACT_RULES, date.today())
    for optional_field in ("phone", "subject"):
        if _text_value(raw.get(optional_field)) is _NOT_TEXT:
            errors.append(FieldError(field=optional_field, message="Must be text"))
    if errors:
        logger.info("Contact submission rejected: %s", ", ".join(e.field for e in errors))
        raise IntakeValidationError(errors)

    return ContactMessage(
        name=_text_value(raw.get("name")),
        email=_text_value(raw.get("email")),
        message=_text_value(raw.get("message")),
        phone=_text_value(raw.get("phone")) or None,
        subject=_text_value(raw.get("subject")) or None,
    )
