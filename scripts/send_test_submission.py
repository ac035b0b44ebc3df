#!/usr/bin/env python3
"""
Dev helper: send a test Royal Post or contact submission to the local backend.

Builds a valid form body, optionally attaches real image files (or a tiny
generated PNG), and POST-s it to /api/royal-post or /api/contact.

Usage
-----
# Basic: single applicant, generated photo, targeting localhost:8000
python scripts/send_test_submission.py

# Include a second applicant
python scripts/send_test_submission.py --second-person

# Attach real photos
python scripts/send_test_submission.py --photo1 id1.jpg --photo2 id2.png --second-person

# Send a contact form message instead
python scripts/send_test_submission.py --form contact

# Print the body without sending it
python scripts/send_test_submission.py --dry-run

Run the backend with MAIL_PROVIDER=console to exercise the full pipeline
without sending a real email.
"""

import argparse
import base64
import json
import mimetypes
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv

# 1x1 transparent PNG
_SAMPLE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


# ---------------------------------------------------------------------------
# Body builders
# ---------------------------------------------------------------------------

def _data_url(content: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode()}"


def _load_photo(path: str | None) -> str:
    """Return a data URL for the file at path, or the sample PNG when omitted."""
    if not path:
        return _data_url(_SAMPLE_PNG, "image/png")
    file_path = Path(path)
    content_type = mimetypes.guess_type(file_path.name)[0] or "image/jpeg"
    return _data_url(file_path.read_bytes(), content_type)


def _build_royal_post_body(args: argparse.Namespace) -> dict:
    body = {
        "branchNumber": args.branch,
        "firstName1": "John",
        "lastName1": "Doe",
        "phone1": "03001234567",
        "dob1": "1990-01-01",
        "showSecondPerson": args.second_person,
        "photo1": _load_photo(args.photo1),
    }
    if args.second_person:
        body.update({
            "firstName2": "Jane",
            "lastName2": "Doe",
            "phone2": "03007654321",
            "dob2": "1992-05-05",
            "photo2": _load_photo(args.photo2),
        })
    return body


def _build_contact_body(args: argparse.Namespace) -> dict:
    return {
        "name": "Jane Doe",
        "email": "jane.doe@example.org",
        "subject": "Test contact message",
        "message": "This is a test message sent by scripts/send_test_submission.py.",
    }


_FORMS = {
    "royal-post": ("/api/royal-post", _build_royal_post_body),
    "contact": ("/api/contact", _build_contact_body),
}


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _redact_photos(body: dict) -> dict:
    display = dict(body)
    for key in ("photo1", "photo2"):
        if key in display:
            display[key] = "<data URL, %d chars>" % len(display[key])
    return display


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description="Send a test form submission to the Royal Post Intake API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_submission.py
              python scripts/send_test_submission.py --second-person
              python scripts/send_test_submission.py --form contact
              python scripts/send_test_submission.py --url http://localhost:8001
        """),
    )
    parser.add_argument("--url", default="http://localhost:8000",
                        help="Backend base URL (default: http://localhost:8000)")
    parser.add_argument("--form", default="royal-post", choices=list(_FORMS),
                        help="Which form to submit (default: royal-post)")
    parser.add_argument("--branch", default="100", help="Branch number (default: 100)")
    parser.add_argument("--second-person", action="store_true",
                        help="Include a second applicant")
    parser.add_argument("--photo1", metavar="PATH", help="Image for person one")
    parser.add_argument("--photo2", metavar="PATH", help="Image for person two")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print the body JSON without sending it.")
    args = parser.parse_args()

    path, builder = _FORMS[args.form]
    try:
        body = builder(args)
    except OSError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    endpoint = f"{args.url.rstrip('/')}{path}"
    print(f"Form      : {args.form}")
    print(f"Endpoint  : {endpoint}")

    if args.dry_run:
        print("\n[DRY RUN] Body:")
        print(json.dumps(_redact_photos(body), indent=2))
        return 0

    try:
        response = httpx.post(endpoint, json=body, timeout=30.0)
    except httpx.HTTPError as exc:
        print(f"\n[FAIL] {exc}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
