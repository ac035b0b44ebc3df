"""
Runtime configuration.
Reads mail provider credentials and intake limits from the environment.
"""

import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_FROM_EMAIL = "Royal Post <contact@example.com>"
DEFAULT_MAX_PHOTO_BYTES = 2 * 1024 * 1024  # 2 MB


@dataclass(frozen=True)
class MailSettings:
    """Sender, recipients and provider selection for outbound mail."""

    provider: str
    api_key: str | None
    from_email: str
    recipients: List[str]

    @property
    def is_configured(self) -> bool:
        """True when the selected provider has everything it needs to send."""
        if self.provider == "console":
            return True
        return bool(self.api_key) and bool(self.recipients)


def _split_addresses(value: str) -> List[str]:
    return [a.strip() for a in value.split(",") if a.strip()]


def get_mail_settings() -> MailSettings:
    """
    Build MailSettings from the current environment.

    Read on every call (not cached at import) so tests can patch os.environ.

    Environment variables:
      MAIL_PROVIDER   "resend" (default) or "console"
      RESEND_API_KEY  API key for the Resend provider
      FROM_EMAIL      Sender, e.g. "Royal Post <contact@example.com>"
      CONTACT_EMAIL   Comma-separated recipient list
    """
    return MailSettings(
        provider=os.getenv("MAIL_PROVIDER", "resend").lower().strip(),
        api_key=os.getenv("RESEND_API_KEY") or None,
        from_email=os.getenv("FROM_EMAIL") or DEFAULT_FROM_EMAIL,
        recipients=_split_addresses(os.getenv("CONTACT_EMAIL", "")),
    )


def get_validation_policy_name() -> str:
    """Name of the intake validation policy ("standard" or "strict")."""
    return os.getenv("INTAKE_VALIDATION_POLICY", "standard").lower().strip()


def get_max_photo_bytes() -> int:
    """
    Upper bound on a single photo, in bytes.

    Falls back to 2 MB when MAX_PHOTO_BYTES is unset or not a positive integer.
    """
    raw = os.getenv("MAX_PHOTO_BYTES", "").strip()
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_PHOTO_BYTES
    return value if value > 0 else DEFAULT_MAX_PHOTO_BYTES
