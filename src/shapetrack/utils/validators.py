"""Input validation helpers.

ID conventions:
- student_id: external registration code, 1-20 chars of letters, digits,
  "-" or "_" (e.g. "STU001"). Stored exactly as given.
- shape: lowercase name from the configured shape list.
- date: calendar date as "YYYY-MM-DD".

All helpers raise shapetrack.errors.ValidationError with a message that
can be shown to the caller as-is.
"""

from __future__ import annotations

import re
from datetime import date

from shapetrack.errors import ValidationError

STUDENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,20}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")

MAX_SESSIONS_LIMIT = 500


def validate_email(email: str | None) -> bool:
    """Validate email format. Empty or missing is valid (optional field)."""
    if not email:
        return True
    return bool(EMAIL_PATTERN.match(email))


def require_text(value: str | None, field_name: str) -> str:
    """Return value stripped, or raise if it is missing or blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def validate_student_id(student_id: str | None) -> str:
    """Check a student_id against STUDENT_ID_PATTERN.

    Returns:
        The stripped student_id
    """
    value = require_text(student_id, "studentId")
    if not STUDENT_ID_PATTERN.match(value):
        raise ValidationError(
            "studentId must be 1-20 characters of letters, digits, '-' or '_'"
        )
    return value


def normalize_shape(shape: str | None, allowed: list[str]) -> str:
    """Lowercase a shape name and check it is one of the configured shapes."""
    value = require_text(shape, "shape").lower()
    if value not in allowed:
        raise ValidationError(
            f"Unknown shape '{value}'. Expected one of: {', '.join(allowed)}"
        )
    return value


def parse_date(value: str) -> str:
    """Validate a YYYY-MM-DD date string and return it normalized."""
    try:
        return date.fromisoformat(value.strip()).isoformat()
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from None


def clamp_limit(limit: int | None, default: int) -> int:
    """Clamp a list limit into 1..MAX_SESSIONS_LIMIT, using default when unset."""
    if limit is None or limit <= 0:
        return default
    return min(limit, MAX_SESSIONS_LIMIT)
