"""Input normalisers shared by the Teaching services.

Each function returns the cleaned value or raises `ValidationError` with a
short machine-readable code (e.g. ``invalid_title``).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Collection, Optional

from eduflow.errors import ValidationError

COURSE_STATUSES = frozenset({"draft", "active", "archived"})
CONTENT_TYPES = frozenset({"lesson", "resource", "video", "document"})


def normalize_title(value: object) -> str:
    if not isinstance(value, str):
        raise ValidationError("invalid_title")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > 200:
        raise ValidationError("invalid_title")
    return trimmed


def optional_text(value: object, code: str) -> Optional[str]:
    """Strip text; empty strings collapse to None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(code)
    trimmed = value.strip()
    return trimmed or None


def choice(value: object, allowed: Collection[str], code: str) -> str:
    if not isinstance(value, str) or value.strip().lower() not in allowed:
        raise ValidationError(code)
    return value.strip().lower()


def parse_due_date(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp with offset and normalise it to UTC seconds."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError("invalid_due_date") from exc
    else:
        raise ValidationError("invalid_due_date")
    if parsed.tzinfo is None:
        raise ValidationError("invalid_due_date")
    return parsed.astimezone(timezone.utc).replace(microsecond=0)


def non_negative_int(value: object, code: str, *, minimum: int = 0, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(code)
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(code) from exc
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(code)
    if number < minimum or (maximum is not None and number > maximum):
        raise ValidationError(code)
    return number
