"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between tools and web layer.
- Keep the public user shape in one place so no adapter leaks credentials.
"""

from __future__ import annotations

from typing import Any, Mapping

from eduflow.errors import ForbiddenError

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "teacher"})

PUBLIC_USER_FIELDS = ("id", "username", "role", "name", "avatar")


def normalize_role(value: object) -> str:
    """Return the lower-cased role or raise ValueError for unknown roles."""
    if not isinstance(value, str):
        raise ValueError("invalid_role")
    role = value.strip().lower()
    if role not in ALLOWED_ROLES:
        raise ValueError("invalid_role")
    return role


def require_role(role: object, expected: str, message: str) -> None:
    """Raise ForbiddenError unless the caller acts in the `expected` role."""
    if role != expected:
        raise ForbiddenError(message)


def public_user(record: Mapping[str, Any] | None) -> dict | None:
    """Strip everything but the public identity fields (never the password hash)."""
    if record is None:
        return None
    return {key: record.get(key) for key in PUBLIC_USER_FIELDS}


__all__ = ["ALLOWED_ROLES", "PUBLIC_USER_FIELDS", "normalize_role", "public_user", "require_role"]
