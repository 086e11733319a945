"""
Central database configuration for all EduFlow repositories.

Why:
    Teaching, Learning and Identity share one Postgres database. Resolving the
    DSN in one place keeps the precedence rules identical across contexts and
    lets tests flip every repository to the in-memory store by unsetting a
    single variable.
"""
from __future__ import annotations

import os
from typing import Optional


def database_dsn() -> Optional[str]:
    """Return the configured Postgres DSN or None when none is set.

    Order of precedence (first non-empty wins):
      1) EDUFLOW_DATABASE_URL (service-specific override)
      2) DATABASE_URL (platform default)
    """
    for name in ("EDUFLOW_DATABASE_URL", "DATABASE_URL"):
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def require_dsn(dsn: Optional[str] = None) -> str:
    resolved = dsn or database_dsn()
    if not resolved:
        raise RuntimeError("Database DSN unavailable (set EDUFLOW_DATABASE_URL or DATABASE_URL)")
    return resolved


def session_ttl_seconds() -> int:
    raw = (os.getenv("SESSION_TTL_SECONDS") or "").strip()
    try:
        value = int(raw)
    except ValueError:
        value = 3600
    return max(60, min(value, 7 * 24 * 60 * 60))


def auto_create_schema() -> bool:
    return (os.getenv("AUTO_CREATE_SCHEMA", "false") or "").strip().lower() == "true"
