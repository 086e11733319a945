"""
Configuration and startup security checks for EduFlow.

Why: Student and grade data must not end up in an accidentally insecure
deployment. This module provides a single guard that enforces minimal
production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

from eduflow.storage.config import database_dsn


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("EDUFLOW_ENV", "dev") or "dev").lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - A Postgres DSN must be configured; the in-memory store loses all data.
    - The DSN must not explicitly disable TLS.
    - Sessions must be stored in the database so they survive restarts and
      work across instances.
    """
    if not _is_prod_like(current_environment()):
        return  # dev/test remain permissive

    dsn = database_dsn()
    if not dsn:
        raise SystemExit(
            "Refusing to start: no database configured in production (set EDUFLOW_DATABASE_URL or DATABASE_URL)."
        )
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: database DSN contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
    if (os.getenv("SESSIONS_BACKEND", "memory") or "").strip().lower() != "db":
        raise SystemExit("Refusing to start: SESSIONS_BACKEND=db is mandatory in production/staging.")
