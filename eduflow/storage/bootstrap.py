"""
Database schema bootstrap.

Intent:
    Create the EduFlow tables on an empty database (dev/stage friendly).

Safety:
    - Controlled by `AUTO_CREATE_SCHEMA=true` when called at app startup.
    - Idempotent: every statement in `schema.sql` uses `if not exists`.

Usage:
    `ensure_schema_from_env()` at startup, or `eduflow-admin init-db`.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional
import logging

import psycopg

from eduflow.storage.config import auto_create_schema, database_dsn, require_dsn

_log = logging.getLogger("eduflow.storage")

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def schema_sql() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


def apply_schema(dsn: Optional[str] = None) -> None:
    """Apply the bundled schema in a single transaction."""
    resolved = require_dsn(dsn)
    with psycopg.connect(resolved) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql())
        conn.commit()
    _log.info("schema applied from %s", SCHEMA_PATH.name)


def ensure_schema_from_env() -> bool:
    """Apply the schema when AUTO_CREATE_SCHEMA=true and a DSN is configured.

    Returns True when the schema was applied, False when the flag is off or no
    database is configured.
    """
    if not auto_create_schema():
        return False
    if not database_dsn():
        _log.warning("AUTO_CREATE_SCHEMA=true but no database configured; skipping")
        return False
    _log.warning("AUTO_CREATE_SCHEMA=true detected (dev/test convenience only). Disable this flag in prod.")
    apply_schema()
    return True


__all__ = ["apply_schema", "ensure_schema_from_env", "schema_sql", "SCHEMA_PATH"]
