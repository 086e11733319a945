"""
Database-backed SessionStore for production use (Postgres).

Why: In-memory sessions are not durable and do not scale across instances. This
store persists sessions in Postgres while keeping the cookie opaque.

Security:
- Only the opaque `session_id` is set in the cookie; all user context stays server-side.
- The table name is validated and composed with `psycopg.sql.Identifier`.

Note: Enabled via `SESSIONS_BACKEND=db`. Tests continue to use the in-memory store.
"""
from __future__ import annotations

from typing import Optional
import re
import time

import psycopg
from psycopg import sql

from eduflow.identity_access.stores import SessionRecord
from eduflow.storage.config import require_dsn


def _now() -> int:
    return int(time.time())


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Defaults to the shared EduFlow DSN.
    table:
        Fully qualified table name. Defaults to `public.app_sessions`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        self._dsn = require_dsn(dsn)
        # Validate table identifier early
        if not re.match(r'^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$', table or ''):
            raise ValueError("Invalid table name")
        self._table = table

    def _table_ident(self) -> sql.Composable:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return sql.Identifier(schema, name)

    def create(self, *, user_id: int, name: str, role: str, ttl_seconds: int = 3600) -> SessionRecord:
        expires_at = _now() + ttl_seconds
        stmt = sql.SQL(
            "insert into {} (session_id, user_id, name, role, expires_at) "
            "values (gen_random_uuid()::text, %s, %s, %s, to_timestamp(%s)) returning session_id"
        ).format(self._table_ident())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (int(user_id), name, role, expires_at))
                row = cur.fetchone()
        sid = str(row[0]) if row else ""
        return SessionRecord(session_id=sid, user_id=int(user_id), name=name, role=role, expires_at=expires_at)

    def get(self, session_id: str) -> Optional[SessionRecord]:
        stmt = sql.SQL(
            "select session_id, user_id, name, role, extract(epoch from expires_at)::bigint "
            "from {} where session_id = %s and expires_at > now()"
        ).format(self._table_ident())
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (session_id,))
                row = cur.fetchone()
        if not row:
            return None
        return SessionRecord(
            session_id=row[0],
            user_id=int(row[1]),
            name=row[2],
            role=row[3],
            expires_at=int(row[4]) if row[4] is not None else None,
        )

    def delete(self, session_id: str) -> None:
        stmt = sql.SQL("delete from {} where session_id = %s").format(self._table_ident())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (session_id,))
