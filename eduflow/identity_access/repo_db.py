"""Postgres-backed user repository for the Identity context."""
from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import errors as pg_errors

from eduflow.errors import ConflictError
from eduflow.storage.config import require_dsn

_UNSET = object()

_USER_COLUMNS = "id, username, password_hash, role, name, avatar"


def _row_to_user(row) -> dict:
    return {
        "id": int(row[0]),
        "username": row[1],
        "password_hash": row[2],
        "role": row[3],
        "name": row[4],
        "avatar": row[5],
    }


class DBUserRepo:
    """User persistence. Returned rows include `password_hash`; adapters strip it."""

    def __init__(self, dsn: Optional[str] = None) -> None:
        self._dsn = require_dsn(dsn)

    def create_user(
        self,
        *,
        username: str,
        password_hash: str,
        role: str,
        name: str,
        avatar: Optional[str] = None,
    ) -> dict:
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        insert into public.users (username, password_hash, role, name, avatar)
                        values (%s, %s, %s, %s, %s)
                        returning {_USER_COLUMNS}
                        """,
                        (username, password_hash, role, name, avatar),
                    )
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as exc:
            raise ConflictError("Username already exists") from exc
        return _row_to_user(row)

    def get_user(self, user_id: int) -> Optional[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_USER_COLUMNS} from public.users where id = %s", (int(user_id),))
                row = cur.fetchone()
        return _row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_USER_COLUMNS} from public.users where username = %s", (username,))
                row = cur.fetchone()
        return _row_to_user(row) if row else None

    def update_user(self, user_id: int, *, name=_UNSET, avatar=_UNSET) -> Optional[dict]:
        sets: list[str] = []
        params: list = []
        if name is not _UNSET:
            sets.append("name = %s")
            params.append(name)
        if avatar is not _UNSET:
            sets.append("avatar = %s")
            params.append(avatar)
        if not sets:
            return self.get_user(user_id)
        params.append(int(user_id))
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"update public.users set {', '.join(sets)} where id = %s returning {_USER_COLUMNS}",
                    params,
                )
                row = cur.fetchone()
            conn.commit()
        return _row_to_user(row) if row else None
