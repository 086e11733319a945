"""
Account use cases: registration, credential check and profile updates.

Why:
    Keeps password hashing and input normalisation out of the web adapter so
    both the HTTP routes and the admin CLI register users the same way.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
import logging
import re

from eduflow.errors import NotFoundError, Result, ValidationError, capture
from eduflow.identity_access.domain import normalize_role, public_user
from eduflow.identity_access.passwords import hash_password, verify_password

logger = logging.getLogger("eduflow.identity_access")

_UNSET = object()
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,64}$")
_MIN_PASSWORD_LENGTH = 8


class UserRepoProtocol(Protocol):
    def create_user(self, *, username: str, password_hash: str, role: str, name: str, avatar: Optional[str] = None) -> dict:
        ...

    def get_user(self, user_id: int) -> Optional[dict]:
        ...

    def get_user_by_username(self, username: str) -> Optional[dict]:
        ...

    def update_user(self, user_id: int, *, name=_UNSET, avatar=_UNSET) -> Optional[dict]:
        ...


def _normalize_username(value: object) -> str:
    if not isinstance(value, str) or not _USERNAME_RE.match(value.strip()):
        raise ValidationError("invalid_username")
    return value.strip()


def _normalize_password(value: object) -> str:
    if not isinstance(value, str) or len(value) < _MIN_PASSWORD_LENGTH:
        raise ValidationError("invalid_password")
    return value


def _normalize_name(value: object) -> str:
    if not isinstance(value, str):
        raise ValidationError("invalid_name")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > 100:
        raise ValidationError("invalid_name")
    return trimmed


def _normalize_avatar(value: object) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("invalid_avatar")
    trimmed = value.strip()
    return trimmed or None


@dataclass
class RegisterInput:
    username: str
    password: str
    role: str
    name: str
    avatar: Optional[str] = None


@dataclass
class UsersService:
    repo: UserRepoProtocol

    def register(self, req: RegisterInput) -> Result[dict]:
        """Create an account and return its public identity.

        Errors:
            validation for malformed username/password/name/role,
            conflict when the username is taken.
        """
        return capture(self._register, req)

    def _register(self, req: RegisterInput) -> dict:
        username = _normalize_username(req.username)
        password = _normalize_password(req.password)
        try:
            role = normalize_role(req.role)
        except ValueError as exc:
            raise ValidationError("invalid_role") from exc
        name = _normalize_name(req.name)
        avatar = _normalize_avatar(req.avatar)
        created = self.repo.create_user(
            username=username,
            password_hash=hash_password(password),
            role=role,
            name=name,
            avatar=avatar,
        )
        logger.info("user registered id=%s role=%s", created["id"], role)
        return public_user(created)

    def authenticate(self, username: str, password: str) -> Optional[dict]:
        """Return the public user for valid credentials, otherwise None."""
        record = self.repo.get_user_by_username((username or "").strip())
        if record is None or not verify_password(password or "", record.get("password_hash") or ""):
            logger.warning("login rejected")
            return None
        return public_user(record)

    def get_profile(self, user_id: int) -> Result[dict]:
        def _load() -> dict:
            record = self.repo.get_user(user_id)
            if record is None:
                raise NotFoundError("User not found")
            return public_user(record)

        return capture(_load)

    def update_profile(self, user_id: int, *, name: object = _UNSET, avatar: object = _UNSET) -> Result[dict]:
        """Update the mutable profile fields (name, avatar) of the caller."""

        def _update() -> dict:
            kwargs = {}
            if name is not _UNSET:
                kwargs["name"] = _normalize_name(name)
            if avatar is not _UNSET:
                kwargs["avatar"] = _normalize_avatar(avatar)
            updated = self.repo.update_user(user_id, **kwargs)
            if updated is None:
                raise NotFoundError("User not found")
            return public_user(updated)

        return capture(_update)


__all__ = ["RegisterInput", "UsersService", "UserRepoProtocol"]
