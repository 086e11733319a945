"""
Users API routes: self-service registration and profile updates.

Why:
    Registration is public; everything else acts on the caller only. The
    username and role are immutable after registration.
"""
from __future__ import annotations

from typing import Optional
import asyncio

from fastapi import APIRouter, Request
from pydantic import BaseModel, field_validator

from eduflow.identity_access.users import RegisterInput, UsersService
from eduflow.storage.wiring import get_repos
from eduflow.web.routes.responses import private_error, result_response
from eduflow.web.routes.security import caller_identity, csrf_guard

users_router = APIRouter(tags=["Users"])


class RegisterPayload(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None


class ProfileUpdatePayload(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("avatar")
    @classmethod
    def _strip_empty(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v if v else None
        return v


@users_router.post("/api/users/register")
async def register(request: Request, payload: RegisterPayload):
    """Create a teacher or student account (201); 409 when the username is taken."""
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    req = RegisterInput(
        username=payload.username or "",
        password=payload.password or "",
        role=payload.role or "",
        name=payload.name or "",
        avatar=payload.avatar,
    )
    result = await asyncio.to_thread(UsersService(get_repos().users).register, req)
    return result_response(result, status_code=201)


@users_router.patch("/api/users/me")
async def update_me(request: Request, payload: ProfileUpdatePayload):
    """Update the caller's name and/or avatar."""
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        return private_error("bad_request", status_code=400, detail="empty_update")
    user_id, _ = caller_identity(request)
    service = UsersService(get_repos().users)
    result = await asyncio.to_thread(lambda: service.update_profile(user_id, **fields))
    return result_response(result)
