"""
Authentication routes: password login, logout and the current identity.

Notes:
    This module imports `main` inside functions to reuse the shared session
    store and cookie policy; tests replace `main.SESSION_STORE` per case.
"""

from __future__ import annotations

from typing import Optional
import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel

from eduflow.identity_access.users import UsersService
from eduflow.storage.config import session_ttl_seconds
from eduflow.storage.wiring import get_repos
from eduflow.web.routes.responses import json_private, private_error, result_response
from eduflow.web.routes.security import caller_identity, csrf_guard

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("eduflow.web.auth")


class LoginPayload(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


def _main():
    from eduflow.web import main

    return main


@auth_router.post("/api/auth/login")
async def login(request: Request, payload: LoginPayload):
    """Verify credentials and start a server-side session.

    Behavior:
        - 200 with the public user and an opaque, HttpOnly session cookie.
        - 401 `invalid_credentials` for unknown users or wrong passwords (the
          two cases are indistinguishable to the caller).
    """
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not payload.username or not payload.password:
        return private_error("bad_request", status_code=400, detail="missing_credentials")
    service = UsersService(get_repos().users)
    user = await asyncio.to_thread(service.authenticate, payload.username, payload.password)
    if user is None:
        return private_error("unauthenticated", status_code=401, detail="invalid_credentials")
    main = _main()
    sess = main.SESSION_STORE.create(
        user_id=user["id"], name=user["name"], role=user["role"], ttl_seconds=session_ttl_seconds()
    )
    resp = json_private(user)
    resp.set_cookie(key=main.SESSION_COOKIE_NAME, value=sess.session_id, **main.session_cookie_options())
    logger.info("login user=%s", user["id"])
    return resp


@auth_router.post("/api/auth/logout")
async def logout(request: Request):
    """End the current session and expire the cookie (204)."""
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    main = _main()
    sid = getattr(request.state, "session_id", None)
    if sid:
        main.SESSION_STORE.delete(sid)
    resp = Response(status_code=204, headers={"Cache-Control": "private, no-store"})
    opts = main.session_cookie_options()
    resp.delete_cookie(
        main.SESSION_COOKIE_NAME, path=opts["path"], secure=opts["secure"], httponly=True, samesite=opts["samesite"]
    )
    return resp


@auth_router.get("/api/auth/me")
async def me(request: Request):
    """Return the public identity of the authenticated caller."""
    user_id, _ = caller_identity(request)
    result = await asyncio.to_thread(UsersService(get_repos().users).get_profile, user_id)
    return result_response(result)
