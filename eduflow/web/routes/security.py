"""
Shared web security helpers for the API routers.

Contains the CSRF same-origin check used by every write endpoint. Keeping a
single implementation avoids security drift between Teaching, Learning and
Identity adapters.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse
import os

from fastapi import Request
from fastapi.responses import JSONResponse

from eduflow.web.routes.responses import private_error


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port if p.port is not None else _default_port(scheme))


def _server_origin(request: Request) -> tuple[str, str, int]:
    """Return the origin the server is reachable under.

    Only trusts X-Forwarded-* when EDUFLOW_TRUST_PROXY=true.
    """
    trust_proxy = (os.getenv("EDUFLOW_TRUST_PROXY", "false") or "").lower() == "true"
    if trust_proxy:
        proto = (request.headers.get("x-forwarded-proto") or request.url.scheme or "http").split(",")[0].strip().lower()
        host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
        if host:
            return _parse_origin(f"{proto}://{host}")
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow, so non-browser clients keep working.
    """
    indicator = request.headers.get("origin") or request.headers.get("referer")
    if not indicator:
        return True
    try:
        return _parse_origin(indicator) == _server_origin(request)
    except ValueError:
        return False


def _strict_csrf() -> bool:
    prod_env = (os.getenv("EDUFLOW_ENV", "dev") or "").lower() in {"prod", "production", "stage", "staging"}
    strict_toggle = (os.getenv("STRICT_CSRF", "false") or "").lower() == "true"
    return prod_env or strict_toggle


def csrf_guard(request: Request) -> Optional[JSONResponse]:
    """Enforce same-origin for browser write requests.

    In production or with STRICT_CSRF=true an Origin or Referer header is
    mandatory; otherwise requests without either header are let through.
    Violations yield 403 with detail=csrf_violation.
    """
    if _strict_csrf() and not (request.headers.get("origin") or request.headers.get("referer")):
        return private_error("forbidden", status_code=403, detail="csrf_violation")
    if not _is_same_origin(request):
        return private_error("forbidden", status_code=403, detail="csrf_violation")
    return None


def caller_identity(request: Request) -> tuple[int, str]:
    """Return (user_id, role) set by the auth middleware."""
    user = getattr(request.state, "user", None) or {}
    return int(user.get("id") or 0), str(user.get("role") or "")
