"EduFlow API"
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from eduflow.identity_access.stores import SessionStore
from eduflow.storage.bootstrap import ensure_schema_from_env
from eduflow.storage.config import session_ttl_seconds
from eduflow.web import config as _cfg
from eduflow.web.auth_utils import cookie_opts


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via EDUFLOW_ENABLE_DOTENV (default true outside pytest).
    """
    if _under_pytest():
        return False
    flag = (os.getenv("EDUFLOW_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return _cfg.current_environment()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("eduflow.identity_access")
SETTINGS = AuthSettings()
SESSION_COOKIE_NAME = "eduflow_session"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    ensure_schema_from_env()
    yield


app = FastAPI(title="EduFlow", description="Role-based learning management API", version="0.1.0", lifespan=lifespan)

if (not _under_pytest()) and os.getenv("SESSIONS_BACKEND", "memory").lower() == "db":
    from eduflow.identity_access.stores_db import DBSessionStore

    SESSION_STORE = DBSessionStore()
else:
    SESSION_STORE = SessionStore()

from eduflow.web.routes.auth import auth_router  # noqa: E402
from eduflow.web.routes.dashboard import dashboard_router  # noqa: E402
from eduflow.web.routes.learning import learning_router  # noqa: E402
from eduflow.web.routes.responses import private_error  # noqa: E402
from eduflow.web.routes.teaching import teaching_router  # noqa: E402
from eduflow.web.routes.users import users_router  # noqa: E402

# --- Auth Helpers & Middleware --------------------------------------------------

PUBLIC_PATHS = frozenset({"/health", "/api/auth/login", "/api/users/register"})


def session_cookie_options() -> dict:
    return cookie_opts(SETTINGS.environment, session_ttl_seconds())


def _is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or not path.startswith("/api/")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = None
    if sid:
        try:
            rec = SESSION_STORE.get(sid)
        except Exception as exc:
            logger.warning("Session store get failed: %s", exc.__class__.__name__)

    if not rec:
        headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)

    # Expose minimal, read-only user context for downstream handlers.
    request.state.user = {"id": int(rec.user_id), "name": rec.name, "role": rec.role}
    request.state.session_id = rec.session_id
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Request validation ------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    """Answer wrongly typed or malformed bodies with 400 and a field code instead of 422."""
    detail = "malformed_body"
    for error in exc.errors():
        loc = error.get("loc") or ()
        if len(loc) >= 2 and loc[0] == "body" and isinstance(loc[1], str):
            detail = f"invalid_{loc[1]}"
            break
    logger.info("request body rejected path=%s detail=%s", request.url.path, detail)
    return private_error("bad_request", status_code=400, detail=detail)


# --- Routers --------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(teaching_router)
app.include_router(learning_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
