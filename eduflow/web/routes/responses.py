"""
Shared JSON response helpers for the API routers.

Every API response carries `Cache-Control: private, no-store`: payloads are
user- and role-scoped and must not land in shared caches.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse

from eduflow.errors import Err, ErrorKind, Result

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INTERNAL: 500,
}


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def private_error(error: str, *, status_code: int, detail: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if detail is not None:
        body["detail"] = detail
    return json_private(body, status_code=status_code)


def error_response(err: Err) -> JSONResponse:
    return private_error(err.kind.value, status_code=STATUS_BY_KIND[err.kind], detail=err.message)


def result_response(result: Result, *, status_code: int = 200) -> JSONResponse:
    """Map a use case result to JSON: the value on success, an error body otherwise."""
    if isinstance(result, Err):
        return error_response(result)
    return json_private(result.value, status_code=status_code)


def parse_id(value: str) -> Optional[int]:
    """Return a positive integer id, or None for anything else (mapped to 400 by callers)."""
    try:
        parsed = int(str(value))
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def invalid_id() -> JSONResponse:
    return private_error("bad_request", status_code=400, detail="invalid_id")
