"""
Domain error taxonomy and result values shared by Teaching, Learning and Identity.

Why:
    Repositories detect failures deep inside a transaction and raise; use cases
    stop the exception at their boundary and hand a tagged result to the caller
    so the web adapter can map error kinds to status codes without try/except
    ladders.

Design:
    - Each error subclasses the builtin the web layer already understands
      (LookupError -> 404, PermissionError -> 403, ValueError -> 400).
    - `Ok`/`Err` are plain dataclasses; match with `isinstance` or `.ok`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    VALIDATION = "bad_request"
    INTERNAL = "internal_error"


class EduflowError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(EduflowError, LookupError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(EduflowError, PermissionError):
    kind = ErrorKind.FORBIDDEN


class ConflictError(EduflowError):
    kind = ErrorKind.CONFLICT


class InvalidStateError(EduflowError):
    kind = ErrorKind.INVALID_STATE


class ValidationError(EduflowError, ValueError):
    kind = ErrorKind.VALIDATION


class InternalError(EduflowError):
    kind = ErrorKind.INTERNAL


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, exc: EduflowError) -> "Err":
        return cls(kind=exc.kind, message=exc.message)


Result = Union[Ok[T], Err]


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> "Result[T]":
    """Run `fn` and fold domain errors into an `Err`.

    Only `EduflowError` is folded; anything else is a bug or an infrastructure
    failure and keeps propagating so it is logged with its traceback.
    """
    try:
        return Ok(fn(*args, **kwargs))
    except EduflowError as exc:
        return Err.from_error(exc)


__all__ = [
    "ErrorKind",
    "EduflowError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "InvalidStateError",
    "ValidationError",
    "InternalError",
    "Ok",
    "Err",
    "Result",
    "capture",
]
