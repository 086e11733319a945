"""Result values and the error taxonomy."""
from __future__ import annotations

import pytest

from eduflow.errors import (
    ConflictError,
    Err,
    ErrorKind,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    Ok,
    ValidationError,
    capture,
)
from eduflow.web.routes.responses import STATUS_BY_KIND, parse_id


def test_capture_wraps_return_value():
    result = capture(lambda: {"id": 1})
    assert isinstance(result, Ok)
    assert result.ok
    assert result.value == {"id": 1}


@pytest.mark.parametrize(
    "exc,kind",
    [
        (NotFoundError("Course not found"), ErrorKind.NOT_FOUND),
        (ForbiddenError("nope"), ErrorKind.FORBIDDEN),
        (ConflictError("dup"), ErrorKind.CONFLICT),
        (InvalidStateError("draft"), ErrorKind.INVALID_STATE),
        (ValidationError("invalid_title"), ErrorKind.VALIDATION),
    ],
)
def test_capture_folds_domain_errors(exc, kind):
    def boom():
        raise exc

    result = capture(boom)
    assert isinstance(result, Err)
    assert not result.ok
    assert result.kind is kind
    assert result.message == exc.message


def test_capture_propagates_unexpected_errors():
    def boom():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        capture(boom)


def test_domain_errors_subclass_builtin_categories():
    assert isinstance(NotFoundError("x"), LookupError)
    assert isinstance(ForbiddenError("x"), PermissionError)
    assert isinstance(ValidationError("x"), ValueError)


def test_every_kind_has_a_status():
    assert set(STATUS_BY_KIND) == set(ErrorKind)
    assert STATUS_BY_KIND[ErrorKind.INVALID_STATE] == 409
    assert STATUS_BY_KIND[ErrorKind.INTERNAL] == 500


@pytest.mark.parametrize("raw,expected", [("7", 7), ("0", None), ("-1", None), ("x", None), ("", None)])
def test_parse_id(raw, expected):
    assert parse_id(raw) == expected
