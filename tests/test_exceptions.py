"""Tests for the registry exception hierarchy."""

from bluecarbon.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidAmount,
    InvalidTransitionError,
    NotFoundError,
    RegistryError,
    TransientIOError,
    ValidationError,
    is_retryable,
)


def test_error_codes_are_derived_from_class_names():
    assert NotFoundError("x").error_code == "NOT_FOUND"
    assert InvalidTransitionError("x").error_code == "INVALID_TRANSITION"
    assert InvalidAmount("x").error_code == "INVALID_AMOUNT"
    assert TransientIOError("x").error_code == "TRANSIENT_IO"
    assert ValidationError("x", error_code="CUSTOM").error_code == "CUSTOM"


def test_status_codes():
    assert ValidationError("x").status_code == 422
    assert InvalidAmount("x").status_code == 422
    assert AuthorizationError("x").status_code == 403
    assert AuthenticationError("x").status_code == 401
    assert NotFoundError("x").status_code == 404
    assert ConflictError("x").status_code == 409
    assert TransientIOError("x").status_code == 503


def test_hierarchy():
    assert issubclass(InvalidAmount, ValidationError)
    assert issubclass(InvalidTransitionError, ValidationError)
    assert issubclass(AuthenticationError, AuthorizationError)
    assert all(
        issubclass(cls, RegistryError)
        for cls in (ValidationError, AuthorizationError, NotFoundError, ConflictError, TransientIOError)
    )


def test_to_dict():
    error = ConflictError("Credit 3 was changed", context={"id": 3})
    assert error.to_dict() == {
        "error": "ConflictError",
        "code": "CONFLICT",
        "message": "Credit 3 was changed",
        "retryable": False,
        "context": {"id": 3},
    }
    assert str(error) == "Credit 3 was changed"


def test_only_transient_io_is_retryable():
    assert is_retryable(TransientIOError("storage down"))
    assert not is_retryable(ConflictError("lost race"))
    assert not is_retryable(ValueError("plain"))
