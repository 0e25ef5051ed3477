"""
Test the error taxonomy: categories, status codes and public messages.
"""
import pytest

from backend.app.errors import (
    AppError,
    AuthError,
    ConcurrentModification,
    ConflictError,
    DeviceVerificationRequired,
    DuplicateEmail,
    ForbiddenError,
    InsufficientFunds,
    InternalError,
    InvalidAmount,
    InvalidCredentials,
    InvalidToken,
    NotFoundError,
    ValidationError,
    )


@pytest.mark.parametrize("error_cls,category,status", [
    (InvalidAmount, ValidationError, 400),
    (InsufficientFunds, ValidationError, 400),
    (DuplicateEmail, ValidationError, 400),
    (InvalidCredentials, AuthError, 401),
    (InvalidToken, AuthError, 401),
    (DeviceVerificationRequired, AuthError, 401),
    (ConcurrentModification, ConflictError, 409),
    (ForbiddenError, AppError, 403),
    (NotFoundError, AppError, 404),
    (InternalError, AppError, 500),
])
def test_category_and_status(error_cls, category, status):
    error = error_cls()
    assert isinstance(error, category)
    assert error.status_code == status
    assert error.message


def test_default_messages():
    assert InsufficientFunds().message == "Insufficient funds"
    assert InvalidCredentials().message == "Invalid credentials"
    assert DuplicateEmail().message == "User already exists"


def test_custom_message_overrides_default():
    error = NotFoundError("Device not found")
    assert error.message == "Device not found"
    assert str(error) == "Device not found"
