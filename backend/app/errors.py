"""
Application error taxonomy.

Services raise these typed errors; the API layer maps them to HTTP responses
(see register_exception_handlers in main.py). `message` is what the client
sees, so it must never carry internal detail.
"""


class AppError(Exception):
    """Base class for all expected, client-facing failures."""
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# Generic categories
# =============================================================================

class ValidationError(AppError):
    """Malformed or missing input."""
    status_code = 400
    default_message = "Invalid input"


class AuthError(AppError):
    """Bad credentials or token."""
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(AppError):
    """Authenticated, but not allowed."""
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    """State conflict (duplicate entity, lost race)."""
    status_code = 409
    default_message = "Conflict"


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"


# =============================================================================
# Ledger
# =============================================================================

class InvalidAmount(ValidationError):
    default_message = "Amount must be positive"


class InsufficientFunds(ValidationError):
    default_message = "Insufficient funds"


class ConcurrentModification(ConflictError):
    """The account kept changing under us; the client may retry."""
    default_message = "Account is busy, please retry"


# =============================================================================
# Auth
# =============================================================================

class DuplicateEmail(ValidationError):
    # Registration reports duplicates as 400, like other input problems
    default_message = "User already exists"


class InvalidCredentials(AuthError):
    default_message = "Invalid credentials"


class InvalidToken(AuthError):
    default_message = "Invalid or expired token"


class DeviceVerificationRequired(AuthError):
    default_message = "Device pending verification. Please contact support to verify your device."
