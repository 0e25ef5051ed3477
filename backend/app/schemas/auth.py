"""
Authentication Schemas

Pydantic models for auth API requests/responses and decoded token claims.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.app.db.models import UserRole
from backend.app.schemas.common import CamelModel


def _normalize_email(value: str) -> str:
    return value.strip().lower()


# =============================================================================
# Request Schemas
# =============================================================================

class RegisterRequest(CamelModel):
    """Registration request. The device identifier is generated server-side."""
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=6, description="Password (min 6 chars)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class LoginRequest(CamelModel):
    """Login request. `device_id` selects which trusted device is used."""
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=6, description="Password")
    device_id: Optional[str] = Field(None, max_length=128, description="Client device identifier")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class PasswordResetRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


# =============================================================================
# Response Schemas
# =============================================================================

class UserResponse(CamelModel):
    """Public view of a user (never includes the password hash)."""
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    created_at: datetime


class DeviceResponse(CamelModel):
    id: int
    user_id: int
    device_id: str
    is_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class RegisterResponse(CamelModel):
    message: str = "Registration successful. Please wait for device verification."
    user: UserResponse
    device: DeviceResponse


class LoginResponse(CamelModel):
    token: str
    user: UserResponse
    device: Optional[DeviceResponse] = None


class VerifyTokenResponse(CamelModel):
    user: UserResponse
    device: Optional[DeviceResponse] = None


class PasswordResetResponse(CamelModel):
    message: str
    temp_password: Optional[str] = None


# =============================================================================
# Token
# =============================================================================

class TokenClaims(BaseModel):
    """Decoded bearer token payload."""
    user_id: int
    role: UserRole
    device_id: Optional[int] = None
