"""
Authentication API Endpoints

Provides registration, login, token verification and password reset, plus
the bearer-token dependencies used by the other routers.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from backend.app.config import get_settings
from backend.app.db.models import User, UserRole
from backend.app.db.session import get_session_generator
from backend.app.errors import AuthError, ForbiddenError
from backend.app.logging_config import bind_request_context
from backend.app.schemas.auth import (
    DeviceResponse,
    LoginRequest,
    LoginResponse,
    PasswordResetRequest,
    PasswordResetResponse,
    RegisterRequest,
    RegisterResponse,
    TokenClaims,
    UserResponse,
    VerifyTokenResponse,
    )
from backend.app.services import auth_service, device_service, user_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# Dependencies
# =============================================================================

def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenClaims:
    """
    Decode the `Authorization: Bearer <token>` header.
    Raises 401 if the header is missing or the token is invalid/expired.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Access token required")
    return auth_service.verify_token(credentials.credentials)


async def get_current_user(
    claims: TokenClaims = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session_generator),
) -> User:
    """
    Dependency to get the authenticated user.

    The user is re-read on every request: a deactivated or deleted user is
    rejected with 403 even while their token is still valid.
    """
    user = await user_service.get_user_by_id(session, claims.user_id)

    if not user or not user.is_active:
        logger.warning("Token rejected: user missing or inactive", user_id=claims.user_id)
        raise ForbiddenError("Account inactive. Please contact support.")

    bind_request_context(user_id=user.id)
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Dependency for admin-only endpoints.

    The role comes from the database row, never from the token.
    """
    if current_user.role != UserRole.ADMIN:
        logger.warning("Admin access denied", user_id=current_user.id, role=current_user.role.value)
        raise ForbiddenError("Admin access required")
    return current_user


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    request: RegisterRequest,
    session: AsyncSession = Depends(get_session_generator)
):
    """
    Register a new customer.

    Creates the user, an unverified device and an empty account. The user
    cannot log in until an admin verifies the device.
    """
    user, device = await auth_service.register(
        session,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
    )

    return RegisterResponse(
        user=UserResponse.model_validate(user),
        device=DeviceResponse.model_validate(device),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    session: AsyncSession = Depends(get_session_generator)
):
    """Authenticate and issue a bearer token."""
    result = await auth_service.login(session, request.email, request.password, request.device_id)

    return LoginResponse(
        token=result.token,
        user=UserResponse.model_validate(result.user),
        device=DeviceResponse.model_validate(result.device) if result.device else None,
    )


@router.get("/verify-token", response_model=VerifyTokenResponse)
async def verify_token(
    claims: TokenClaims = Depends(get_token_claims),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator)
):
    """Return the user (and device) the token belongs to."""
    device = None
    if claims.device_id is not None:
        device = await device_service.get_device_by_pk(session, claims.device_id)
        if device is not None and device.user_id != current_user.id:
            device = None

    return VerifyTokenResponse(
        user=UserResponse.model_validate(current_user),
        device=DeviceResponse.model_validate(device) if device else None,
    )


@router.post("/request-password-reset", response_model=PasswordResetResponse, response_model_exclude_none=True)
async def request_password_reset(
    request: PasswordResetRequest,
    session: AsyncSession = Depends(get_session_generator)
):
    """
    Reset the password to a temporary one.

    The answer is the same whether or not the email is registered. The
    temporary password is only echoed back when EXPOSE_TEMP_PASSWORD is set
    (development/testing).
    """
    temp_password = await auth_service.request_password_reset(session, request.email)

    response = PasswordResetResponse(message=auth_service.PASSWORD_RESET_MESSAGE)
    if temp_password and get_settings().EXPOSE_TEMP_PASSWORD:
        response.temp_password = temp_password
    return response
