"""
Authentication Service

Provides password hashing/verification, bearer token issuance/validation,
and the registration, login and password-reset flows including the
device-trust policy.

Device policy:
- Users need a verified device to log in (verified by an admin).
- Admins bypass device checks; an unknown device id supplied by an admin is
  created already verified.
"""
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import get_settings
from backend.app.db.models import Account, Device, User, UserRole
from backend.app.errors import (
    DeviceVerificationRequired,
    DuplicateEmail,
    InvalidCredentials,
    InvalidToken,
    )
from backend.app.schemas.auth import TokenClaims
from backend.app.services import device_service
from backend.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)

settings = get_settings()

TEMP_PASSWORD_BYTES = 9  # 12 url-safe characters
PASSWORD_RESET_MESSAGE = "If an account exists for this email, a password reset has been issued."


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string (salt embedded)
    """
    # bcrypt has a 72-byte limit, truncate if necessary
    password_bytes = password.encode('utf-8')[:72]
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Stored hash to verify against

    Returns:
        True if password matches, False otherwise
    """
    try:
        password_bytes = plain_password.encode('utf-8')[:72]
        hashed_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError as e:
        # Malformed stored hash
        logger.warning("Password verification failed", error=str(e))
        return False


# =============================================================================
# Bearer Tokens (JWT)
# =============================================================================

def create_access_token(user_id: int, role: UserRole, device_pk: Optional[int] = None) -> str:
    """
    Issue a signed, time-limited bearer token.

    Claims: userId, role, optional deviceId (device primary key), iat, exp.
    The role claim is informational; authorization always re-reads the user.
    """
    now = utcnow()
    payload = {
        "userId": user_id,
        "role": role.value,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    if device_pk is not None:
        payload["deviceId"] = device_pk
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    """
    Validate a bearer token and decode its claims.

    Raises:
        InvalidToken: Bad signature, expired, or missing/malformed claims
    """
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "userId", "role"]},
        )
        return TokenClaims(
            user_id=decoded["userId"],
            role=decoded["role"],
            device_id=decoded.get("deviceId"),
        )
    except jwt.ExpiredSignatureError:
        logger.info("Token rejected: expired")
        raise InvalidToken()
    except jwt.InvalidTokenError as e:
        logger.info("Token rejected", reason=str(e))
        raise InvalidToken()
    except ValueError as e:
        # Claims present but of the wrong shape (pydantic)
        logger.info("Token rejected: malformed claims", reason=str(e))
        raise InvalidToken()


# =============================================================================
# Flows
# =============================================================================

@dataclass
class LoginResult:
    token: str
    user: User
    device: Optional[Device]


async def register(
    session: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> tuple[User, Device]:
    """
    Register a customer.

    Creates the user, an unverified device with a generated identifier and a
    zero-balance account in a single transaction: all three or none.

    Raises:
        DuplicateEmail: If the email is already registered
    """
    from backend.app.services import user_service

    email = user_service.normalize_email(email)
    if await user_service.get_user_by_email(session, email):
        logger.info("Registration rejected: duplicate email")
        raise DuplicateEmail()

    try:
        device_id = await device_service.generate_device_id(session)

        user = User(
            email=email,
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=UserRole.USER,
            is_active=True,
        )
        session.add(user)
        await session.flush()  # Get ID

        device = Device(user_id=user.id, device_id=device_id, is_verified=False)
        account = Account(user_id=user.id, currency=settings.DEFAULT_CURRENCY)
        session.add(device)
        session.add(account)

        await session.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration of the same email
        await session.rollback()
        raise DuplicateEmail()
    except Exception:
        await session.rollback()
        raise

    logger.info("User registered", user_id=user.id, device_id=device.device_id)
    return user, device


async def _resolve_login_device(session: AsyncSession, user: User, device_id: Optional[str]) -> Optional[Device]:
    """Apply the device-trust policy; returns the device the session is bound to."""
    if user.role == UserRole.ADMIN:
        if not device_id:
            return await device_service.first_verified_device(session, user.id)

        device = await device_service.get_user_device(session, user.id, device_id)
        if device is None:
            device = Device(user_id=user.id, device_id=device_id, is_verified=True)
            session.add(device)
            logger.info("Admin device auto-registered", user_id=user.id, device_id=device_id)
        elif not device.is_verified:
            device.is_verified = True
            device.updated_at = utcnow()
            logger.info("Admin device auto-verified", user_id=user.id, device_id=device_id)
        return device

    if device_id:
        device = await device_service.get_user_device(session, user.id, device_id)
        if device is None:
            logger.warning("Login failed: device not registered", user_id=user.id, device_id=device_id)
            raise DeviceVerificationRequired("Device not registered")
        if not device.is_verified:
            logger.warning("Login failed: device pending verification", user_id=user.id, device_id=device_id)
            raise DeviceVerificationRequired()
        return device

    device = await device_service.first_verified_device(session, user.id)
    if device is None:
        logger.warning("Login failed: no verified device", user_id=user.id)
        raise DeviceVerificationRequired()
    return device


async def login(
    session: AsyncSession,
    email: str,
    password: str,
    device_id: Optional[str] = None,
) -> LoginResult:
    """
    Authenticate a user and issue a bearer token.

    Unknown email, inactive account and wrong password all fail with the same
    InvalidCredentials message; the reason only goes to the log.

    Raises:
        InvalidCredentials: Authentication failed
        DeviceVerificationRequired: Non-admin without a usable verified device
    """
    from backend.app.services import user_service

    user = await user_service.get_user_by_email(session, email)

    if not user:
        logger.warning("Login failed: user not found")
        raise InvalidCredentials()

    if not user.is_active:
        logger.warning("Login failed: user inactive", user_id=user.id)
        raise InvalidCredentials()

    if not verify_password(password, user.hashed_password):
        logger.warning("Login failed: wrong password", user_id=user.id, role=user.role.value)
        raise InvalidCredentials()

    try:
        device = await _resolve_login_device(session, user, device_id)
        if device is not None:
            device.last_login = utcnow()
            session.add(device)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    token = create_access_token(user.id, user.role, device.id if device else None)
    logger.info("User logged in", user_id=user.id, role=user.role.value,
                device_pk=device.id if device else None)
    return LoginResult(token=token, user=user, device=device)


def generate_temp_password() -> str:
    """Random temporary password, 12 url-safe characters."""
    return secrets.token_urlsafe(TEMP_PASSWORD_BYTES)


async def request_password_reset(session: AsyncSession, email: str) -> Optional[str]:
    """
    Reset a password to a random temporary one.

    The caller must answer with the same generic message whether or not the
    email exists. The new password is live immediately; its delivery is
    simulated with a log event.

    Returns:
        The temporary password, or None when the email is unknown
    """
    from backend.app.services import user_service

    user = await user_service.get_user_by_email(session, email)
    if not user:
        logger.info("Password reset requested for unknown email")
        return None

    temp_password = generate_temp_password()
    user.hashed_password = hash_password(temp_password)
    user.updated_at = utcnow()
    session.add(user)
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    # Stand-in for the e-mail delivery
    logger.info("Password reset issued", user_id=user.id, delivery="log")
    return temp_password
