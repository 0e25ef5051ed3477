"""
User Service

Query and mutation functions for users, used by the API, the admin
endpoints and the CLI. Every function takes an explicit session; mutating
functions commit (or roll back) their own unit of work.
"""
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from backend.app.db.models import Account, Device, Transaction, User, UserRole
from backend.app.errors import DuplicateEmail, NotFoundError
from backend.app.services.auth_service import hash_password
from backend.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    """Lower-case and trim an email so lookups are case-insensitive."""
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """
    Get user by email.

    Args:
        session: Database session
        email: Email to search (normalized before lookup)

    Returns:
        User or None if not found
    """
    stmt = select(User).where(User.email == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User or None if not found
    """
    stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalars().first()


async def require_user(session: AsyncSession, user_id: int) -> User:
    """Get user by ID or raise NotFoundError."""
    user = await get_user_by_id(session, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def list_users(session: AsyncSession, limit: int = 50, offset: int = 0) -> tuple[list[User], int]:
    """
    List users, newest first.

    Args:
        session: Database session
        limit: Page size
        offset: Rows to skip

    Returns:
        Tuple of (users on this page, total user count)
    """
    total = (await session.execute(select(func.count()).select_from(User))).scalar_one()
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def create_user(
    session: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: UserRole = UserRole.USER,
    is_active: bool = True,
) -> User:
    """
    Create a bare user (no device, no account).

    Used by the CLI and admin seeding; self-registration goes through
    auth_service.register, which also creates the device and account.

    Raises:
        DuplicateEmail: If the email is already registered
    """
    if await get_user_by_email(session, email):
        raise DuplicateEmail()

    user = User(
        email=normalize_email(email),
        hashed_password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=is_active,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateEmail()

    logger.info("User created", user_id=user.id, role=role.value)
    return user


async def reset_password(session: AsyncSession, email: str, new_password: str) -> User:
    """
    Replace a user's password (operator CLI).

    Raises:
        NotFoundError: If no user has this email
    """
    user = await get_user_by_email(session, email)
    if not user:
        raise NotFoundError(f"User '{email}' not found")

    user.hashed_password = hash_password(new_password)
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()

    logger.info("Password reset", user_id=user.id)
    return user


async def set_user_active(session: AsyncSession, user_id: int, active: bool) -> User:
    """
    Activate or deactivate a user.

    Deactivated users cannot log in, and their existing tokens are rejected
    because every authenticated request re-reads the user.

    Raises:
        NotFoundError: If the user does not exist
    """
    user = await require_user(session, user_id)

    user.is_active = active
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()

    status = "activated" if active else "deactivated"
    logger.info(f"User {status}", user_id=user.id)
    return user


async def delete_user(session: AsyncSession, user_id: int) -> None:
    """
    Delete a user together with devices, account and transactions.

    Children are deleted explicitly (in FK order) in one transaction, so the
    result does not depend on the database enforcing ON DELETE CASCADE.

    Raises:
        NotFoundError: If the user does not exist
    """
    user = await require_user(session, user_id)

    try:
        account_ids = select(Account.id).where(Account.user_id == user_id)
        tx_result = await session.execute(
            delete(Transaction)
            .where(Transaction.account_id.in_(account_ids))
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            delete(Account).where(Account.user_id == user_id).execution_options(synchronize_session=False)
        )
        dev_result = await session.execute(
            delete(Device).where(Device.user_id == user_id).execution_options(synchronize_session=False)
        )
        await session.delete(user)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "User deleted",
        user_id=user_id,
        transactions_deleted=tx_result.rowcount,
        devices_deleted=dev_result.rowcount,
    )
