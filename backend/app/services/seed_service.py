"""
Admin seeding.

Makes sure the configured admin exists with a verified device. Runs at
startup and from the CLI; safe to run repeatedly.
"""
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import Device, User, UserRole
from backend.app.services import device_service, user_service
from backend.app.services.auth_service import hash_password
from backend.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)


async def seed_admin_user(
    session: AsyncSession,
    email: str,
    password: str,
    device_id: str,
    first_name: str = "Admin",
    last_name: str = "User",
) -> Optional[User]:
    """
    Ensure an admin user and its verified device exist.

    - Admin missing: create admin + verified device in one transaction.
    - Admin present: create or verify the device; the password is left alone.
    - Email taken by a non-admin user: nothing is changed.

    Returns:
        The admin user, or None if seeding was skipped
    """
    if not email or not password:
        logger.info("Admin seed skipped: ADMIN_EMAIL/ADMIN_PASSWORD not configured")
        return None

    existing = await user_service.get_user_by_email(session, email)

    if existing and existing.role != UserRole.ADMIN:
        logger.warning("Admin seed skipped: email belongs to a regular user", user_id=existing.id)
        return None

    try:
        if existing:
            admin = existing
            device = await device_service.get_user_device(session, admin.id, device_id)
            if device is None:
                session.add(Device(user_id=admin.id, device_id=device_id, is_verified=True))
                logger.info("Seeded admin device", user_id=admin.id, device_id=device_id)
            elif not device.is_verified:
                device.is_verified = True
                device.updated_at = utcnow()
                session.add(device)
                logger.info("Verified existing admin device", user_id=admin.id, device_id=device_id)
            else:
                logger.info("Admin already present", user_id=admin.id)
        else:
            admin = User(
                email=user_service.normalize_email(email),
                hashed_password=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=UserRole.ADMIN,
                is_active=True,
            )
            session.add(admin)
            await session.flush()
            session.add(Device(user_id=admin.id, device_id=device_id, is_verified=True))
            logger.info("Seeded admin user", user_id=admin.id, device_id=device_id)

        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Failed to seed admin user/device")
        raise

    return admin
