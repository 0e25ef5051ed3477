"""
Device Service

Trusted-device bookkeeping: identifier generation, lookups, admin
verification/assignment/removal.
"""
import secrets
import time
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from backend.app.db.models import Device
from backend.app.errors import ConflictError, NotFoundError
from backend.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)

DEVICE_ID_PREFIX = "dev"
DEVICE_ID_ATTEMPTS = 5


async def device_id_exists(session: AsyncSession, device_id: str) -> bool:
    """True if any user already has a device with this identifier."""
    stmt = select(func.count()).select_from(Device).where(Device.device_id == device_id)
    return (await session.execute(stmt)).scalar_one() > 0


async def generate_device_id(session: AsyncSession) -> str:
    """
    Generate a globally unique device identifier.

    Tries random identifiers a few times; if every candidate collides, falls
    back to a timestamp + random composite, which is unique in practice.
    """
    for _ in range(DEVICE_ID_ATTEMPTS):
        candidate = f"{DEVICE_ID_PREFIX}_{secrets.token_hex(8)}"
        if not await device_id_exists(session, candidate):
            return candidate

    fallback = f"{DEVICE_ID_PREFIX}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
    logger.warning("Device id collisions exhausted, using fallback", device_id=fallback)
    return fallback


async def get_device_by_pk(session: AsyncSession, pk: int) -> Optional[Device]:
    stmt = select(Device).where(Device.id == pk)
    return (await session.execute(stmt)).scalars().first()


async def get_user_device(session: AsyncSession, user_id: int, device_id: str) -> Optional[Device]:
    """Get a user's device by its identifier string."""
    stmt = select(Device).where(Device.user_id == user_id, Device.device_id == device_id)
    return (await session.execute(stmt)).scalars().first()


async def first_verified_device(session: AsyncSession, user_id: int) -> Optional[Device]:
    """Oldest verified device of a user, or None if the user has none."""
    stmt = (
        select(Device)
        .where(Device.user_id == user_id, Device.is_verified.is_(True))
        .order_by(Device.created_at, Device.id)
    )
    return (await session.execute(stmt)).scalars().first()


async def list_devices(session: AsyncSession, user_id: Optional[int] = None) -> list[Device]:
    """
    List devices, newest first.

    Args:
        session: Database session
        user_id: Only this user's devices when given
    """
    stmt = select(Device).order_by(Device.created_at.desc(), Device.id.desc())
    if user_id is not None:
        stmt = stmt.where(Device.user_id == user_id)
    return list((await session.execute(stmt)).scalars().all())


async def find_device(session: AsyncSession, device_id: str, user_id: Optional[int] = None) -> Device:
    """
    Resolve a device identifier string to a single device.

    Identifiers are unique per user; an identifier shared by several users
    must be disambiguated with `user_id`.

    Raises:
        NotFoundError: No matching device
        ConflictError: Identifier matches devices of several users
    """
    stmt = select(Device).where(Device.device_id == device_id)
    if user_id is not None:
        stmt = stmt.where(Device.user_id == user_id)
    devices = list((await session.execute(stmt)).scalars().all())

    if not devices:
        raise NotFoundError("Device not found")
    if len(devices) > 1:
        raise ConflictError("Device identifier is shared by several users; pass userId")
    return devices[0]


async def verify_device(session: AsyncSession, device_id: str, user_id: Optional[int] = None) -> Device:
    """Mark a device as verified (idempotent)."""
    device = await find_device(session, device_id, user_id)

    if not device.is_verified:
        device.is_verified = True
        device.updated_at = utcnow()
        session.add(device)
        await session.commit()
        logger.info("Device verified", device_pk=device.id, user_id=device.user_id)

    return device


async def assign_device(
    session: AsyncSession,
    user_id: int,
    device_id: Optional[str] = None,
    is_verified: bool = False,
) -> Device:
    """
    Attach a new device to a user.

    Args:
        session: Database session
        user_id: Owner (must exist; checked by the caller)
        device_id: Identifier to use; generated when omitted
        is_verified: Create the device already verified

    Raises:
        ConflictError: The user already has a device with this identifier
    """
    if device_id is None:
        device_id = await generate_device_id(session)
    elif await get_user_device(session, user_id, device_id):
        raise ConflictError("Device already assigned to this user")

    device = Device(user_id=user_id, device_id=device_id, is_verified=is_verified)
    session.add(device)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Device already assigned to this user")

    logger.info("Device assigned", device_pk=device.id, user_id=user_id, is_verified=is_verified)
    return device


async def delete_device(session: AsyncSession, device_id: str, user_id: Optional[int] = None) -> None:
    """Remove a device. The owner may lose the ability to log in."""
    device = await find_device(session, device_id, user_id)
    await session.delete(device)
    await session.commit()
    logger.info("Device deleted", device_pk=device.id, user_id=device.user_id)


async def count_devices(session: AsyncSession) -> tuple[int, int]:
    """Return (total devices, verified devices)."""
    total = (await session.execute(select(func.count()).select_from(Device))).scalar_one()
    verified = (
        await session.execute(select(func.count()).select_from(Device).where(Device.is_verified.is_(True)))
    ).scalar_one()
    return total, verified
