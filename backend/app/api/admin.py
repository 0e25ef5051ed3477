"""
Admin API endpoints.

Every route requires an active admin (role re-checked in the database):
- Users: list, get, details, activate/deactivate, assign device, delete
- Devices: list, verify, delete
- Accounts / transactions: global listings
- Stats: dashboard counters
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import require_admin
from backend.app.db.models import TransactionStatus, TransactionType, User
from backend.app.db.session import get_session_generator
from backend.app.errors import ValidationError
from backend.app.logging_config import get_logger
from backend.app.schemas.account import BalanceResponse, TransactionResponse
from backend.app.schemas.admin import (
    AccountListResponse,
    AdminAccountItem,
    AdminTransactionItem,
    AdminTransactionListResponse,
    AssignDeviceRequest,
    DeviceActionResponse,
    DeviceListResponse,
    StatsResponse,
    UserAccessRequest,
    UserAccessResponse,
    UserDetailsResponse,
    UserListResponse,
    )
from backend.app.schemas.auth import DeviceResponse, UserResponse
from backend.app.schemas.common import MessageResponse
from backend.app.services import admin_service, device_service, user_service

logger = get_logger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# =============================================================================
# USERS
# =============================================================================

@admin_router.get("/users", response_model=UserListResponse)
async def list_users(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session_generator),
    ) -> UserListResponse:
    """All users, newest first."""
    users, total = await user_service.list_users(session, limit=limit, offset=offset)
    return UserListResponse(total=total, users=[UserResponse.model_validate(u) for u in users])


@admin_router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_session_generator),
    ) -> UserResponse:
    user = await user_service.require_user(session, user_id)
    return UserResponse.model_validate(user)


@admin_router.get("/users/{user_id}/details", response_model=UserDetailsResponse)
async def get_user_details(
    user_id: int,
    session: AsyncSession = Depends(get_session_generator),
    ) -> UserDetailsResponse:
    """User with account, devices and latest transactions."""
    details = await admin_service.get_user_details(session, user_id)
    account = details["account"]
    return UserDetailsResponse(
        user=UserResponse.model_validate(details["user"]),
        account=BalanceResponse.model_validate(account) if account else None,
        devices=[DeviceResponse.model_validate(d) for d in details["devices"]],
        transactions=[TransactionResponse.model_validate(t) for t in details["transactions"]],
        )


@admin_router.patch("/users/{user_id}/access", response_model=UserAccessResponse)
async def set_user_access(
    user_id: int,
    request: UserAccessRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session_generator),
    ) -> UserAccessResponse:
    """
    Activate or deactivate a user.

    Raises:
        400: An admin trying to deactivate their own account
    """
    if user_id == admin.id and not request.is_active:
        raise ValidationError("You cannot deactivate your own account")

    user = await user_service.set_user_active(session, user_id, request.is_active)
    logger.info("User access changed", admin_id=admin.id, target_user_id=user.id, is_active=user.is_active)

    status = "activated" if user.is_active else "deactivated"
    return UserAccessResponse(message=f"User {status} successfully", user=UserResponse.model_validate(user))


@admin_router.post("/users/{user_id}/devices", response_model=DeviceActionResponse, status_code=201)
async def assign_device(
    user_id: int,
    request: AssignDeviceRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session_generator),
    ) -> DeviceActionResponse:
    """Attach a device to a user; the identifier is generated when omitted."""
    await user_service.require_user(session, user_id)
    device = await device_service.assign_device(session, user_id, request.device_id, request.is_verified)
    logger.info("Device assigned by admin", admin_id=admin.id, target_user_id=user_id, device_pk=device.id)
    return DeviceActionResponse(message="Device assigned successfully", device=DeviceResponse.model_validate(device))


@admin_router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session_generator),
    ) -> MessageResponse:
    """
    Delete a user with their devices, account and transactions.

    Raises:
        400: An admin trying to delete their own account
    """
    if user_id == admin.id:
        raise ValidationError("You cannot delete your own account")

    await user_service.delete_user(session, user_id)
    logger.info("User deleted by admin", admin_id=admin.id, target_user_id=user_id)
    return MessageResponse(message="User deleted successfully")


# =============================================================================
# DEVICES
# =============================================================================

@admin_router.get("/devices", response_model=DeviceListResponse)
async def list_devices(
    user_id: Optional[int] = Query(None, alias="userId"),
    session: AsyncSession = Depends(get_session_generator),
    ) -> DeviceListResponse:
    devices = await device_service.list_devices(session, user_id=user_id)
    return DeviceListResponse(devices=[DeviceResponse.model_validate(d) for d in devices])


@admin_router.post("/devices/{device_id}/verify", response_model=DeviceActionResponse)
async def verify_device(
    device_id: str,
    user_id: Optional[int] = Query(None, alias="userId"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session_generator),
    ) -> DeviceActionResponse:
    """
    Verify a device (idempotent).

    `userId` is only needed when several users share the identifier.
    """
    device = await device_service.verify_device(session, device_id, user_id)
    logger.info("Device verified by admin", admin_id=admin.id, device_pk=device.id)
    return DeviceActionResponse(message="Device verified successfully", device=DeviceResponse.model_validate(device))


@admin_router.delete("/devices/{device_id}", response_model=MessageResponse)
async def delete_device(
    device_id: str,
    user_id: Optional[int] = Query(None, alias="userId"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session_generator),
    ) -> MessageResponse:
    await device_service.delete_device(session, device_id, user_id)
    logger.info("Device deleted by admin", admin_id=admin.id, device_id=device_id)
    return MessageResponse(message="Device deleted successfully")


# =============================================================================
# ACCOUNTS / TRANSACTIONS / STATS
# =============================================================================

@admin_router.get("/accounts", response_model=AccountListResponse)
async def list_accounts(
    session: AsyncSession = Depends(get_session_generator),
    ) -> AccountListResponse:
    accounts = await admin_service.list_accounts(session)
    return AccountListResponse(accounts=[AdminAccountItem.model_validate(a) for a in accounts])


@admin_router.get("/transactions", response_model=AdminTransactionListResponse)
async def list_transactions(
    tx_type: Optional[TransactionType] = Query(None, alias="type"),
    status: Optional[TransactionStatus] = Query(None),
    user_id: Optional[int] = Query(None, alias="userId"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session_generator),
    ) -> AdminTransactionListResponse:
    """Ledger entries of all accounts, newest first, with optional filters."""
    items, total = await admin_service.list_transactions(
        session, tx_type=tx_type, status=status, user_id=user_id, limit=limit, offset=offset,
        )
    return AdminTransactionListResponse(
        total=total,
        transactions=[AdminTransactionItem.model_validate(i) for i in items],
        )


@admin_router.get("/stats", response_model=StatsResponse)
async def get_stats(
    session: AsyncSession = Depends(get_session_generator),
    ) -> StatsResponse:
    return StatsResponse.model_validate(await admin_service.get_stats(session))
