"""
Admin Schemas

Bodies for the admin user/device management and dashboard endpoints.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from backend.app.schemas.account import BalanceResponse, TransactionResponse
from backend.app.schemas.auth import DeviceResponse, UserResponse
from backend.app.schemas.common import CamelModel, Money


# =============================================================================
# Requests
# =============================================================================

class UserAccessRequest(CamelModel):
    is_active: bool


class AssignDeviceRequest(CamelModel):
    """Assign a device to a user; the identifier is generated when omitted."""
    device_id: Optional[str] = Field(None, min_length=1, max_length=128)
    is_verified: bool = False


# =============================================================================
# Responses
# =============================================================================

class UserListResponse(CamelModel):
    total: int
    users: List[UserResponse]


class UserAccessResponse(CamelModel):
    message: str
    user: UserResponse


class DeviceActionResponse(CamelModel):
    message: str
    device: DeviceResponse


class DeviceListResponse(CamelModel):
    devices: List[DeviceResponse]


class AdminAccountItem(BalanceResponse):
    """Account row with its owner's email."""
    user_id: int
    email: str


class AccountListResponse(CamelModel):
    accounts: List[AdminAccountItem]


class AdminTransactionItem(TransactionResponse):
    """Ledger entry with its owner."""
    user_id: int
    email: str


class AdminTransactionListResponse(CamelModel):
    total: int
    transactions: List[AdminTransactionItem]


class UserDetailsResponse(CamelModel):
    user: UserResponse
    account: Optional[BalanceResponse] = None
    devices: List[DeviceResponse]
    transactions: List[TransactionResponse]


class DeviceStats(CamelModel):
    total: int
    verified: int


class AccountStats(CamelModel):
    total: int
    balance_sum: Money = Decimal("0.00")


class TransactionStats(CamelModel):
    total: int
    deposits_total: Money = Decimal("0.00")
    withdrawals_total: Money = Decimal("0.00")


class StatsResponse(CamelModel):
    users_count: int
    devices: DeviceStats
    accounts: AccountStats
    transactions: TransactionStats
