"""
Database models for SavingsVault.

All models use SQLModel (SQLAlchemy 2.x) with the following conventions:
- Money columns use Numeric(12, 2)
- Timestamps in UTC (created_at, updated_at)
- Foreign keys are explicit integer fields, enforced with PRAGMA foreign_keys=ON
- No behaviour lives on the entities; queries are in the service layer
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column,
    UniqueConstraint,
    Index,
    Numeric,
    CheckConstraint,
    Integer,
    ForeignKey,
    )
from sqlmodel import Field, SQLModel

from backend.app.utils.datetime_utils import utcnow


# ============================================================================
# ENUMS
# ============================================================================

class UserRole(str, Enum):
    """
    User role.

    - USER: regular customer, needs a verified device to log in
    - ADMIN: back-office operator, bypasses device verification
    """
    USER = "user"
    ADMIN = "admin"


class TransactionType(str, Enum):
    """
    Ledger entry types.

    - DEPOSIT: money added to the account (balance_after = balance_before + amount)
    - WITHDRAWAL: money taken from the account (balance_after = balance_before - amount)
    """
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class TransactionStatus(str, Enum):
    """
    Ledger entry status.

    Deposits and withdrawals commit atomically, so every persisted entry is
    COMPLETED. PENDING and FAILED are kept for entries written by external
    settlement flows.
    """
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ============================================================================
# MODELS
# ============================================================================


class User(SQLModel, table=True):
    """
    Application user (customer or admin).

    Passwords are stored as bcrypt hashes only.
    Deleting a user cascades to devices, account and transactions.
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True, nullable=False)
    hashed_password: str = Field(nullable=False)
    first_name: str = Field(nullable=False)
    last_name: str = Field(nullable=False)
    role: UserRole = Field(default=UserRole.USER, nullable=False)
    is_active: bool = Field(default=True, nullable=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Device(SQLModel, table=True):
    """
    Trusted client identifier bound to a user.

    A non-admin user can only log in from a verified device.
    Devices are created unverified at registration and verified by an admin.
    """
    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("user_id", "device_id", name="uq_devices_user_device"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False
            )
        )
    device_id: str = Field(nullable=False, index=True)
    is_verified: bool = Field(default=False, nullable=False)
    last_login: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Account(SQLModel, table=True):
    """
    Savings account, exactly one per user.

    The balance is only changed by LedgerService.deposit/withdraw, which bump
    `version` on every write (compare-and-swap guard against lost updates).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False
            )
        )
    balance: Decimal = Field(default=Decimal("0.00"), sa_column=Column(Numeric(12, 2), nullable=False))
    currency: str = Field(default="USD", max_length=3, nullable=False)  # ISO 4217
    version: int = Field(default=0, nullable=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    """
    Append-only ledger entry.

    Invariant: balance_after = balance_before + amount (DEPOSIT)
               balance_after = balance_before - amount (WITHDRAWAL)
    Rows are never updated after insert.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        Index("idx_transactions_account_created", "account_id", "created_at", "id"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("balance_after >= 0", name="ck_transactions_balance_after_non_negative"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)

    account_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("accounts.id", ondelete="CASCADE"),
            index=True,
            nullable=False
            )
        )
    type: TransactionType = Field(nullable=False)
    amount: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    balance_before: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    balance_after: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    description: str = Field(nullable=False)
    status: TransactionStatus = Field(default=TransactionStatus.COMPLETED, nullable=False)

    created_at: datetime = Field(default_factory=utcnow)
