"""
Account / Ledger Schemas

Request and response bodies for balance, deposit, withdraw and history.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from backend.app.db.models import TransactionType, TransactionStatus
from backend.app.schemas.common import CamelModel, Money


class AmountRequest(CamelModel):
    """Deposit or withdrawal request."""
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2,
                            description="Positive amount, at most 2 decimals")
    description: Optional[str] = Field(None, max_length=255)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class BalanceResponse(CamelModel):
    id: int
    balance: Money
    currency: str
    created_at: datetime


class TransactionResponse(CamelModel):
    """Single ledger entry."""
    id: int
    account_id: int
    type: TransactionType
    amount: Money
    balance_before: Money
    balance_after: Money
    description: str
    status: TransactionStatus
    created_at: datetime


class TransactionHistoryResponse(CamelModel):
    transactions: List[TransactionResponse]
    total: int
