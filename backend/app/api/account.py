"""
Account API endpoints.

The authenticated user's own account:
- GET /account/balance
- POST /account/deposit
- POST /account/withdraw
- GET /account/transactions
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_current_user
from backend.app.db.models import User
from backend.app.db.session import get_session_generator
from backend.app.logging_config import get_logger
from backend.app.schemas.account import (
    AmountRequest,
    BalanceResponse,
    TransactionHistoryResponse,
    TransactionResponse,
    )
from backend.app.services.ledger_service import LedgerService

logger = get_logger(__name__)

account_router = APIRouter(prefix="/account", tags=["account"])


@account_router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    ) -> BalanceResponse:
    """Current balance; the account is created on first access."""
    account = await LedgerService(session).get_or_create_account(current_user.id)
    return BalanceResponse.model_validate(account)


@account_router.post("/deposit", response_model=TransactionResponse)
async def deposit(
    request: AmountRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    ) -> TransactionResponse:
    """
    Deposit money.

    Returns:
        The COMPLETED ledger entry (balanceBefore/balanceAfter included)
    """
    entry = await LedgerService(session).deposit(current_user.id, request.amount, request.description)
    return TransactionResponse.model_validate(entry)


@account_router.post("/withdraw", response_model=TransactionResponse)
async def withdraw(
    request: AmountRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    ) -> TransactionResponse:
    """
    Withdraw money.

    Raises:
        400 Insufficient funds: amount greater than the balance; nothing is recorded
    """
    entry = await LedgerService(session).withdraw(current_user.id, request.amount, request.description)
    return TransactionResponse.model_validate(entry)


@account_router.get("/transactions", response_model=TransactionHistoryResponse)
async def get_transactions(
    limit: int = Query(50, ge=1, le=500, description="Page size"),
    offset: int = Query(0, ge=0, description="Entries to skip"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    ) -> TransactionHistoryResponse:
    """Ledger entries, newest first."""
    entries, total = await LedgerService(session).get_history(current_user.id, limit=limit, offset=offset)
    return TransactionHistoryResponse(
        transactions=[TransactionResponse.model_validate(e) for e in entries],
        total=total,
        )
