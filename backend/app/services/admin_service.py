"""
Admin Service

Read-side queries for the admin dashboard: global statistics, account and
transaction listings joined with their owners, and the per-user detail view.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import Account, Transaction, TransactionStatus, TransactionType, User
from backend.app.services import device_service, user_service

USER_DETAILS_TX_LIMIT = 20


async def get_stats(session: AsyncSession) -> dict:
    """
    Counts and sums for the dashboard.

    Returns:
        Dict shaped like schemas.admin.StatsResponse
    """
    users_count = (await session.execute(select(func.count()).select_from(User))).scalar_one()
    devices_total, devices_verified = await device_service.count_devices(session)

    accounts_total, balance_sum = (
        await session.execute(select(func.count(Account.id), func.coalesce(func.sum(Account.balance), 0)))
    ).one()

    tx_total = (await session.execute(select(func.count()).select_from(Transaction))).scalar_one()
    sums = dict(
        (
            await session.execute(
                select(Transaction.type, func.sum(Transaction.amount))
                .where(Transaction.status == TransactionStatus.COMPLETED)
                .group_by(Transaction.type)
            )
        ).all()
    )

    return {
        "users_count": users_count,
        "devices": {"total": devices_total, "verified": devices_verified},
        "accounts": {"total": accounts_total, "balance_sum": _money(balance_sum)},
        "transactions": {
            "total": tx_total,
            "deposits_total": _money(sums.get(TransactionType.DEPOSIT)),
            "withdrawals_total": _money(sums.get(TransactionType.WITHDRAWAL)),
        },
    }


def _money(value) -> Decimal:
    # SQLite returns SUM() of NUMERIC as float (or None for no rows)
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))


async def list_accounts(session: AsyncSession) -> list[dict]:
    """All accounts with their owner's email, richest first."""
    stmt = (
        select(Account, User.email)
        .join(User, User.id == Account.user_id)
        .order_by(Account.balance.desc(), Account.id)
    )
    rows = (await session.execute(stmt)).all()
    return [_with_owner(account, account.user_id, email) for account, email in rows]


async def list_transactions(
    session: AsyncSession,
    tx_type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    user_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """
    Ledger entries across all accounts, newest first.

    Returns:
        Tuple of (entries with owner user_id/email, total matching count)
    """
    stmt = (
        select(Transaction, Account.user_id, User.email)
        .join(Account, Account.id == Transaction.account_id)
        .join(User, User.id == Account.user_id)
    )
    if tx_type is not None:
        stmt = stmt.where(Transaction.type == tx_type)
    if status is not None:
        stmt = stmt.where(Transaction.status == status)
    if user_id is not None:
        stmt = stmt.where(Account.user_id == user_id)

    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).offset(offset)
    rows = (await session.execute(stmt)).all()
    return [_with_owner(tx, owner_id, email) for tx, owner_id, email in rows], total


def _with_owner(obj, user_id: int, email: str) -> dict:
    data = obj.model_dump()
    data["user_id"] = user_id
    data["email"] = email
    return data


async def get_user_details(session: AsyncSession, user_id: int, tx_limit: int = USER_DETAILS_TX_LIMIT) -> dict:
    """
    User with account, devices and latest transactions.

    Does not create a missing account (read-only view).

    Raises:
        NotFoundError: If the user does not exist
    """
    user = await user_service.require_user(session, user_id)
    account = (await session.execute(select(Account).where(Account.user_id == user_id))).scalars().first()
    devices = await device_service.list_devices(session, user_id=user_id)

    transactions = []
    if account is not None:
        stmt = (
            select(Transaction)
            .where(Transaction.account_id == account.id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(tx_limit)
        )
        transactions = list((await session.execute(stmt)).scalars().all())

    return {"user": user, "account": account, "devices": devices, "transactions": transactions}
