"""
Ledger Service for SavingsVault.

Owns the account balance and its append-only transaction history:
- One account per user, created lazily
- Deposit / withdraw as a single atomic unit (balance write + ledger entry)
- Paginated history, newest first

Design Notes:
- The service owns commit/rollback: every mutation is one database
  transaction, rolled back entirely on any failure.
- Lost updates are prevented with a compare-and-swap UPDATE on
  (id, version). The UPDATE holds the row's write lock until commit; a
  writer that lost the race sees 0 updated rows, rolls back and retries
  from a fresh read. Where the backend supports it the read is also
  SELECT ... FOR UPDATE (SQLite ignores it).
"""
from decimal import Decimal
from typing import List, Optional, Tuple, Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from backend.app.config import get_settings
from backend.app.db.models import Account, Transaction, TransactionStatus, TransactionType
from backend.app.errors import ConcurrentModification, InsufficientFunds, InvalidAmount
from backend.app.utils.datetime_utils import utcnow
from backend.app.utils.decimal_utils import get_model_column_precision, quantize_money

logger = structlog.get_logger(__name__)

AmountLike = Union[Decimal, int, float, str]

DEFAULT_DESCRIPTIONS = {
    TransactionType.DEPOSIT: "Deposit",
    TransactionType.WITHDRAWAL: "Withdrawal",
    }


def max_balance() -> Decimal:
    """Largest value the balance column can hold (NUMERIC(12, 2) -> 9999999999.99)."""
    precision, scale = get_model_column_precision(Account, "balance")
    return Decimal(10) ** (precision - scale) - Decimal(10) ** -scale


class LedgerService:
    """
    Service for account balances and ledger entries.

    Stateless apart from the session it is given; create one per request.

    A rejected or failed mutation rolls back the caller's session, which
    expires every ORM instance loaded through it. Re-read what you need
    afterwards.
    """

    def __init__(self, session: AsyncSession, max_retries: Optional[int] = None):
        settings = get_settings()
        self.session = session
        self.currency = settings.DEFAULT_CURRENCY
        self.max_retries = max_retries if max_retries is not None else settings.LEDGER_MAX_RETRIES

    # =========================================================================
    # ACCOUNT
    # =========================================================================

    async def get_account(self, user_id: int, for_update: bool = False) -> Optional[Account]:
        """
        Fetch the user's account, always re-reading the row.

        Args:
            user_id: Owner
            for_update: Take a row lock where the backend supports it
        """
        stmt = select(Account).where(Account.user_id == user_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_or_create_account(self, user_id: int) -> Account:
        """
        Return the user's account, creating it (balance 0, default currency) if absent.

        A concurrent creation for the same user loses on the unique user_id
        constraint and re-reads the winner's row.
        """
        account = await self.get_account(user_id)
        if account:
            return account

        account = Account(user_id=user_id, balance=Decimal("0.00"), currency=self.currency)
        self.session.add(account)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            account = await self.get_account(user_id)
            if account is None:
                # Not a duplicate: the user itself is missing
                raise
            return account

        logger.info("Account created", user_id=user_id, account_id=account.id, currency=account.currency)
        return account

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def deposit(self, user_id: int, amount: AmountLike, description: Optional[str] = None) -> Transaction:
        """
        Add money to the user's account.

        Args:
            user_id: Owner
            amount: Positive amount (quantized to cents)
            description: Free text, defaults to "Deposit"

        Returns:
            The COMPLETED ledger entry

        Raises:
            InvalidAmount: amount <= 0, not a number, or beyond the balance limit
        """
        return await self._apply(user_id, TransactionType.DEPOSIT, amount, description)

    async def withdraw(self, user_id: int, amount: AmountLike, description: Optional[str] = None) -> Transaction:
        """
        Take money from the user's account.

        Raises:
            InvalidAmount: amount <= 0 or not a number
            InsufficientFunds: amount > current balance (nothing is written)
        """
        return await self._apply(user_id, TransactionType.WITHDRAWAL, amount, description)

    def _validate_amount(self, amount: AmountLike) -> Decimal:
        try:
            value = quantize_money(amount)
        except ValueError:
            raise InvalidAmount("Amount must be a number")
        if value <= 0:
            raise InvalidAmount()
        return value

    async def _apply(
        self,
        user_id: int,
        tx_type: TransactionType,
        amount: AmountLike,
        description: Optional[str],
    ) -> Transaction:
        value = self._validate_amount(amount)
        description = (description or "").strip() or DEFAULT_DESCRIPTIONS[tx_type]

        for attempt in range(1, self.max_retries + 1):
            account = await self.get_account(user_id, for_update=True)
            if account is None:
                await self.get_or_create_account(user_id)
                account = await self.get_account(user_id, for_update=True)

            account_id = account.id
            balance_before = account.balance
            version = account.version
            if tx_type == TransactionType.DEPOSIT:
                balance_after = balance_before + value
                if balance_after > max_balance():
                    await self.session.rollback()
                    raise InvalidAmount("Amount exceeds the account balance limit")
            else:
                if balance_before < value:
                    await self.session.rollback()
                    logger.info(
                        "Withdrawal rejected: insufficient funds",
                        user_id=user_id, account_id=account_id, amount=str(value), balance=str(balance_before),
                        )
                    raise InsufficientFunds()
                balance_after = balance_before - value

            try:
                swapped = await self._swap_balance(account_id, version, balance_after)
                if not swapped:
                    await self.session.rollback()
                    logger.debug("Balance changed concurrently, retrying",
                                 account_id=account_id, attempt=attempt)
                    continue

                entry = Transaction(
                    account_id=account_id,
                    type=tx_type,
                    amount=value,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    description=description,
                    status=TransactionStatus.COMPLETED,
                    created_at=utcnow(),
                    )
                self.session.add(entry)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                logger.exception("Ledger mutation failed, rolled back",
                                 user_id=user_id, account_id=account_id, type=tx_type.value)
                raise

            set_committed_value(account, "balance", balance_after)
            set_committed_value(account, "version", version + 1)

            logger.info(
                f"{tx_type.value.capitalize()} completed",
                user_id=user_id, account_id=account_id, transaction_id=entry.id,
                amount=str(value), balance_before=str(balance_before), balance_after=str(balance_after),
                )
            return entry

        logger.warning("Ledger mutation gave up after retries", user_id=user_id, retries=self.max_retries)
        raise ConcurrentModification()

    async def _swap_balance(self, account_id: int, version: int, new_balance: Decimal) -> bool:
        """
        Write the new balance only if nobody else wrote since we read it.

        Returns:
            True if the row was updated, False if the version moved on
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.version == version)
            .values(balance=new_balance, version=version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_history(self, user_id: int, limit: int = 50, offset: int = 0) -> Tuple[List[Transaction], int]:
        """
        Paginated ledger entries of the user's account, newest first.

        Returns:
            Tuple of (entries on this page, total entry count)
        """
        account = await self.get_or_create_account(user_id)

        total_stmt = select(func.count()).select_from(Transaction).where(Transaction.account_id == account.id)
        total = (await self.session.execute(total_stmt)).scalar_one()

        stmt = (
            select(Transaction)
            .where(Transaction.account_id == account.id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
