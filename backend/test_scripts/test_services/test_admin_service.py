"""
Tests for admin_service (dashboard stats and listings).

Reference: backend/app/services/admin_service.py
"""
import sys
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database, reset_test_schema
setup_test_database()

from backend.app.db.models import TransactionStatus, TransactionType
from backend.app.db.session import new_session
from backend.app.errors import NotFoundError
from backend.app.services import admin_service
from backend.app.services.ledger_service import LedgerService
from backend.test_scripts.test_utils import create_admin, create_customer


@pytest.fixture(autouse=True)
def clean_schema():
    reset_test_schema()


@pytest_asyncio.fixture
async def session():
    async with new_session() as session:
        yield session


@pytest_asyncio.fixture
async def populated(session):
    """Admin + two customers with some ledger activity."""
    await create_admin(session)
    alice, _ = await create_customer(session)
    bob, _ = await create_customer(session, verified=False)

    ledger = LedgerService(session)
    await ledger.deposit(alice.id, 100)
    await ledger.withdraw(alice.id, "30.25")
    await ledger.deposit(bob.id, "50.50")
    return alice, bob


class TestStats:

    @pytest.mark.asyncio
    async def test_empty_database(self, session):
        stats = await admin_service.get_stats(session)

        assert stats["users_count"] == 0
        assert stats["devices"] == {"total": 0, "verified": 0}
        assert stats["accounts"]["total"] == 0
        assert stats["accounts"]["balance_sum"] == Decimal("0.00")
        assert stats["transactions"]["deposits_total"] == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_populated(self, session, populated):
        stats = await admin_service.get_stats(session)

        assert stats["users_count"] == 3
        assert stats["devices"] == {"total": 3, "verified": 2}
        # The admin has no account: seeding does not create one
        assert stats["accounts"]["total"] == 2
        assert stats["accounts"]["balance_sum"] == Decimal("120.25")
        assert stats["transactions"]["total"] == 3
        assert stats["transactions"]["deposits_total"] == Decimal("150.50")
        assert stats["transactions"]["withdrawals_total"] == Decimal("30.25")


class TestListings:

    @pytest.mark.asyncio
    async def test_list_accounts_with_owner(self, session, populated):
        alice, bob = populated

        accounts = await admin_service.list_accounts(session)

        assert [a["user_id"] for a in accounts] == [alice.id, bob.id]
        assert accounts[0]["email"] == alice.email
        assert accounts[0]["balance"] == Decimal("69.75")

    @pytest.mark.asyncio
    async def test_list_transactions_filters(self, session, populated):
        alice, bob = populated

        items, total = await admin_service.list_transactions(session)
        assert total == 3
        assert items[0]["email"] == bob.email  # newest first

        items, total = await admin_service.list_transactions(session, tx_type=TransactionType.WITHDRAWAL)
        assert total == 1
        assert items[0]["user_id"] == alice.id

        items, total = await admin_service.list_transactions(session, user_id=alice.id)
        assert total == 2

        items, total = await admin_service.list_transactions(session, status=TransactionStatus.FAILED)
        assert (items, total) == ([], 0)

    @pytest.mark.asyncio
    async def test_list_transactions_pagination(self, session, populated):
        items, total = await admin_service.list_transactions(session, limit=1, offset=1)
        assert total == 3
        assert len(items) == 1
        assert items[0]["type"] == TransactionType.WITHDRAWAL


class TestUserDetails:

    @pytest.mark.asyncio
    async def test_details(self, session, populated):
        alice, _ = populated

        details = await admin_service.get_user_details(session, alice.id)

        assert details["user"].id == alice.id
        assert details["account"].balance == Decimal("69.75")
        assert len(details["devices"]) == 1
        assert len(details["transactions"]) == 2

    @pytest.mark.asyncio
    async def test_details_without_account(self, session):
        admin = await create_admin(session)

        details = await admin_service.get_user_details(session, admin.id)

        assert details["account"] is None
        assert details["transactions"] == []

    @pytest.mark.asyncio
    async def test_details_missing_user(self, session):
        with pytest.raises(NotFoundError):
            await admin_service.get_user_details(session, 9999)
