"""
Account API Tests

Balance, deposit, withdraw and transaction history for the authenticated user.
"""
import asyncio
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
import structlog

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database, reset_test_schema
setup_test_database()

from backend.app.db.session import new_session
from backend.app.main import app
from backend.app.services import ledger_service
from backend.test_scripts.test_utils import DEFAULT_PASSWORD, create_customer, print_section, print_success

API = "/api"


@pytest.fixture(autouse=True)
def clean_schema():
    reset_test_schema()


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def headers(client) -> dict:
    """Bearer header of a fresh customer with a verified device."""
    async with new_session() as session:
        user, _ = await create_customer(session)
    response = await client.post(f"{API}/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


class TestBalance:

    @pytest.mark.asyncio
    async def test_new_account_balance(self, client, headers):
        response = await client.get(f"{API}/account/balance", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 0
        assert data["currency"] == "USD"
        assert "id" in data and "createdAt" in data

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get(f"{API}/account/balance")
        assert response.status_code == 401


class TestDepositWithdraw:

    @pytest.mark.asyncio
    async def test_scenario_deposit_then_overdraw(self, client, headers):
        print_section("Deposit 100, withdraw 150")

        deposit = await client.post(f"{API}/account/deposit", json={"amount": 100}, headers=headers)
        assert deposit.status_code == 200, deposit.text
        entry = deposit.json()
        assert entry["type"] == "DEPOSIT"
        assert entry["status"] == "COMPLETED"
        assert entry["amount"] == 100
        assert entry["balanceBefore"] == 0
        assert entry["balanceAfter"] == 100

        withdraw = await client.post(f"{API}/account/withdraw", json={"amount": 150}, headers=headers)
        assert withdraw.status_code == 400
        assert withdraw.json() == {"error": "Insufficient funds"}

        balance = await client.get(f"{API}/account/balance", headers=headers)
        assert balance.json()["balance"] == 100

        history = await client.get(f"{API}/account/transactions", headers=headers)
        assert history.json()["total"] == 1
        print_success("Balance 100.00 with a single COMPLETED deposit")

    @pytest.mark.asyncio
    async def test_withdraw_with_description(self, client, headers):
        await client.post(f"{API}/account/deposit", json={"amount": "50.25"}, headers=headers)

        response = await client.post(
            f"{API}/account/withdraw", json={"amount": 20, "description": "Groceries"}, headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["description"] == "Groceries"
        assert response.json()["balanceAfter"] == 30.25

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -10, 0.001, "abc", None])
    async def test_invalid_amounts(self, client, headers, amount):
        response = await client.post(f"{API}/account/deposit", json={"amount": amount}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_description_too_long(self, client, headers):
        response = await client.post(
            f"{API}/account/deposit", json={"amount": 1, "description": "x" * 256}, headers=headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_concurrent_withdrawals(self, client, headers):
        await client.post(f"{API}/account/deposit", json={"amount": 100}, headers=headers)

        responses = await asyncio.gather(*(
            client.post(f"{API}/account/withdraw", json={"amount": 100}, headers=headers) for _ in range(4)
        ))

        codes = sorted(r.status_code for r in responses)
        assert codes == [200, 400, 400, 400]
        balance = await client.get(f"{API}/account/balance", headers=headers)
        assert balance.json()["balance"] == 0


class TestHistory:

    @pytest.mark.asyncio
    async def test_pagination(self, client, headers):
        for amount in (1, 2, 3):
            await client.post(f"{API}/account/deposit", json={"amount": amount}, headers=headers)

        response = await client.get(f"{API}/account/transactions?limit=2&offset=0", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [t["amount"] for t in data["transactions"]] == [3, 2]

    @pytest.mark.asyncio
    async def test_limit_bounds(self, client, headers):
        response = await client.get(f"{API}/account/transactions?limit=0", headers=headers)
        assert response.status_code == 400


class ContextRecorder:
    """Stands in for a module logger; keeps each event with the request context bound at that point."""

    def __init__(self):
        self.events = []

    def _record(self, event, **kwargs):
        self.events.append({"event": event, "context": structlog.contextvars.get_contextvars(), **kwargs})

    debug = info = warning = exception = _record


class TestRequestLogContext:

    @pytest.mark.asyncio
    async def test_ledger_log_lines_carry_request_and_user(self, client, headers, monkeypatch):
        recorder = ContextRecorder()
        monkeypatch.setattr(ledger_service, "logger", recorder)

        response = await client.post(
            f"{API}/account/deposit", json={"amount": 5}, headers={**headers, "X-Request-ID": "req-deposit-1"},
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-deposit-1"
        completed = [e for e in recorder.events if e["event"] == "Deposit completed"]
        assert len(completed) == 1
        assert completed[0]["context"] == {
            "request_id": "req-deposit-1",
            "method": "POST",
            "path": "/api/account/deposit",
            "user_id": completed[0]["user_id"],
        }
