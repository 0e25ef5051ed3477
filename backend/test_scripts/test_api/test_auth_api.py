"""
Authentication API Tests

Tests for register, login, verify-token and request-password-reset, plus the
bearer-token guard shared by the other routers.
"""
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database, reset_test_schema
setup_test_database()

from backend.app.db.session import new_session
from backend.app.main import app
from backend.app.services import device_service, user_service
from backend.test_scripts.test_utils import (
    ADMIN_PASSWORD,
    DEFAULT_PASSWORD,
    create_admin,
    create_customer,
    print_section,
    print_success,
    unique_email,
    )

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
async def session():
    async with new_session() as session:
        yield session


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client, email=None, password=DEFAULT_PASSWORD) -> httpx.Response:
    return await client.post(f"{API}/auth/register", json={
        "email": email or unique_email(),
        "password": password,
        "firstName": "Jane",
        "lastName": "Doe",
    })


class TestRegister:
    """Tests for POST /auth/register."""

    @pytest.mark.asyncio
    async def test_register_success(self, client):
        print_section("Register new user")
        email = unique_email()

        response = await register(client, email)

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["message"] == "Registration successful. Please wait for device verification."
        assert data["user"]["email"] == email
        assert data["user"]["firstName"] == "Jane"
        assert data["user"]["role"] == "user"
        assert data["user"]["isActive"] is True
        assert "hashedPassword" not in data["user"]
        assert data["device"]["isVerified"] is False
        assert data["device"]["deviceId"].startswith("dev_")
        print_success("User registered with a pending device")

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client):
        email = unique_email()
        await register(client, email)

        response = await register(client, email.upper())

        assert response.status_code == 400
        assert response.json() == {"error": "User already exists"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"email": "not-an-email", "password": "secret123", "firstName": "A", "lastName": "B"},
        {"email": "a@example.com", "password": "123", "firstName": "A", "lastName": "B"},
        {"email": "a@example.com", "password": "secret123", "firstName": "   ", "lastName": "B"},
        {"email": "a@example.com", "password": "secret123"},
    ])
    async def test_register_validation(self, client, payload):
        response = await client.post(f"{API}/auth/register", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["errors"]


class TestLogin:
    """Tests for POST /auth/login."""

    @pytest.mark.asyncio
    async def test_login_pending_device(self, client):
        email = unique_email()
        await register(client, email)

        response = await client.post(f"{API}/auth/login", json={"email": email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 401
        assert "verification" in response.json()["error"].lower()

    @pytest.mark.asyncio
    async def test_login_after_verification(self, client, session):
        print_section("Register, verify device, login")
        email = unique_email()
        device_id = (await register(client, email)).json()["device"]["deviceId"]
        await device_service.verify_device(session, device_id)

        response = await client.post(f"{API}/auth/login", json={
            "email": email, "password": DEFAULT_PASSWORD, "deviceId": device_id,
        })

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == email
        assert data["device"]["deviceId"] == device_id
        assert data["device"]["lastLogin"] is not None
        print_success("Token issued")

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, session):
        user, _ = await create_customer(session)

        response = await client.post(f"{API}/auth/login", json={"email": user.email, "password": "wrong-pass"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_login_unknown_email_indistinguishable(self, client):
        response = await client.post(f"{API}/auth/login", json={
            "email": unique_email(), "password": DEFAULT_PASSWORD,
        })

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_admin_login_new_device(self, client, session):
        admin = await create_admin(session)

        response = await client.post(f"{API}/auth/login", json={
            "email": admin.email, "password": ADMIN_PASSWORD, "deviceId": "fresh-laptop",
        })

        assert response.status_code == 200, response.text
        assert response.json()["device"]["isVerified"] is True
        assert response.json()["user"]["role"] == "admin"


class TestVerifyToken:
    """Tests for GET /auth/verify-token and the bearer guard."""

    @pytest.mark.asyncio
    async def test_valid_token(self, client, session):
        user, device = await create_customer(session)
        login = await client.post(f"{API}/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        token = login.json()["token"]

        response = await client.get(f"{API}/auth/verify-token", headers=bearer(token))

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user.id
        assert response.json()["device"]["id"] == device.id

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get(f"{API}/auth/verify-token")

        assert response.status_code == 401
        assert response.json() == {"error": "Access token required"}

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(f"{API}/auth/verify-token", headers=bearer("garbage.token.value"))

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    @pytest.mark.asyncio
    async def test_deactivated_user_token_rejected(self, client, session):
        print_section("Deactivated user with a still-valid token")
        user, _ = await create_customer(session)
        login = await client.post(f"{API}/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        token = login.json()["token"]

        await user_service.set_user_active(session, user.id, False)

        response = await client.get(f"{API}/account/balance", headers=bearer(token))
        assert response.status_code == 403
        assert response.json() == {"error": "Account inactive. Please contact support."}

        relogin = await client.post(f"{API}/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert relogin.status_code == 401
        assert relogin.json() == {"error": "Invalid credentials"}
        print_success("Token rejected on next request, login denied")

    @pytest.mark.asyncio
    async def test_deleted_user_token_rejected(self, client, session):
        user, _ = await create_customer(session)
        login = await client.post(f"{API}/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        token = login.json()["token"]

        await user_service.delete_user(session, user.id)

        response = await client.get(f"{API}/auth/verify-token", headers=bearer(token))
        assert response.status_code == 403


class TestPasswordReset:
    """Tests for POST /auth/request-password-reset."""

    @pytest.mark.asyncio
    async def test_reset_known_email(self, client, session):
        user, _ = await create_customer(session)

        response = await client.post(f"{API}/auth/request-password-reset", json={"email": user.email})

        assert response.status_code == 200
        temp = response.json()["tempPassword"]
        login = await client.post(f"{API}/auth/login", json={"email": user.email, "password": temp})
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_reset_unknown_email_same_message(self, client, session):
        user, _ = await create_customer(session)
        known = await client.post(f"{API}/auth/request-password-reset", json={"email": user.email})
        unknown = await client.post(f"{API}/auth/request-password-reset", json={"email": unique_email()})

        assert unknown.status_code == 200
        assert unknown.json()["message"] == known.json()["message"]
        assert "tempPassword" not in unknown.json()

    @pytest.mark.asyncio
    async def test_temp_password_hidden_unless_enabled(self, client, session, monkeypatch):
        user, _ = await create_customer(session)
        monkeypatch.setenv("EXPOSE_TEMP_PASSWORD", "false")

        response = await client.post(f"{API}/auth/request-password-reset", json={"email": user.email})

        assert response.status_code == 200
        assert "tempPassword" not in response.json()


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_health_not_under_api_prefix(self, client):
        response = await client.get(f"{API}/health")
        assert response.status_code == 404
