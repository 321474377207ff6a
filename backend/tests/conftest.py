import asyncio
import os
import tempfile
import time

# Point the app at a throwaway database before any clinic module reads settings
_db_dir = tempfile.mkdtemp(prefix="clinic-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["EMAIL_PROVIDER"] = "console"

import pytest
from fastapi.testclient import TestClient
from clinic.database import engine, Base
from clinic.exceptions import EmailDeliveryError
from clinic.main import app
from clinic.services.email_service import get_email_service
from clinic.services.otp_service import otp_rate_limiter, otp_store


class FakeMailer:
    """Collects codes instead of emailing them."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_otp(self, to_email: str, code: str) -> None:
        if self.fail:
            raise EmailDeliveryError("connection refused")
        self.sent.append((to_email, code))

    def last_code(self, email: str) -> str:
        return [code for to, code in self.sent if to == email][-1]


async def _reset_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(mailer):
    asyncio.run(_reset_db())
    otp_store.clear()
    otp_store.clock = time.time
    otp_rate_limiter.clear()
    app.dependency_overrides[get_email_service] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    otp_store.clock = time.time


@pytest.fixture
def login(client, mailer):
    """Run the full code flow for an email and return auth headers."""
    def _login(email: str = "doc@example.com", role_hint: str = None) -> dict:
        body = {"email": email}
        if role_hint:
            body["role_hint"] = role_hint
        response = client.post("/api/auth/send-otp", json=body)
        assert response.status_code == 200, response.json()
        response = client.post(
            "/api/auth/verify-otp",
            json={"email": email, "code": mailer.last_code(email)},
        )
        assert response.status_code == 200, response.json()
        token = response.json()["data"]["token"]
        return {"Authorization": f"Bearer {token}"}
    return _login
