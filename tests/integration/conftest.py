"""Helpers for driving the API end to end through httpx."""

import time

import pytest

from app.services import totp
from tests.conftest import DEFAULT_PASSWORD


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def current_token(secret: str, digits: int = 6, period: int = 30, steps_ahead: int = 0) -> str:
    return totp.token_at(secret, time.time() + steps_ahead * period, digits=digits, period=period)


@pytest.fixture
def login(client):
    async def _login(email: str = "alice@example.com", password: str = DEFAULT_PASSWORD) -> dict:
        resp = await client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _login


@pytest.fixture
def enable_two_factor(client):
    """Setup + primera verificación por API; devuelve (secret, backup_codes)."""
    async def _enable(token: str) -> tuple[str, list[str]]:
        setup = await client.post("/api/auth/2fa/setup", headers=bearer(token))
        assert setup.status_code == 200, setup.text
        secret = setup.json()["secret"]
        verify = await client.post(
            "/api/auth/2fa/verify",
            json={"token": current_token(secret)},
            headers=bearer(token),
        )
        assert verify.status_code == 200, verify.text
        return secret, verify.json()["backup_codes"]
    return _enable
