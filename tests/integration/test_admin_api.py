"""End-to-end tests for the admin TOTP settings and forced enrollment"""

import pytest

from app.core.config import settings
from app.models.user import RoleEnum
from tests.integration.conftest import bearer

pytestmark = pytest.mark.integration


@pytest.fixture
async def admin_token(make_user, login):
    await make_user("root@example.com", role=RoleEnum.admin)
    return (await login("root@example.com"))["access_token"]


@pytest.fixture
async def user_token(make_user, login):
    await make_user()
    return (await login())["access_token"]


class TestTotpSettings:

    async def test_defaults(self, client, admin_token):
        resp = await client.get("/api/admin/settings/totp", headers=bearer(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {"totp_issuer": settings.APP_NAME, "totp_digits": 6, "totp_period": 30}

    async def test_requires_admin(self, client, user_token):
        assert (await client.get("/api/admin/settings/totp")).status_code == 401
        assert (await client.get("/api/admin/settings/totp", headers=bearer(user_token))).status_code == 401
        resp = await client.put(
            "/api/admin/settings/totp",
            json={"totp_issuer": "X", "totp_digits": 6, "totp_period": 30},
            headers=bearer(user_token),
        )
        assert resp.status_code == 401

    async def test_update_applies_to_new_setups(self, client, admin_token, user_token):
        resp = await client.put(
            "/api/admin/settings/totp",
            json={"totp_issuer": "Acme Corp", "totp_digits": "8", "totp_period": 60},
            headers=bearer(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json() == {"totp_issuer": "Acme Corp", "totp_digits": 8, "totp_period": 60}

        setup = (await client.post("/api/auth/2fa/setup", headers=bearer(user_token))).json()
        assert (setup["issuer"], setup["digits"], setup["period"]) == ("Acme Corp", 8, 60)
        assert "Acme%20Corp" in setup["otpauth_url"]

    @pytest.mark.parametrize("payload", [
        {"totp_issuer": "Acme", "totp_digits": 7, "totp_period": 30},
        {"totp_issuer": "Acme", "totp_digits": 6, "totp_period": 10},
        {"totp_issuer": "", "totp_digits": 6, "totp_period": 30},
        {"totp_digits": 6, "totp_period": 30},
    ])
    async def test_invalid_settings(self, client, admin_token, payload):
        resp = await client.put("/api/admin/settings/totp", json=payload, headers=bearer(admin_token))
        assert resp.status_code == 400
        assert resp.json()["errors"]


class TestForceTwoFactor:

    async def test_force_and_redirect_to_setup(self, client, admin_token, make_user, login):
        user = await make_user("dave@example.com")
        resp = await client.post(
            f"/api/admin/users/{user.id}/force-2fa",
            json={"is_two_factor_forced": True},
            headers=bearer(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["needs_two_factor_setup"] is True

        body = await login("dave@example.com")
        assert body["redirect_url"] == settings.SETUP_TOTP_PATH
        page = await client.get("/dashboard", headers=bearer(body["access_token"]))
        assert page.status_code == 303
        assert page.headers["location"] == settings.SETUP_TOTP_PATH

    async def test_unknown_user(self, client, admin_token):
        resp = await client.post(
            "/api/admin/users/missing/force-2fa",
            json={"is_two_factor_forced": True},
            headers=bearer(admin_token),
        )
        assert resp.status_code == 404
