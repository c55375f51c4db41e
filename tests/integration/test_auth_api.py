"""End-to-end tests for registration, email verification, login and logout"""

from urllib.parse import parse_qs, urlparse

import pytest

from app.core.config import settings
from app.models.user import RoleEnum
from tests.conftest import DEFAULT_PASSWORD
from tests.integration.conftest import bearer

pytestmark = pytest.mark.integration

REGISTRATION = {"full_name": "Carol", "email": "carol@example.com", "password": DEFAULT_PASSWORD}


def token_from_link(link: str) -> str:
    return parse_qs(urlparse(link).query)["token"][0]


class TestRegistration:

    async def test_register_sends_verification_link(self, app, client):
        resp = await client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201
        body = resp.json()
        assert body["email"] == "carol@example.com"
        assert body["email_verified_at"] is None
        assert "hashed_password" not in body

        email, link = app.state.mailer.outbox[-1]
        assert email == "carol@example.com"
        assert link.startswith(settings.APP_URL)

    async def test_duplicate_email(self, client):
        await client.post("/api/auth/register", json=REGISTRATION)
        resp = await client.post("/api/auth/register", json={**REGISTRATION, "email": "CAROL@example.com"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("override", [
        {"email": "not-an-email"},
        {"password": "short"},
        {"full_name": ""},
    ])
    async def test_invalid_payload(self, client, override):
        resp = await client.post("/api/auth/register", json={**REGISTRATION, **override})
        assert resp.status_code == 400
        assert resp.json()["errors"]


class TestEmailVerification:

    async def test_login_requires_verified_email(self, app, client):
        await client.post("/api/auth/register", json=REGISTRATION)
        creds = {"email": REGISTRATION["email"], "password": REGISTRATION["password"]}

        refused = await client.post("/api/auth/login", json=creds)
        assert refused.status_code == 403
        # cada intento emite un link nuevo
        assert len(app.state.mailer.outbox) == 2

        token = token_from_link(app.state.mailer.outbox[-1][1])
        verified = await client.get("/api/auth/verify-email", params={"token": token})
        assert verified.status_code == 200

        resp = await client.post("/api/auth/login", json=creds)
        assert resp.status_code == 200
        assert resp.json()["requires_two_factor"] is False

    async def test_missing_token(self, client):
        assert (await client.get("/api/auth/verify-email")).status_code == 400

    async def test_unknown_token(self, client):
        assert (await client.get("/api/auth/verify-email", params={"token": "nope"})).status_code == 404

    async def test_token_is_single_use(self, app, client):
        await client.post("/api/auth/register", json=REGISTRATION)
        token = token_from_link(app.state.mailer.outbox[-1][1])
        assert (await client.get("/api/auth/verify-email", params={"token": token})).status_code == 200
        assert (await client.get("/api/auth/verify-email", params={"token": token})).status_code == 404


class TestLoginLogout:

    async def test_login_sets_cookie_and_redirect(self, client, make_user):
        await make_user()
        resp = await client.post("/api/auth/login", json={"email": "alice@example.com", "password": DEFAULT_PASSWORD})
        assert resp.status_code == 200
        body = resp.json()
        assert body["redirect_url"] == settings.HOME_PATH
        assert settings.SESSION_COOKIE_NAME in resp.cookies

    async def test_admin_lands_on_admin_home(self, client, make_user, login):
        await make_user("root@example.com", role=RoleEnum.admin)
        assert (await login("root@example.com"))["redirect_url"] == settings.ADMIN_HOME_PATH

    async def test_bad_credentials(self, client, make_user):
        await make_user()
        for creds in ({"email": "alice@example.com", "password": "wrong"},
                      {"email": "ghost@example.com", "password": DEFAULT_PASSWORD}):
            resp = await client.post("/api/auth/login", json=creds)
            assert resp.status_code == 401
            assert resp.json()["detail"] == "Credenciales inválidas"

    async def test_me_and_logout(self, client, make_user, login):
        await make_user()
        token = (await login())["access_token"]

        me = await client.get("/api/auth/me", headers=bearer(token))
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "alice@example.com"

        assert (await client.post("/api/auth/logout", headers=bearer(token))).status_code == 200
        assert (await client.get("/api/auth/me", headers=bearer(token))).status_code == 401

    async def test_pages_redirect_anonymous_to_login(self, client):
        resp = await client.get("/dashboard")
        assert resp.status_code == 303
        assert resp.headers["location"] == settings.LOGIN_PATH

    async def test_health_is_public(self, client):
        assert (await client.get("/health")).json() == {"status": "ok"}
