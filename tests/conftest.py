"""
Fixtures compartidas.

La configuración se lee al importar `app.core.config`, por eso las
variables de entorno se fijan antes de cualquier import de `app`.
Cada test trabaja sobre una base sqlite en archivo, creada y borrada
por el fixture `db`.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="twofactor-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["PASSWORD_BCRYPT_ROUNDS"] = "4"
os.environ["BACKUP_CODE_BCRYPT_ROUNDS"] = "4"

import pytest
import httpx

from app.core.clock import utcnow
from app.core.db import Base, SessionLocal, engine
from app.core.security import hash_password
from app.models.user import RoleEnum, User
from app.services.mailer import LoggingMailer, verification_link
from app.services.totp_settings import TotpSettingsProvider

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with SessionLocal() as session:
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def provider() -> TotpSettingsProvider:
    return TotpSettingsProvider(ttl_seconds=60, default_issuer="TwoFactor Test")


@pytest.fixture
def make_user(db):
    """Factory de usuarios con email verificado (salvo que se pida lo contrario)."""

    async def _make(
        email: str = "alice@example.com",
        password: str = DEFAULT_PASSWORD,
        role: RoleEnum = RoleEnum.user,
        verified: bool = True,
        forced: bool = False,
    ) -> User:
        user = User(
            email=email,
            full_name=email.split("@")[0].title(),
            role=role,
            hashed_password=await hash_password(password),
            is_active=True,
            email_verified_at=utcnow() if verified else None,
            is_two_factor_forced=forced,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


class RecordingMailer(LoggingMailer):
    """Guarda (email, link) para que los tests puedan seguir el link de verificación."""

    def __init__(self):
        self.outbox: list[tuple[str, str]] = []

    async def send_verification_email(self, email: str, token: str) -> None:
        await super().send_verification_email(email, token)
        self.outbox.append((email, verification_link(token)))


@pytest.fixture
def app(db):
    from app.main import create_app
    application = create_app()
    application.state.mailer = RecordingMailer()
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
