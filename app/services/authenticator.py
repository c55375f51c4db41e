"""
Autenticación por credenciales y sesiones del lado servidor.

El login valida email+password, exige email verificado y, si el usuario
tiene 2FA ACTIVE, crea una sesión intermedia (`requires_two_factor=True`,
`two_factor_authenticated=False`). El JWT solo identifica la sesión
(`sid`); el principal se reconstruye desde la base en cada request y el
upgrade tras verificar el segundo factor es un único UPDATE en el servidor,
hecho en la misma transacción que consume el código (`promote_session`).
"""
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.core.db import transaction
from app.core.errors import (
    AuthenticationError, EmailNotVerifiedError, NotFoundError, SecurityError, TokenExpiredError, ValidationError,
)
from app.core.security import create_access_token, decode_access_token, verify_password
from app.models.auth_session import AuthSession
from app.models.two_factor import TwoFactorEnrollment
from app.models.user import RoleEnum, User
from app.models.verification_token import VerificationToken
from app.services.mailer import Mailer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPrincipal:
    user_id: str
    email: str
    role: RoleEnum
    session_id: str
    requires_two_factor: bool
    is_two_factor_authenticated: bool
    needs_two_factor_setup: bool = False

    @property
    def is_pending_two_factor(self) -> bool:
        return self.requires_two_factor and not self.is_two_factor_authenticated

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.admin


@dataclass
class IssuedSession:
    principal: SessionPrincipal
    access_token: str
    expires_at: datetime


def landing_url(principal: SessionPrincipal) -> str:
    return settings.ADMIN_HOME_PATH if principal.is_admin else settings.HOME_PATH


async def two_factor_enabled(db: AsyncSession, user_id: str) -> bool:
    res = await db.execute(
        select(TwoFactorEnrollment.enabled).where(TwoFactorEnrollment.user_id == user_id)
    )
    return bool(res.scalar_one_or_none())


# ---------- credenciales ----------

async def authenticate(db: AsyncSession, email: str, password: str, mailer: Mailer) -> User:
    res = await db.execute(select(User).where(User.email == email.lower()))
    user = res.scalar_one_or_none()
    # con hash None verify_password consume el mismo tiempo que con uno real
    password_ok = await verify_password(password, user.hashed_password if user else None)
    if user is None or not password_ok or not user.is_active:
        raise AuthenticationError(SecurityError.detail)

    if user.email_verified_at is None:
        token = await issue_verification_token(db, user.email)
        await mailer.send_verification_email(user.email, token)
        logger.info("login refused, email not verified user_id=%s", user.id)
        raise EmailNotVerifiedError()
    return user


async def login(db: AsyncSession, email: str, password: str, mailer: Mailer) -> IssuedSession:
    user = await authenticate(db, email, password, mailer)
    requires = await two_factor_enabled(db, user.id)
    issued = await issue_session(db, user, requires_two_factor=requires)
    logger.info("login user_id=%s pending_2fa=%s", user.id, requires)
    return issued


# ---------- sesiones ----------

def _session_token(user_id: str, role: RoleEnum, session_id: str, expires_at: datetime) -> str:
    minutes = max(1, math.ceil((expires_at - utcnow()).total_seconds() / 60))
    return create_access_token(
        subject=user_id,
        extra={"sid": session_id, "role": role.value},
        expires_minutes=minutes,
    )


async def issue_session(db: AsyncSession, user: User, *, requires_two_factor: bool) -> IssuedSession:
    minutes = settings.PENDING_TOKEN_EXPIRE_MINUTES if requires_two_factor else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    async with transaction(db):
        session = AuthSession(
            user_id=user.id,
            requires_two_factor=requires_two_factor,
            two_factor_authenticated=False,
            expires_at=utcnow() + timedelta(minutes=minutes),
        )
        db.add(session)
    principal = SessionPrincipal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        session_id=session.id,
        requires_two_factor=requires_two_factor,
        is_two_factor_authenticated=False,
        needs_two_factor_setup=user.is_two_factor_forced and not requires_two_factor,
    )
    token = _session_token(user.id, user.role, session.id, session.expires_at)
    return IssuedSession(principal=principal, access_token=token, expires_at=session.expires_at)


async def resolve_principal(db: AsyncSession, token: str | None) -> SessionPrincipal | None:
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload:
        return None
    sid, sub = payload.get("sid"), payload.get("sub")
    if not isinstance(sid, str) or not isinstance(sub, str):
        return None

    row = (await db.execute(
        select(AuthSession, User, TwoFactorEnrollment.enabled)
        .join(User, User.id == AuthSession.user_id)
        .outerjoin(TwoFactorEnrollment, TwoFactorEnrollment.user_id == User.id)
        .where(AuthSession.id == sid, AuthSession.user_id == sub)
        .execution_options(populate_existing=True)
    )).first()
    if row is None:
        return None
    session, user, tfa_enabled = row
    if session.revoked_at is not None or session.expires_at <= utcnow() or not user.is_active:
        return None

    return SessionPrincipal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        session_id=session.id,
        requires_two_factor=session.requires_two_factor,
        is_two_factor_authenticated=session.two_factor_authenticated,
        needs_two_factor_setup=user.is_two_factor_forced and not tfa_enabled,
    )


async def promote_session(db: AsyncSession, session_id: str) -> datetime:
    """
    Marca la sesión intermedia como autenticada y extiende su vida. No hace
    commit: corre dentro de la transacción del verify, así un upgrade
    fallido revierte también el consumo del código.
    """
    now = utcnow()
    expires_at = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    res = await db.execute(
        update(AuthSession)
        .where(
            AuthSession.id == session_id,
            AuthSession.requires_two_factor.is_(True),
            AuthSession.revoked_at.is_(None),
            AuthSession.expires_at > now,
        )
        .values(two_factor_authenticated=True, expires_at=expires_at)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise AuthenticationError()
    return expires_at


def upgraded_session(principal: SessionPrincipal, expires_at: datetime) -> IssuedSession:
    """Re-emite el token de una sesión ya promovida, con la vida completa."""
    upgraded = SessionPrincipal(
        user_id=principal.user_id,
        email=principal.email,
        role=principal.role,
        session_id=principal.session_id,
        requires_two_factor=True,
        is_two_factor_authenticated=True,
        needs_two_factor_setup=False,
    )
    logger.info("session upgraded after 2fa user_id=%s", principal.user_id)
    token = _session_token(principal.user_id, principal.role, principal.session_id, expires_at)
    return IssuedSession(principal=upgraded, access_token=token, expires_at=expires_at)


async def revoke_session(db: AsyncSession, session_id: str) -> None:
    async with transaction(db):
        await db.execute(
            update(AuthSession)
            .where(AuthSession.id == session_id, AuthSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )


# ---------- verificación de email ----------

async def issue_verification_token(db: AsyncSession, email: str) -> str:
    token = secrets.token_urlsafe(32)
    async with transaction(db):
        await db.execute(delete(VerificationToken).where(VerificationToken.identifier == email))
        db.add(VerificationToken(
            token=token,
            identifier=email,
            expires_at=utcnow() + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
        ))
    return token


async def verify_email(db: AsyncSession, token: str) -> User:
    vt = await db.get(VerificationToken, token)
    if vt is None:
        raise NotFoundError("Token de verificación inválido o ya utilizado")

    if vt.expires_at < utcnow():
        async with transaction(db):
            await db.delete(vt)
        raise TokenExpiredError()

    res = await db.execute(select(User).where(User.email == vt.identifier))
    user = res.scalar_one_or_none()
    if user is None:
        raise ValidationError("No hay un usuario asociado a este token")

    async with transaction(db):
        user.email_verified_at = utcnow()
        await db.delete(vt)
    logger.info("email verified user_id=%s", user.id)
    return user
