from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.core.db import get_db, transaction
from app.core.security import hash_password
from app.api.deps import (
    get_current_principal, get_full_user, get_mailer, get_totp_settings,
)
from app.models.user import User, RoleEnum
from app.schemas.auth import RegisterIn, LoginIn, LoginOut, UserOut, SessionOut, MessageOut
from app.schemas.two_factor import PendingVerificationOut
from app.services import authenticator
from app.services.authenticator import SessionPrincipal
from app.services.mailer import Mailer
from app.services.totp_settings import TotpSettingsProvider
from app.services.two_factor import TwoFactorService

router = APIRouter(prefix="/auth", tags=["auth"])


def set_session_cookie(response: Response, issued: authenticator.IssuedSession) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        issued.access_token,
        httponly=True,
        samesite="lax",
        max_age=max(60, int((issued.expires_at - utcnow()).total_seconds())),
    )


@router.post("/register", response_model=UserOut, status_code=201)
async def register(
    payload: RegisterIn,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    email = payload.email.lower()
    exists = await db.execute(select(User.id).where(User.email == email))
    if exists.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="El email ya está registrado.")

    async with transaction(db):
        user = User(
            email=email,
            full_name=payload.full_name,
            role=RoleEnum.user,
            hashed_password=await hash_password(payload.password),
        )
        db.add(user)
    await db.refresh(user)

    token = await authenticator.issue_verification_token(db, email)
    await mailer.send_verification_email(email, token)
    return user


@router.post("/login", response_model=LoginOut)
async def login(
    payload: LoginIn,
    response: Response,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    issued = await authenticator.login(db, payload.email, payload.password, mailer)
    set_session_cookie(response, issued)
    principal = issued.principal
    if principal.is_pending_two_factor:
        redirect_url = settings.VERIFY_TOTP_PATH
    elif principal.needs_two_factor_setup:
        redirect_url = settings.SETUP_TOTP_PATH
    else:
        redirect_url = authenticator.landing_url(principal)
    return LoginOut(
        access_token=issued.access_token,
        expires_at=issued.expires_at,
        requires_two_factor=principal.is_pending_two_factor,
        redirect_url=redirect_url,
    )


@router.post("/logout", response_model=MessageOut)
async def logout(
    response: Response,
    principal: SessionPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    await authenticator.revoke_session(db, principal.session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return MessageOut(message="Sesión cerrada")


@router.get("/verify-email", response_model=MessageOut)
async def verify_email(
    token: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if not token:
        raise HTTPException(status_code=400, detail="Falta el token de verificación")
    await authenticator.verify_email(db, token)
    return MessageOut(message="Email verificado. Ya podés iniciar sesión.")


@router.get("/verify-totp", response_model=PendingVerificationOut)
async def pending_verification(
    principal: SessionPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    provider: TotpSettingsProvider = Depends(get_totp_settings),
):
    """Datos que necesita la pantalla de verificación 2FA."""
    status = await TwoFactorService(db, provider).status(principal.user_id)
    return PendingVerificationOut(
        requires_two_factor=principal.requires_two_factor,
        is_two_factor_authenticated=principal.is_two_factor_authenticated,
        digits=status.digits,
        period=status.period,
        backup_codes_available=status.available_backup_codes > 0,
    )


@router.get("/me", response_model=SessionOut)
async def me(
    principal: SessionPrincipal = Depends(get_current_principal),
    current_user: User = Depends(get_full_user),
):
    return SessionOut(
        user=UserOut.model_validate(current_user),
        requires_two_factor=principal.requires_two_factor,
        is_two_factor_authenticated=principal.is_two_factor_authenticated,
        needs_two_factor_setup=principal.needs_two_factor_setup,
    )
