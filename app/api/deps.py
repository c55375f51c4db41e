from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import AuthenticationError
from app.middleware import token_from_request
from app.models.user import User, RoleEnum
from app.services.authenticator import SessionPrincipal, resolve_principal
from app.services.mailer import Mailer
from app.services.totp_settings import TotpSettingsProvider
from app.services.two_factor import TwoFactorService


def get_totp_settings(request: Request) -> TotpSettingsProvider:
    return request.app.state.totp_settings

def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer

# --- sesión ---

async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SessionPrincipal:
    """Sesión válida, intermedia (2FA pendiente) o completa."""
    principal = await resolve_principal(db, token_from_request(request))
    if principal is None:
        raise AuthenticationError()
    return principal

async def get_full_principal(
    principal: SessionPrincipal = Depends(get_current_principal),
) -> SessionPrincipal:
    if principal.is_pending_two_factor:
        raise AuthenticationError("Se requiere verificación 2FA")
    return principal

async def get_current_user(
    principal: SessionPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, principal.user_id)
    if user is None:
        raise AuthenticationError()
    return user

async def get_full_user(
    principal: SessionPrincipal = Depends(get_full_principal),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, principal.user_id)
    if user is None:
        raise AuthenticationError()
    return user

# --- Role-based dependency ---

def require_roles(*roles: RoleEnum):
    async def _guard(principal: SessionPrincipal = Depends(get_full_principal)) -> SessionPrincipal:
        if principal.role not in roles:
            # mismo 401 que sin sesión
            raise AuthenticationError("Usuario no autorizado")
        return principal
    return _guard

# --- servicios ---

def get_two_factor_service(
    db: AsyncSession = Depends(get_db),
    provider: TotpSettingsProvider = Depends(get_totp_settings),
) -> TwoFactorService:
    return TwoFactorService(db, provider)
