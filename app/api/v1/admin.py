from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_totp_settings, require_roles
from app.core.db import get_db, transaction
from app.models.user import User, RoleEnum
from app.schemas.admin import (
    TotpSettingsIn, TotpSettingsOut, ForceTwoFactorIn, ForceTwoFactorOut, ForcedUserOut,
)
from app.services.authenticator import two_factor_enabled
from app.services.totp_settings import TotpSettingsProvider

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_roles(RoleEnum.admin))],
)


@router.get("/settings/totp", response_model=TotpSettingsOut)
async def get_totp_settings_endpoint(
    db: AsyncSession = Depends(get_db),
    provider: TotpSettingsProvider = Depends(get_totp_settings),
):
    config = await provider.get(db)
    return TotpSettingsOut(totp_issuer=config.issuer, totp_digits=config.digits, totp_period=config.period)


@router.put("/settings/totp", response_model=TotpSettingsOut)
async def update_totp_settings(
    payload: TotpSettingsIn,
    db: AsyncSession = Depends(get_db),
    provider: TotpSettingsProvider = Depends(get_totp_settings),
):
    config = await provider.update(
        db, issuer=payload.totp_issuer, digits=payload.totp_digits, period=payload.totp_period
    )
    return TotpSettingsOut(totp_issuer=config.issuer, totp_digits=config.digits, totp_period=config.period)


@router.post("/users/{user_id}/force-2fa", response_model=ForceTwoFactorOut)
async def force_two_factor(
    user_id: str,
    payload: ForceTwoFactorIn,
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")

    async with transaction(db):
        user.is_two_factor_forced = payload.is_two_factor_forced

    enabled = await two_factor_enabled(db, user.id)
    return ForceTwoFactorOut(user=ForcedUserOut(
        id=user.id,
        email=user.email,
        is_two_factor_forced=user.is_two_factor_forced,
        has_two_factor_enabled=enabled,
        needs_two_factor_setup=user.is_two_factor_forced and not enabled,
    ))
