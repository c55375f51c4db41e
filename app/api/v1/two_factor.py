from fastapi import APIRouter, Depends, Response

from app.api.deps import get_current_principal, get_current_user, get_full_user, get_two_factor_service
from app.api.v1.auth import set_session_cookie
from app.models.user import User
from app.schemas.auth import MessageOut
from app.schemas.two_factor import (
    TwoFASetupOut, TwoFAVerifyIn, TwoFAVerifyOut, PasswordConfirmIn,
    BackupCodesOut, BackupCodesStatusOut, TwoFAStatusOut,
)
from app.services import authenticator
from app.services.authenticator import SessionPrincipal
from app.services.two_factor import TwoFactorService

router = APIRouter(prefix="/auth/2fa", tags=["2fa"])


@router.post("/setup", response_model=TwoFASetupOut)
async def twofa_setup(
    current_user: User = Depends(get_full_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    # secreto nuevo; un setup pendiente anterior queda reemplazado
    result = await service.setup(current_user)
    return TwoFASetupOut(
        qr_code_data_url=result.qr_code_data_url,
        otpauth_url=result.otpauth_uri,
        secret=result.secret,
        issuer=result.issuer,
        digits=result.digits,
        period=result.period,
    )


@router.post("/verify", response_model=TwoFAVerifyOut)
async def twofa_verify(
    body: TwoFAVerifyIn,
    response: Response,
    principal: SessionPrincipal = Depends(get_current_principal),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    # una sesión intermedia se promueve en la misma transacción que consume el código
    pending_session = principal.session_id if principal.is_pending_two_factor else None
    result = await service.verify(
        principal.user_id, token=body.token, backup_code=body.backup_code, session_id=pending_session,
    )

    out = TwoFAVerifyOut(
        message="Autenticación en dos pasos habilitada" if result.enabled_now else "Código verificado",
        is_first_time=result.enabled_now,
        method=result.method,
        backup_codes=result.backup_codes,
    )
    if result.session_expires_at is not None:
        issued = authenticator.upgraded_session(principal, result.session_expires_at)
        set_session_cookie(response, issued)
        out.access_token = issued.access_token
        out.redirect_url = authenticator.landing_url(issued.principal)
    return out


@router.post("/disable", response_model=MessageOut)
async def twofa_disable(
    body: PasswordConfirmIn,
    current_user: User = Depends(get_full_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    await service.disable(current_user, body.password)
    return MessageOut(message="Autenticación en dos pasos deshabilitada")


@router.post("/backup-codes", response_model=BackupCodesOut)
async def regenerate_backup_codes(
    body: PasswordConfirmIn,
    current_user: User = Depends(get_full_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    codes = await service.regenerate_backup_codes(current_user, body.password)
    return BackupCodesOut(backup_codes=codes)


@router.get("/backup-codes/status", response_model=BackupCodesStatusOut)
async def backup_codes_status(
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    status = await service.status(current_user.id)
    return BackupCodesStatusOut(
        has_two_factor_enabled=status.enabled,
        available_backup_codes=status.available_backup_codes,
    )


@router.get("/status", response_model=TwoFAStatusOut)
async def twofa_status(
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    status = await service.status(current_user.id)
    return TwoFAStatusOut(
        enabled=status.enabled,
        state=status.state.value,
        digits=status.digits,
        period=status.period,
        created_at=status.created_at,
        last_used_at=status.last_used_at,
    )
