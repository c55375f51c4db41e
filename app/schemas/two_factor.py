# app/schemas/two_factor.py
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

class TwoFASetupOut(BaseModel):
    qr_code_data_url: str
    otpauth_url: str
    secret: str              # clave para carga manual en la app
    issuer: str
    digits: int
    period: int
    message: str = "Escaneá el QR con tu app de autenticación y confirmá con un código"

class TwoFAVerifyIn(BaseModel):
    token: Optional[str] = Field(None, pattern=r"^\d{6}(\d{2})?$")
    backup_code: Optional[str] = Field(None, min_length=4, max_length=32)

    @model_validator(mode="after")
    def _token_or_backup_code(self):
        if not self.token and not self.backup_code:
            raise ValueError("Se requiere un token TOTP o un código de respaldo")
        return self

class TwoFAVerifyOut(BaseModel):
    success: bool = True
    message: str
    is_first_time: bool
    method: Literal["totp", "backup_code"]
    backup_codes: Optional[list[str]] = None   # solo al habilitar
    access_token: Optional[str] = None          # re-emitido si la sesión pasó de intermedia a completa
    redirect_url: Optional[str] = None

class PasswordConfirmIn(BaseModel):
    password: str = Field(..., min_length=1, max_length=128)

class BackupCodesOut(BaseModel):
    success: bool = True
    backup_codes: list[str]
    message: str = "Se generaron códigos de respaldo nuevos. Guardalos en un lugar seguro."
    warning: str = "Estos códigos se muestran una sola vez."

class BackupCodesStatusOut(BaseModel):
    has_two_factor_enabled: bool
    available_backup_codes: int

class TwoFAStatusOut(BaseModel):
    enabled: bool
    state: Literal["none", "pending", "active"]
    digits: int
    period: int
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

class PendingVerificationOut(BaseModel):
    requires_two_factor: bool
    is_two_factor_authenticated: bool
    digits: int
    period: int
    backup_codes_available: bool
