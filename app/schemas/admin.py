# app/schemas/admin.py
from pydantic import BaseModel, Field, field_validator

class TotpSettingsIn(BaseModel):
    # strings numéricos ("8", "60") se convierten a int en modo lax
    totp_issuer: str = Field(..., min_length=1, max_length=64)
    totp_digits: int
    totp_period: int = Field(..., ge=30, le=1800)

    @field_validator("totp_issuer")
    @classmethod
    def _strip_issuer(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("issuer cannot be blank")
        return v

    @field_validator("totp_digits")
    @classmethod
    def _digits(cls, v: int) -> int:
        if v not in (6, 8):
            raise ValueError("digits must be 6 or 8")
        return v

class TotpSettingsOut(BaseModel):
    totp_issuer: str
    totp_digits: int
    totp_period: int

class ForceTwoFactorIn(BaseModel):
    is_two_factor_forced: bool

class ForcedUserOut(BaseModel):
    id: str
    email: str
    is_two_factor_forced: bool
    has_two_factor_enabled: bool
    needs_two_factor_setup: bool

class ForceTwoFactorOut(BaseModel):
    success: bool = True
    user: ForcedUserOut
