from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from enum import Enum

class Role(str, Enum):
    user = "user"
    admin = "admin"

class RegisterIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=64)

class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime

class LoginOut(TokenOut):
    requires_two_factor: bool
    redirect_url: str

class UserOut(BaseModel):
    id: str
    full_name: str
    email: EmailStr
    role: Role
    is_active: bool
    email_verified_at: datetime | None = None
    is_two_factor_forced: bool = False

    class Config:
        from_attributes = True

class SessionOut(BaseModel):
    user: UserOut
    requires_two_factor: bool
    is_two_factor_authenticated: bool
    needs_two_factor_setup: bool

class MessageOut(BaseModel):
    success: bool = True
    message: str
