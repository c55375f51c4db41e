# app/models/two_factor.py
from __future__ import annotations
import datetime as dt
from typing import TYPE_CHECKING
from sqlalchemy import String, Text, Integer, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.db import Base

if TYPE_CHECKING:
    from app.models.user import User


class TwoFactorEnrollment(Base):
    __tablename__ = "two_factor_enrollments"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    # secreto TOTP cifrado (Fernet); NULL cuando 2FA está deshabilitado
    encrypted_secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # snapshot de la configuración del sistema al momento del setup
    digits: Mapped[int] = mapped_column(Integer, default=6, nullable=False)
    period: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    last_used_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_used_step: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), server_default=func.now(), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="two_factor", uselist=False)


class BackupCode(Base):
    __tablename__ = "backup_codes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    code_hash: Mapped[str] = mapped_column(String(128), nullable=False)   # solo el hash bcrypt
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), server_default=func.now(), nullable=False)
