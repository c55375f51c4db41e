# app/models/system_settings.py
import datetime as dt
from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from app.core.db import Base


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    totp_issuer: Mapped[str] = mapped_column(String(64), nullable=False)
    totp_digits: Mapped[int] = mapped_column(Integer, default=6, nullable=False)
    totp_period: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), server_default=func.now(), nullable=False)
