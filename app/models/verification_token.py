# app/models/verification_token.py
import datetime as dt
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from app.core.db import Base


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    identifier: Mapped[str] = mapped_column(String(255), index=True)   # email
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)
