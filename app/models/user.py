import datetime as dt
import enum
import uuid
from sqlalchemy import String, Enum, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.db import Base

class RoleEnum(str, enum.Enum):
    user = "user"
    admin = "admin"

class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(Enum(RoleEnum), default=RoleEnum.user)
    hashed_password: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    email_verified_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # el admin puede obligar a un usuario a configurar 2FA
    is_two_factor_forced: Mapped[bool] = mapped_column(Boolean, default=False)

    two_factor = relationship(
        "TwoFactorEnrollment",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
