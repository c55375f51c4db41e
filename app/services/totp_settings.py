"""
Configuración TOTP del sistema (issuer, digits, period).

La fila `system_settings` se crea con valores por defecto en la primera
lectura. El provider se inyecta (vive en `app.state`), cachea la fila un
tiempo acotado y se refresca explícitamente cuando el admin la modifica.
"""
import logging
import time
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import transaction
from app.models.system_settings import SystemSettings

logger = logging.getLogger(__name__)

DEFAULT_DIGITS = 6
DEFAULT_PERIOD = 30


@dataclass(frozen=True)
class TotpConfig:
    issuer: str
    digits: int
    period: int


def _to_config(row: SystemSettings) -> TotpConfig:
    return TotpConfig(issuer=row.totp_issuer, digits=row.totp_digits, period=row.totp_period)


class TotpSettingsProvider:
    def __init__(self, ttl_seconds: int | None = None, default_issuer: str | None = None):
        self.ttl_seconds = settings.TOTP_SETTINGS_CACHE_SECONDS if ttl_seconds is None else ttl_seconds
        self.default_issuer = default_issuer or settings.APP_NAME
        self._cached: TotpConfig | None = None
        self._loaded_at = 0.0

    def invalidate(self) -> None:
        self._cached = None

    async def get(self, db: AsyncSession) -> TotpConfig:
        if self._cached is not None and time.monotonic() - self._loaded_at < self.ttl_seconds:
            return self._cached
        row = await self._load_or_create(db)
        self._remember(_to_config(row))
        return self._cached  # type: ignore[return-value]

    async def update(self, db: AsyncSession, *, issuer: str, digits: int, period: int) -> TotpConfig:
        async with transaction(db):
            row = await self._first(db)
            if row is None:
                row = SystemSettings(totp_issuer=issuer, totp_digits=digits, totp_period=period)
                db.add(row)
            else:
                row.totp_issuer = issuer
                row.totp_digits = digits
                row.totp_period = period
        config = TotpConfig(issuer=issuer, digits=digits, period=period)
        self._remember(config)
        logger.info("system TOTP settings updated digits=%s period=%s", digits, period)
        return config

    def _remember(self, config: TotpConfig) -> None:
        self._cached = config
        self._loaded_at = time.monotonic()

    async def _first(self, db: AsyncSession) -> SystemSettings | None:
        res = await db.execute(select(SystemSettings).order_by(SystemSettings.id).limit(1))
        return res.scalar_one_or_none()

    async def _load_or_create(self, db: AsyncSession) -> SystemSettings:
        row = await self._first(db)
        if row is not None:
            return row
        async with transaction(db):
            row = SystemSettings(
                totp_issuer=self.default_issuer,
                totp_digits=DEFAULT_DIGITS,
                totp_period=DEFAULT_PERIOD,
            )
            db.add(row)
        return row
