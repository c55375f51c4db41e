"""Unit tests for the system TOTP settings provider"""

from sqlalchemy import func, select

from app.models.system_settings import SystemSettings
from app.services.totp_settings import TotpConfig, TotpSettingsProvider


class TestTotpSettingsProvider:

    async def test_first_read_creates_defaults(self, db, provider):
        config = await provider.get(db)
        assert config == TotpConfig(issuer="TwoFactor Test", digits=6, period=30)
        count = (await db.execute(select(func.count(SystemSettings.id)))).scalar_one()
        assert count == 1

    async def test_update_refreshes_cache(self, db, provider):
        await provider.get(db)
        updated = await provider.update(db, issuer="Acme", digits=8, period=60)
        assert updated == TotpConfig(issuer="Acme", digits=8, period=60)
        assert await provider.get(db) == updated
        count = (await db.execute(select(func.count(SystemSettings.id)))).scalar_one()
        assert count == 1

    async def test_cache_is_bounded_by_ttl(self, db):
        cached = TotpSettingsProvider(ttl_seconds=3600, default_issuer="A")
        fresh = TotpSettingsProvider(ttl_seconds=0, default_issuer="A")
        await cached.get(db)
        await fresh.get(db)

        # otro proceso modifica la fila directamente
        row = (await db.execute(select(SystemSettings))).scalar_one()
        row.totp_issuer = "Changed"
        await db.commit()

        assert (await cached.get(db)).issuer == "A"
        assert (await fresh.get(db)).issuer == "Changed"
        cached.invalidate()
        assert (await cached.get(db)).issuer == "Changed"
