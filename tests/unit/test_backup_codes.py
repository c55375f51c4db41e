"""Unit tests for backup code generation and single-use consumption"""

import pytest
from sqlalchemy import select

from app.core.db import SessionLocal
from app.models.two_factor import BackupCode
from app.services import backup_codes


class TestGeneration:

    def test_default_batch(self):
        codes = backup_codes.generate()
        assert len(codes) == 10
        assert len(set(codes)) == 10
        for code in codes:
            assert len(code) == 10
            assert set(code) <= set(backup_codes.ALPHABET)

    def test_custom_count_and_length(self):
        codes = backup_codes.generate(count=3, length=16)
        assert len(codes) == 3
        assert all(len(c) == 16 for c in codes)

    @pytest.mark.parametrize("raw,expected", [
        ("abcde-12345", "ABCDE12345"),
        ("  ABCDE 12345 ", "ABCDE12345"),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert backup_codes.normalize(raw) == expected


class TestPersistence:

    async def test_only_hashes_are_stored(self, db, make_user):
        user = await make_user()
        codes = backup_codes.generate(count=3)
        await backup_codes.persist(db, user.id, codes)
        await db.commit()

        rows = (await db.execute(select(BackupCode).where(BackupCode.user_id == user.id))).scalars().all()
        assert len(rows) == 3
        stored = {r.code_hash for r in rows}
        assert not stored & set(codes)
        assert all(h.startswith("$2b$") for h in stored)

    async def test_consume_is_single_use(self, db, make_user):
        user = await make_user()
        codes = backup_codes.generate(count=3)
        await backup_codes.persist(db, user.id, codes)
        await db.commit()

        assert await backup_codes.consume(db, user.id, codes[1].lower())
        assert not await backup_codes.consume(db, user.id, codes[1])
        await db.commit()
        assert await backup_codes.count_unused(db, user.id) == 2

    async def test_consume_rejects_unknown_code(self, db, make_user):
        user = await make_user()
        await backup_codes.persist(db, user.id, backup_codes.generate(count=2))
        await db.commit()
        assert not await backup_codes.consume(db, user.id, "ZZZZZZZZZZ")
        assert not await backup_codes.consume(db, user.id, "")

    async def test_codes_are_scoped_to_their_owner(self, db, make_user):
        alice = await make_user("alice@example.com")
        bob = await make_user("bob@example.com")
        codes = backup_codes.generate(count=2)
        await backup_codes.persist(db, alice.id, codes)
        await db.commit()
        assert not await backup_codes.consume(db, bob.id, codes[0])

    async def test_claim_twice(self, db, make_user):
        user = await make_user()
        await backup_codes.persist(db, user.id, ["AAAAAAAAAA"])
        await db.commit()
        code_id = (await db.execute(select(BackupCode.id))).scalar_one()

        assert await backup_codes.claim(db, code_id) is True
        assert await backup_codes.claim(db, code_id) is False

    async def test_stale_reader_cannot_claim_again(self, db, make_user):
        user = await make_user()
        await backup_codes.persist(db, user.id, ["AAAAAAAAAA"])
        await db.commit()

        # dos requests que leyeron el código como no usado antes de que alguno lo marque
        async with SessionLocal() as first, SessionLocal() as second:
            unused = select(BackupCode.id).where(BackupCode.is_used.is_(False))
            code_id = (await first.execute(unused)).scalar_one()
            assert (await second.execute(unused)).scalar_one() == code_id
            await second.commit()

            assert await backup_codes.claim(first, code_id) is True
            await first.commit()
            assert await backup_codes.claim(second, code_id) is False
            await second.commit()

    async def test_regenerate_replaces_the_batch(self, db, make_user):
        user = await make_user()
        old = backup_codes.generate(count=2)
        await backup_codes.persist(db, user.id, old)
        await db.commit()

        new = await backup_codes.regenerate(db, user.id)
        await db.commit()
        assert len(new) == 10
        assert await backup_codes.count_unused(db, user.id) == 10
        assert not await backup_codes.consume(db, user.id, old[0])
