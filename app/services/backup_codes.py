"""
Backup codes: códigos de recuperación de un solo uso.

El texto plano se muestra al usuario una única vez; en la base solo queda
el hash bcrypt. El consumo marca el código con un UPDATE condicionado a
`is_used = false`, así dos consumos concurrentes del mismo código no
pueden tener éxito los dos.
"""
import logging
import secrets
import string

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.core.security import hash_backup_code, verify_backup_code
from app.models.two_factor import BackupCode

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.digits


def normalize(code: str) -> str:
    return (code or "").strip().replace("-", "").replace(" ", "").upper()


def gen_code(n: int | None = None) -> str:
    n = n or settings.BACKUP_CODE_LENGTH
    return "".join(secrets.choice(ALPHABET) for _ in range(n))


def generate(count: int | None = None, length: int | None = None) -> list[str]:
    """
    `count` códigos distintos dentro del lote. No se compara contra códigos
    de otros usuarios: con 36^10 combinaciones la colisión es despreciable.
    """
    count = count or settings.BACKUP_CODE_COUNT
    codes: list[str] = []
    while len(codes) < count:
        code = gen_code(length)
        if code not in codes:
            codes.append(code)
    return codes


async def persist(db: AsyncSession, user_id: str, codes: list[str]) -> None:
    # no hace commit: corre dentro de la transacción del llamador
    for code in codes:
        db.add(BackupCode(user_id=user_id, code_hash=await hash_backup_code(code), is_used=False))
    await db.flush()


async def purge(db: AsyncSession, user_id: str) -> None:
    await db.execute(delete(BackupCode).where(BackupCode.user_id == user_id))


async def consume(db: AsyncSession, user_id: str, candidate: str) -> bool:
    candidate = normalize(candidate)
    if not candidate:
        return False

    rows = (await db.execute(
        select(BackupCode.id, BackupCode.code_hash)
        .where(BackupCode.user_id == user_id, BackupCode.is_used.is_(False))
        .order_by(BackupCode.id)
    )).all()

    for code_id, code_hash in rows:
        if not await verify_backup_code(candidate, code_hash):
            continue
        claimed = await claim(db, code_id)
        if claimed:
            logger.info("backup code consumed user_id=%s code_id=%s", user_id, code_id)
        return claimed
    return False


async def claim(db: AsyncSession, code_id: int) -> bool:
    res = await db.execute(
        update(BackupCode)
        .where(BackupCode.id == code_id, BackupCode.is_used.is_(False))
        .values(is_used=True, used_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def regenerate(db: AsyncSession, user_id: str) -> list[str]:
    """Invalida todos los códigos del usuario y emite un lote nuevo."""
    await purge(db, user_id)
    codes = generate()
    await persist(db, user_id, codes)
    return codes


async def count_unused(db: AsyncSession, user_id: str) -> int:
    res = await db.execute(
        select(func.count(BackupCode.id))
        .where(BackupCode.user_id == user_id, BackupCode.is_used.is_(False))
    )
    return int(res.scalar_one())
