# app/core/db.py
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from app.core.config import settings

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # sqlite: sin pool, cada sesión abre su propia conexión
        return {"echo": False, "poolclass": NullPool}
    return {"echo": False, "pool_pre_ping": True}

engine = create_async_engine(settings.async_database_url, **_engine_options(settings.async_database_url))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

class Base(DeclarativeBase):
    pass

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session

@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Unit of work: todo lo ejecutado dentro del bloque se confirma junto,
    o se revierte si algo lanza una excepción (incluida la cancelación).
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
