from datetime import datetime, timedelta, timezone
from typing import Optional
from passlib.context import CryptContext
from passlib.hash import bcrypt as bcrypt_hash
from starlette.concurrency import run_in_threadpool

from jose import jwt, JWTError
from app.core.config import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# --- hashing (bcrypt, mismo primitivo para passwords y backup codes) ---

def hash_secret(plain: str, rounds: int) -> str:
    return bcrypt_hash.using(rounds=rounds).hash(plain)

def verify_secret(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # hash malformado en la base: se trata como no coincidente
        return False

_dummy_hash: str | None = None

def dummy_password_hash() -> str:
    """Hash con el mismo costo que los passwords reales; iguala tiempos cuando el usuario no existe."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_secret("not-a-real-password", settings.PASSWORD_BCRYPT_ROUNDS)
    return _dummy_hash

# bcrypt es CPU-bound: se delega al threadpool para no bloquear el event loop

async def hash_password(plain: str) -> str:
    return await run_in_threadpool(hash_secret, plain, settings.PASSWORD_BCRYPT_ROUNDS)

async def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        # el primer uso calcula el hash dummy, también dentro del threadpool
        await run_in_threadpool(lambda: verify_secret(plain, dummy_password_hash()))
        return False
    return await run_in_threadpool(verify_secret, plain, hashed)

async def hash_backup_code(code: str) -> str:
    return await run_in_threadpool(hash_secret, code, settings.BACKUP_CODE_BCRYPT_ROUNDS)

async def verify_backup_code(code: str, hashed: str) -> bool:
    return await run_in_threadpool(verify_secret, code, hashed)

# --- JWT ---

def create_access_token(
        subject: str,
        extra: Optional[dict] = None,
        expires_minutes: int | None = None
        ) -> str:
    to_encode = {"sub": subject, "iat": datetime.now(tz=timezone.utc)}
    if extra:
        to_encode.update(extra)
    expire = datetime.now(tz=timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
