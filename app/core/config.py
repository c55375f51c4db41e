# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    PENDING_TOKEN_EXPIRE_MINUTES: int = 10   # sesión intermedia (2FA pendiente)
    SESSION_COOKIE_NAME: str = "session_token"

    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "app"
    DB_PASSWORD: str = ""
    DB_NAME: str = "twofactor"
    DATABASE_URL: str | None = None   # override (p.ej. sqlite+aiosqlite para tests)

    # clave para cifrar secretos TOTP; sin ella se usa un fallback inseguro
    ENCRYPTION_KEY: str | None = None

    APP_NAME: str = "TwoFactor App"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    PASSWORD_BCRYPT_ROUNDS: int = 12
    BACKUP_CODE_BCRYPT_ROUNDS: int = 10
    BACKUP_CODE_COUNT: int = 10
    BACKUP_CODE_LENGTH: int = 10

    TOTP_VALID_WINDOW: int = 2
    TOTP_ENFORCE_SINGLE_USE: bool = True
    TOTP_SETTINGS_CACHE_SECONDS: int = 60

    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24

    # rutas de páginas usadas por el gate
    LOGIN_PATH: str = "/login"
    VERIFY_TOTP_PATH: str = "/auth/verify-totp"
    SETUP_TOTP_PATH: str = "/auth/setup-2fa"
    HOME_PATH: str = "/dashboard"
    ADMIN_HOME_PATH: str = "/admin"

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")

settings = Settings()  # type: ignore[call-arg]
