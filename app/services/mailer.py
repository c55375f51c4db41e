# app/services/mailer.py
import logging
from typing import Protocol
from urllib.parse import urlencode

from app.core.config import settings

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    async def send_verification_email(self, email: str, token: str) -> None: ...


def verification_link(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/api/auth/verify-email?{urlencode({'token': token})}"


class LoggingMailer:
    """Sin proveedor de correo: solo deja constancia en el log, no retiene nada."""

    async def send_verification_email(self, email: str, token: str) -> None:
        logger.info("verification email queued for %s", email)
