"""
Máquina de estados 2FA por usuario.

    NONE ──setup──> PENDING ──verify──> ACTIVE ──disable──> NONE
                    PENDING ──setup──> PENDING   (reinicio: secreto nuevo)
                                       ACTIVE ──verify──> ACTIVE

Cada transición de varios pasos corre en una sola transacción, y los
UPDATE van condicionados al estado leído, de modo que requests
concurrentes sobre el mismo usuario no dejan `enabled=true` sin secreto
ni backup codes sin una inscripción ACTIVE.
"""
import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.cipher import DecryptionError, SecretCipher, get_cipher
from app.core.clock import utcnow
from app.core.config import settings
from app.core.db import transaction
from app.core.errors import (
    AlreadyEnabledError, CryptoFailure, EnrollmentNotFoundError, InvalidCodeError,
    NotEnabledError, PasswordMismatchError, StateConflictError, ValidationError,
)
from app.core.security import verify_password
from app.models.two_factor import TwoFactorEnrollment
from app.models.user import User
from app.services import backup_codes, totp
from app.services.authenticator import promote_session
from app.services.totp_settings import TotpSettingsProvider

logger = logging.getLogger(__name__)


class TwoFactorState(str, enum.Enum):
    none = "none"
    pending = "pending"
    active = "active"


def state_of(enrollment: TwoFactorEnrollment | None) -> TwoFactorState:
    if enrollment is None or not enrollment.encrypted_secret:
        return TwoFactorState.none
    if enrollment.enabled:
        return TwoFactorState.active
    return TwoFactorState.pending


@dataclass
class SetupResult:
    secret: str
    otpauth_uri: str
    qr_code_data_url: str
    issuer: str
    digits: int
    period: int


@dataclass
class VerifyResult:
    method: str                       # "totp" | "backup_code"
    enabled_now: bool
    backup_codes: list[str] | None = None
    session_expires_at: datetime | None = None   # solo si se promovió una sesión intermedia


@dataclass
class StatusResult:
    enabled: bool
    state: TwoFactorState
    digits: int
    period: int
    created_at: datetime | None
    last_used_at: datetime | None
    available_backup_codes: int


class TwoFactorService:
    def __init__(
        self,
        db: AsyncSession,
        settings_provider: TotpSettingsProvider,
        cipher: SecretCipher | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.settings_provider = settings_provider
        self.cipher = cipher or get_cipher()
        self.clock = clock

    async def get_enrollment(self, user_id: str, *, for_update: bool = False) -> TwoFactorEnrollment | None:
        q = select(TwoFactorEnrollment).where(TwoFactorEnrollment.user_id == user_id)
        if for_update:
            q = q.with_for_update()
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def get_state(self, user_id: str) -> TwoFactorState:
        return state_of(await self.get_enrollment(user_id))

    # ---------- setup ----------
    async def setup(self, user: User) -> SetupResult:
        config = await self.settings_provider.get(self.db)

        enrollment = await self.get_enrollment(user.id)
        if enrollment is not None and enrollment.enabled:
            raise AlreadyEnabledError()

        secret = totp.generate_secret()
        ciphertext = self.cipher.encrypt(secret)

        try:
            async with transaction(self.db):
                if enrollment is None:
                    self.db.add(TwoFactorEnrollment(
                        user_id=user.id,
                        encrypted_secret=ciphertext,
                        enabled=False,
                        digits=config.digits,
                        period=config.period,
                    ))
                else:
                    # reiniciar un setup PENDING pisa el secreto anterior
                    res = await self.db.execute(
                        update(TwoFactorEnrollment)
                        .where(TwoFactorEnrollment.user_id == user.id,
                               TwoFactorEnrollment.enabled.is_(False))
                        .values(encrypted_secret=ciphertext, digits=config.digits,
                                period=config.period, last_used_at=None, last_used_step=None)
                        .execution_options(synchronize_session=False)
                    )
                    if res.rowcount != 1:
                        raise AlreadyEnabledError()
        except IntegrityError:
            # otro setup concurrente insertó la fila primero
            raise StateConflictError("Hay un setup 2FA en curso, reintentá") from None

        uri = totp.build_provisioning_uri(user.email, secret, config.issuer, config.digits, config.period)
        qr = await run_in_threadpool(totp.render_qr_code, uri)
        logger.info("2fa setup started user_id=%s", user.id)
        return SetupResult(
            secret=secret, otpauth_uri=uri, qr_code_data_url=qr,
            issuer=config.issuer, digits=config.digits, period=config.period,
        )

    # ---------- verify ----------
    async def verify(
        self,
        user_id: str,
        token: str | None = None,
        backup_code: str | None = None,
        *,
        session_id: str | None = None,
    ) -> VerifyResult:
        """
        Verifica un token TOTP o un backup code. Con `session_id`, la sesión
        intermedia se promueve en la misma transacción: si no se puede
        promover, el código no queda consumido.
        """
        if not token and not backup_code:
            raise ValidationError("Se requiere un token TOTP o un código de respaldo")

        enrollment = await self.get_enrollment(user_id)
        if enrollment is None or not enrollment.encrypted_secret:
            raise EnrollmentNotFoundError()

        ciphertext = enrollment.encrypted_secret
        try:
            secret = self.cipher.decrypt(ciphertext)
        except DecryptionError:
            logger.exception("could not decrypt TOTP secret user_id=%s", user_id)
            raise CryptoFailure() from None

        was_enabled = enrollment.enabled
        step = None
        if token:
            step = totp.match_step(token, secret, enrollment.digits, enrollment.period, for_time=self.clock())
            if step is not None and self._is_replay(enrollment, step):
                logger.info("replayed TOTP token rejected user_id=%s", user_id)
                step = None

        async with transaction(self.db):
            method = "totp"
            if step is None:
                # los backup codes solo existen con 2FA ACTIVE
                if not (backup_code and was_enabled and await backup_codes.consume(self.db, user_id, backup_code)):
                    logger.info("2fa verification failed user_id=%s", user_id)
                    raise InvalidCodeError()
                method = "backup_code"

            if was_enabled:
                await self._touch(user_id, step)
                result = VerifyResult(method=method, enabled_now=False)
            else:
                codes = await self._enable(user_id, ciphertext, step)
                logger.info("2fa enabled user_id=%s", user_id)
                result = VerifyResult(method=method, enabled_now=True, backup_codes=codes)

            if session_id is not None:
                result.session_expires_at = await promote_session(self.db, session_id)
        return result

    def _is_replay(self, enrollment: TwoFactorEnrollment, step: int) -> bool:
        if not settings.TOTP_ENFORCE_SINGLE_USE:
            return False
        return enrollment.last_used_step is not None and step <= enrollment.last_used_step

    async def _enable(self, user_id: str, ciphertext: str, step: int | None) -> list[str]:
        res = await self.db.execute(
            update(TwoFactorEnrollment)
            .where(TwoFactorEnrollment.user_id == user_id,
                   TwoFactorEnrollment.enabled.is_(False),
                   TwoFactorEnrollment.encrypted_secret == ciphertext)
            .values(enabled=True, last_used_at=utcnow(), last_used_step=step)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            # el setup se reinició o se habilitó en otro request
            raise InvalidCodeError()
        await backup_codes.purge(self.db, user_id)
        codes = backup_codes.generate()
        await backup_codes.persist(self.db, user_id, codes)
        return codes

    async def _touch(self, user_id: str, step: int | None) -> None:
        conditions = [TwoFactorEnrollment.user_id == user_id, TwoFactorEnrollment.enabled.is_(True)]
        values: dict = {"last_used_at": utcnow()}
        if step is not None:
            values["last_used_step"] = step
            if settings.TOTP_ENFORCE_SINGLE_USE:
                conditions.append(
                    or_(TwoFactorEnrollment.last_used_step.is_(None), TwoFactorEnrollment.last_used_step < step)
                )
        res = await self.db.execute(
            update(TwoFactorEnrollment).where(*conditions).values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            # deshabilitado en paralelo, o el mismo token usado por otro request
            raise InvalidCodeError()

    # ---------- disable ----------
    async def disable(self, user: User, password: str) -> None:
        if not await verify_password(password, user.hashed_password):
            raise PasswordMismatchError()

        async with transaction(self.db):
            enrollment = await self.get_enrollment(user.id, for_update=True)
            if state_of(enrollment) is not TwoFactorState.active:
                raise NotEnabledError()
            res = await self.db.execute(
                update(TwoFactorEnrollment)
                .where(TwoFactorEnrollment.user_id == user.id, TwoFactorEnrollment.enabled.is_(True))
                .values(enabled=False, encrypted_secret=None, last_used_at=None, last_used_step=None)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise NotEnabledError()
            await backup_codes.purge(self.db, user.id)
        logger.info("2fa disabled user_id=%s", user.id)

    # ---------- backup codes ----------
    async def regenerate_backup_codes(self, user: User, password: str) -> list[str]:
        if not await verify_password(password, user.hashed_password):
            raise PasswordMismatchError()

        async with transaction(self.db):
            enrollment = await self.get_enrollment(user.id, for_update=True)
            if state_of(enrollment) is not TwoFactorState.active:
                raise NotEnabledError()
            codes = await backup_codes.regenerate(self.db, user.id)
        logger.info("backup codes regenerated user_id=%s", user.id)
        return codes

    async def backup_codes_available(self, user_id: str) -> int:
        return await backup_codes.count_unused(self.db, user_id)

    # ---------- status ----------
    async def status(self, user_id: str) -> StatusResult:
        enrollment = await self.get_enrollment(user_id)
        state = state_of(enrollment)
        if enrollment is not None:
            digits, period = enrollment.digits, enrollment.period
        else:
            config = await self.settings_provider.get(self.db)
            digits, period = config.digits, config.period
        return StatusResult(
            enabled=state is TwoFactorState.active,
            state=state,
            digits=digits,
            period=period,
            created_at=enrollment.created_at if enrollment else None,
            last_used_at=enrollment.last_used_at if enrollment else None,
            available_backup_codes=await backup_codes.count_unused(self.db, user_id),
        )
