# app/core/errors.py
"""
Errores de dominio. Cada clase fija el status HTTP y un mensaje genérico
seguro para el cliente; los detalles internos sólo van al log.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Error interno del servidor"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "No autenticado"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Solicitud inválida"

    def __init__(self, detail: str | None = None, errors: list | None = None):
        super().__init__(detail)
        self.errors = errors or []


class StateConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Estado 2FA inválido"


class AlreadyEnabledError(StateConflictError):
    detail = "La autenticación en dos pasos ya está habilitada"


class NotEnabledError(StateConflictError):
    detail = "La autenticación en dos pasos no está habilitada"


class SecurityError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Credenciales inválidas"


class PasswordMismatchError(SecurityError):
    pass


class CryptoFailure(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "No se pudo procesar la configuración 2FA"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "No encontrado"


class EnrollmentNotFoundError(NotFoundError):
    detail = "No hay configuración 2FA. Ejecutá el setup de nuevo."


class InvalidCodeError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Token o código de respaldo inválido"


class EmailNotVerifiedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Email no verificado. Te enviamos un link de verificación nuevo."


class TokenExpiredError(AppError):
    status_code = status.HTTP_410_GONE
    detail = "El token de verificación expiró. Pedí uno nuevo."


# --- handlers ---

async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    body: dict = {"detail": exc.detail}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=body)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": ValidationError.detail, "errors": errors},
    )


async def _persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": AppError.detail},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _persistence_error_handler)  # type: ignore[arg-type]
