"""
Access gate.

`evaluate_access` es una función pura: dado el principal de la sesión (o
None) y la ruta pedida decide si se deja pasar o a dónde redirigir.
`AccessGateMiddleware` resuelve el principal y aplica la decisión:
las páginas reciben un 303; las rutas `/api/...` reciben JSON, y solo la
restricción de 2FA pendiente se aplica allí (401/roles quedan para las
dependencias de cada endpoint).
"""
import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.db import SessionLocal
from app.services.authenticator import SessionPrincipal, landing_url, resolve_principal

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"

PUBLIC_ROUTES = (
    "/",
    "/login",
    "/register",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/forgot-password",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/verify-email",
)

# lo único accesible con 2FA pendiente
TWO_FACTOR_API_PREFIX = "/api/auth/2fa/"
PENDING_ALLOWED_API = ("/api/auth/verify-totp", "/api/auth/logout")


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    location: str | None = None
    status_code: int = 200

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(allowed=True)

    @classmethod
    def redirect(cls, location: str) -> "GateDecision":
        return cls(allowed=False, location=location, status_code=303)

    @classmethod
    def forbid(cls, location: str) -> "GateDecision":
        return cls(allowed=False, location=location, status_code=403)


def _matches(path: str, route: str) -> bool:
    return path == route or (route != "/" and path.startswith(route + "/"))


def is_public(path: str) -> bool:
    return any(_matches(path, route) for route in PUBLIC_ROUTES)


def evaluate_access(principal: SessionPrincipal | None, path: str) -> GateDecision:
    is_api = path.startswith(API_PREFIX)

    if is_public(path):
        return GateDecision.allow()

    if principal is None:
        return GateDecision.allow() if is_api else GateDecision.redirect(settings.LOGIN_PATH)

    if principal.is_pending_two_factor:
        if path == settings.VERIFY_TOTP_PATH:
            return GateDecision.allow()
        if is_api and (path.startswith(TWO_FACTOR_API_PREFIX) or path in PENDING_ALLOWED_API):
            return GateDecision.allow()
        if is_api:
            return GateDecision.forbid(settings.VERIFY_TOTP_PATH)
        return GateDecision.redirect(settings.VERIFY_TOTP_PATH)

    if is_api:
        return GateDecision.allow()

    # sesión completa: no volver a la página de verificación
    if path == settings.VERIFY_TOTP_PATH:
        return GateDecision.redirect(landing_url(principal))

    if principal.needs_two_factor_setup and path != settings.SETUP_TOTP_PATH:
        return GateDecision.redirect(settings.SETUP_TOTP_PATH)

    if _matches(path, settings.ADMIN_HOME_PATH) and not principal.is_admin:
        return GateDecision.redirect(settings.HOME_PATH)

    return GateDecision.allow()


def token_from_request(request: Request) -> str | None:
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


class AccessGateMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if request.method == "OPTIONS" or is_public(path):
            return await call_next(request)

        principal = None
        token = token_from_request(request)
        if token:
            async with SessionLocal() as db:
                principal = await resolve_principal(db, token)

        decision = evaluate_access(principal, path)
        if decision.allowed:
            return await call_next(request)

        if decision.status_code == 403:
            return JSONResponse(
                status_code=403,
                content={"detail": "Se requiere verificación 2FA", "redirect_url": decision.location},
                headers={"Location": decision.location or ""},
            )
        return RedirectResponse(decision.location or settings.LOGIN_PATH, status_code=decision.status_code)
