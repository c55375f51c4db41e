from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.middleware import AccessGateMiddleware
from app.services.mailer import LoggingMailer
from app.services.totp_settings import TotpSettingsProvider

from app.api.v1.auth import router as auth_router
from app.api.v1.two_factor import router as two_factor_router
from app.api.v1.admin import router as admin_router


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title=f"{settings.APP_NAME} API", version="0.1.0")
    app.state.totp_settings = TotpSettingsProvider()
    app.state.mailer = LoggingMailer()

    register_exception_handlers(app)

    # el gate corre dentro de CORS para que los preflight no pasen por él
    app.add_middleware(AccessGateMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/api")
    app.include_router(two_factor_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
