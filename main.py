
#main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settings import settings, validate_env_settings
from middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from services.errors import DomainError
from routes.health import router as health_router
from routes.payouts import router as payouts_router
from routes.paypal_webhook import router as paypal_webhook_router
from routes.leaderboard import router as leaderboard_router
from routes.rewards import router as rewards_router

logger = logging.getLogger("partnerpay")

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _cors_origins() -> list[str]:
    if settings.ENV in ("dev", "test"):
        return DEV_CORS_ORIGINS + [settings.APP_DOMAIN]
    return [settings.APP_DOMAIN]


def create_app() -> FastAPI:
    validate_env_settings()

    app = FastAPI(title="PartnerPay API", version="1.0.0")

    # -----------------------------
    # MIDDLEWARE
    # -----------------------------
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(payouts_router)
    app.include_router(paypal_webhook_router)
    app.include_router(leaderboard_router)
    app.include_router(rewards_router)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled error path=%s request_id=%s", request.url.path, getattr(request.state, "request_id", None)
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
