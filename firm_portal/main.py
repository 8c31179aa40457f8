"""Firm Portal API: FastAPI application factory."""


import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from firm_portal.core.config import settings
from firm_portal.core.exceptions import register_exception_handlers
from firm_portal.schemas.common import HealthResponse

# Identity Service webhooks (/api/webhooks/*)
from firm_portal.routers.webhooks import router as webhooks_router

# v1 routers
from firm_portal.routers.v1.access import router as access_v1_router
from firm_portal.routers.v1.audit import router as audit_v1_router
from firm_portal.routers.v1.firm_portal import router as firm_portal_v1_router
from firm_portal.routers.v1.firms import router as firms_v1_router
from firm_portal.routers.v1.onboarding import router as onboarding_v1_router
from firm_portal.routers.v1.tokens import router as tokens_v1_router


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    level = logging.DEBUG if settings.app_env == "development" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app() -> FastAPI:
    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url="/docs" if settings.app_env == "development" else None,
        redoc_url="/redoc" if settings.app_env == "development" else None,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # --- Global exception handlers ---
    register_exception_handlers(app)

    # --- Identity Service webhooks (/api/webhooks/*) ---
    app.include_router(webhooks_router)

    # --- v1 API routes (/api/v1/*) ---
    app.include_router(firms_v1_router, prefix="/api/v1")
    app.include_router(tokens_v1_router, prefix="/api/v1")
    app.include_router(audit_v1_router, prefix="/api/v1")
    app.include_router(onboarding_v1_router, prefix="/api/v1")
    app.include_router(access_v1_router, prefix="/api/v1")
    app.include_router(firm_portal_v1_router, prefix="/api/v1")

    # --- Health check ---
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        return HealthResponse(app=settings.app_name, env=settings.app_env)

    return app


app = create_app()
