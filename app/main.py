"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from app.config import get_settings
from app.infra.logging_config import LoggingConfig, get_logger
from app.routers import dead_letters, outbound, webhooks

logger = get_logger("main")


def create_app(testing: bool = False) -> FastAPI:
    """
    Build the API: platform webhooks, outbound sends and the dead-letter
    operator endpoints.
    """
    settings = get_settings()
    LoggingConfig()

    app = FastAPI(
        title=settings.app_name,
        docs_url=None if settings.is_production else "/docs",
    )
    app.include_router(webhooks.router)
    app.include_router(outbound.router)
    app.include_router(dead_letters.router)

    @app.get("/health", tags=["system"])
    def health() -> dict[str, str]:
        return {"status": "ok", "environment": settings.environment}

    if not testing:
        logger.info("%s started (%s)", settings.app_name, settings.environment)
    return app


app = create_app()
