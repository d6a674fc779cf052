"""FastAPI application factory for the status API."""

from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI

from orchestrator import __version__
from orchestrator.api.v1 import api_router
from orchestrator.core.config import Settings, get_settings


def create_app(orchestrator: Any, settings: Settings | None = None) -> FastAPI:
    """Create the status API bound to a running orchestrator.

    Args:
        orchestrator: Object exposing ``ledger`` and ``get_status()``
        settings: Settings (defaults to cached settings)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Cross-chain vault settlement orchestrator status API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.orchestrator = orchestrator
    app.state.settings = settings

    register_routes(app, settings)

    return app


def register_routes(app: FastAPI, settings: Settings) -> None:
    """Register all application routes."""
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness endpoint for process supervisors."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
