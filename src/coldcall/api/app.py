"""FastAPI application for the cold-call service.

Endpoints:
- POST /api/leads/analyze-company-leads - stream potential customers for a company
- GET  /api/call/calls/{id}, /api/call/calls - voice provider call proxy
- POST /api/webhooks/vapi - voice provider lifecycle events
- /api/businesses/... - businesses, settings, discovery, scripts and calls
- GET  /health - health check

Example:
    uvicorn coldcall.api.app:app --host 0.0.0.0 --port 3001
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import config
from ..models import close_database, init_database
from .dependencies import Services
from .routes import businesses, calls, leads, webhooks

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None, init_db: bool = True) -> FastAPI:
    """Build the application.

    Args:
        services: Pre-built services (tests pass fakes). Built from config
            at startup when omitted.
        init_db: Create tables at startup and close the engine at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Cold-call service starting...")
        if init_db:
            await init_database()
        owns_services = services is None
        app.state.services = services or Services.from_config()
        for provider, configured in config.provider_keys_configured().items():
            if not configured:
                logger.warning("%s credentials not set - related features disabled", provider)
        logger.info("Cold-call service ready")

        yield

        logger.info("Cold-call service shutting down...")
        if owns_services:
            await app.state.services.close()
        if init_db:
            await close_database()
        logger.info("Cold-call service shutdown complete")

    app = FastAPI(
        title="Cold-Call Service",
        description="Lead discovery, scoring and automated outbound calling",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(leads.router)
    app.include_router(calls.router)
    app.include_router(webhooks.router)
    app.include_router(businesses.router)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"message": "online!"}

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check including which vendor credentials are present."""
        return {
            "status": "healthy",
            "service": "coldcall",
            "version": __version__,
            "providers": config.provider_keys_configured(),
        }

    return app


app = create_app()
