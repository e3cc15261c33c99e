"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bundleswap import __version__
from bundleswap.config import get_settings
from bundleswap.errors import SwapError
from bundleswap.ledger.database import close_db, get_session_factory, init_db
from bundleswap.registry.factory import create_registry_directory
from bundleswap.swap.orchestrator import SwapOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    owns_escrow = app.state.orchestrator is None
    if owns_escrow:
        await init_db()
        app.state.orchestrator = SwapOrchestrator.from_settings(
            session_factory=get_session_factory(),
            directory=create_registry_directory(),
        )
        logger.info("Escrow orchestrator initialized")
    yield
    # Shutdown
    if owns_escrow:
        await close_db()
        app.state.orchestrator = None


async def swap_error_handler(request: Request, exc: SwapError) -> JSONResponse:
    """Map escrow errors onto HTTP responses."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(orchestrator: Optional[SwapOrchestrator] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator; when omitted, one is built from
            settings at startup
    """
    settings = get_settings()

    app = FastAPI(
        title="bundleswap API",
        description="Escrow engine for atomic multi-asset swaps",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.orchestrator = orchestrator

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SwapError, swap_error_handler)

    # Register routes
    from bundleswap.api.routes import health, orders, registry

    app.include_router(health.router, tags=["Health"])
    app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
    if settings.dry_run:
        app.include_router(registry.router, prefix="/api/v1", tags=["Dry-run registry"])

    return app
