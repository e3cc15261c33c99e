"""Health check endpoints."""

from fastapi import APIRouter, Depends

from bundleswap import __version__
from bundleswap.api.deps import get_orchestrator
from bundleswap.config import get_settings
from bundleswap.swap.orchestrator import SwapOrchestrator

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "bundleswap"}


@router.get("/health/detailed")
async def detailed_health(orchestrator: SwapOrchestrator = Depends(get_orchestrator)):
    """Detailed health check with configuration and escrow info."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": "bundleswap",
        "version": __version__,
        "escrow": {
            "custody_identity": orchestrator.custody_identity,
            "registries": orchestrator.directory.names,
            "busy": orchestrator.guard.busy,
            "order_count": await orchestrator.get_order_count(),
        },
        "config": settings.get_safe_dict(),
    }
