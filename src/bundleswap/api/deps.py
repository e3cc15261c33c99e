"""Request dependencies shared by the API routes."""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from bundleswap.swap.orchestrator import SwapOrchestrator


def get_orchestrator(request: Request) -> SwapOrchestrator:
    """The orchestrator bound to this application."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Escrow not initialized",
        )
    return orchestrator


def get_caller(x_caller_identity: Optional[str] = Header(None)) -> str:
    """Caller identity, as asserted by the authentication layer in front of us."""
    caller = (x_caller_identity or "").strip()
    if not caller:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Caller-Identity header required",
        )
    return caller
