"""Dry-run registry endpoints (testing only).

Lets clients mint and approve tokens in the in-memory registries so the
escrow can be exercised end to end without a real registry.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from bundleswap.api.deps import get_caller, get_orchestrator
from bundleswap.registry.memory import InMemoryAssetRegistry
from bundleswap.swap.orchestrator import SwapOrchestrator

router = APIRouter()


class MintRequest(BaseModel):
    """Mint a token to the caller."""

    token_id: str = Field(..., min_length=1, max_length=100)

    @field_validator("token_id", mode="before")
    @classmethod
    def coerce_token_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class ApproveRequest(BaseModel):
    """Approve the escrow (or another operator) for one token or for all tokens."""

    token_id: Optional[str] = Field(None, max_length=100, description="Omit for blanket approval")
    operator: Optional[str] = Field(None, description="Defaults to the escrow identity")
    approved: bool = Field(default=True, description="False revokes the approval")

    @field_validator("token_id", mode="before")
    @classmethod
    def coerce_token_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class TokenResponse(BaseModel):
    """Token ownership and approval state."""

    registry: str
    token_id: str
    owner: Optional[str] = None
    approved: Optional[str] = None


def _dry_run_registry(orchestrator: SwapOrchestrator, name: str) -> InMemoryAssetRegistry:
    if name not in orchestrator.directory:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown registry: {name}")
    registry = orchestrator.directory.get(name)
    if not isinstance(registry, InMemoryAssetRegistry):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only available for dry-run registries",
        )
    return registry


def _reject_escrow_caller(orchestrator: SwapOrchestrator, caller: str) -> None:
    if caller == orchestrator.custody_identity:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The escrow identity cannot act as a caller",
        )


async def _token(registry: InMemoryAssetRegistry, token_id: str) -> TokenResponse:
    return TokenResponse(
        registry=registry.name,
        token_id=token_id,
        owner=await registry.owner_of(token_id),
        approved=await registry.get_approved(token_id),
    )


@router.post("/registry/{name}/mint", response_model=TokenResponse, status_code=201)
async def mint(
    name: str,
    request: MintRequest,
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Mint a simulated token to the caller."""
    _reject_escrow_caller(orchestrator, caller)
    registry = _dry_run_registry(orchestrator, name)
    registry.mint(caller, request.token_id)
    return await _token(registry, request.token_id)


@router.post("/registry/{name}/approve")
async def approve(
    name: str,
    request: ApproveRequest,
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Grant or revoke approval on behalf of the caller."""
    _reject_escrow_caller(orchestrator, caller)
    registry = _dry_run_registry(orchestrator, name)
    operator = request.operator or orchestrator.custody_identity

    if request.token_id is None:
        registry.set_approval_for_all(caller, operator, request.approved)
        return {
            "registry": name,
            "owner": caller,
            "operator": operator,
            "approved_for_all": await registry.is_approved_for_all(caller, operator),
        }

    registry.approve(caller, operator if request.approved else None, request.token_id)
    return await _token(registry, request.token_id)


@router.get("/registry/{name}/tokens/{token_id}", response_model=TokenResponse)
async def get_token(
    name: str,
    token_id: str,
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Current owner and per-token approval of a simulated token."""
    return await _token(_dry_run_registry(orchestrator, name), token_id)
