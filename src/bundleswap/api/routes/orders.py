"""Order and offer endpoints (the escrow command surface)."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from bundleswap.api.deps import get_caller, get_orchestrator
from bundleswap.registry.base import AssetRef
from bundleswap.swap.orchestrator import OfferSnapshot, OrderSnapshot, SwapOrchestrator

router = APIRouter()


def _as_token_id(value: Any) -> Any:
    """Accept numeric token ids from JSON clients."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class AssetModel(BaseModel):
    """An asset reference."""

    registry: str = Field(..., min_length=1, max_length=100, description="Registry id")
    token_id: str = Field(..., min_length=1, max_length=100, description="Token id")

    @field_validator("token_id", mode="before")
    @classmethod
    def coerce_token_id(cls, v: Any) -> Any:
        return _as_token_id(v)


class CreateOrderRequest(AssetModel):
    """Request to list an asset."""


class MakeOfferRequest(BaseModel):
    """Offer bundle as two parallel sequences.

    Length checks happen in the escrow so that a mismatch is reported as
    InvalidInput like every other malformed bundle.
    """

    registries: list[str] = Field(..., description="Registry id of each bundled asset")
    token_ids: list[str] = Field(..., description="Token id of each bundled asset")

    @field_validator("token_ids", mode="before")
    @classmethod
    def coerce_token_ids(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [_as_token_id(item) for item in v]
        return v


class OrderResponse(BaseModel):
    """An order record."""

    id: int
    owner: str
    listed_asset: Optional[AssetModel] = None
    active: bool
    status: Optional[str] = None
    accepted_offer_id: Optional[int] = None
    offer_count: int = 0


class OfferResponse(BaseModel):
    """An offer record."""

    id: int
    order_id: int
    sequence: int
    proposer: str
    bundle: list[AssetModel]


class OrderCountResponse(BaseModel):
    """Number of orders ever created."""

    count: int


def _order(snapshot: OrderSnapshot) -> OrderResponse:
    return OrderResponse(**snapshot.to_dict())


def _offer(snapshot: OfferSnapshot) -> OfferResponse:
    return OfferResponse(**snapshot.to_dict())


@router.post("/orders", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """List an asset; the escrow takes custody of it."""
    snapshot = await orchestrator.create_order(
        caller, AssetRef(request.registry, request.token_id)
    )
    return _order(snapshot)


@router.get("/orders/count", response_model=OrderCountResponse)
async def get_order_count(orchestrator: SwapOrchestrator = Depends(get_orchestrator)):
    """Number of orders ever created."""
    return OrderCountResponse(count=await orchestrator.get_order_count())


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, orchestrator: SwapOrchestrator = Depends(get_orchestrator)):
    """Order record; absent orders return the default record."""
    return _order(await orchestrator.get_order(order_id))


@router.get("/orders/{order_id}/offers", response_model=list[OfferResponse])
async def get_offers(order_id: int, orchestrator: SwapOrchestrator = Depends(get_orchestrator)):
    """Every offer made against an order."""
    return [_offer(offer) for offer in await orchestrator.get_offers(order_id)]


@router.post("/orders/{order_id}/offers", response_model=OfferResponse, status_code=201)
async def make_offer(
    order_id: int,
    request: MakeOfferRequest,
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Propose a bundle against an active order."""
    snapshot = await orchestrator.make_offer(
        caller, order_id, request.registries, request.token_ids
    )
    return _offer(snapshot)


@router.post("/orders/{order_id}/offers/{offer_id}/accept", response_model=OrderResponse)
async def accept_offer(
    order_id: int,
    offer_id: int,
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Settle an order against one of its offers (order owner only)."""
    return _order(await orchestrator.accept_offer(caller, order_id, offer_id))


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: int,
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Withdraw a listing (order owner only)."""
    return _order(await orchestrator.cancel_order(caller, order_id))


@router.post("/value")
async def receive_value(
    caller: str = Depends(get_caller),
    orchestrator: SwapOrchestrator = Depends(get_orchestrator),
):
    """Native value is never accepted."""
    await orchestrator.receive_value(caller)
