"""Order and offer stores.

Pure storage: no ownership, approval or lifecycle validation happens here.
Both stores draw their ids from injected :class:`SequenceGenerator` instances.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bundleswap.ledger.models import (
    Offer,
    OfferAsset,
    Order,
    OrderStatus,
    SequenceState,
)
from bundleswap.registry.base import AssetRef

ORDER_SEQUENCE = "orders"
OFFER_SEQUENCE = "offers"


class SequenceGenerator:
    """Named, persisted, monotonically increasing id source starting at 1."""

    def __init__(self, session: AsyncSession, name: str):
        self.session = session
        self.name = name

    async def _state(self, create: bool = False) -> Optional[SequenceState]:
        stmt = select(SequenceState).where(SequenceState.name == self.name)
        result = await self.session.execute(stmt)
        state = result.scalar_one_or_none()

        if state is None and create:
            state = SequenceState(name=self.name, last_value=0)
            self.session.add(state)
            await self.session.flush()

        return state

    async def current(self) -> int:
        """Last issued value (0 if nothing was issued yet)."""
        state = await self._state()
        return state.last_value if state else 0

    async def next_value(self) -> int:
        """Issue the next value."""
        state = await self._state(create=True)
        state.last_value += 1
        await self.session.flush()
        return state.last_value


class OrderRepository:
    """Storage for orders."""

    def __init__(self, session: AsyncSession, sequence: Optional[SequenceGenerator] = None):
        self.session = session
        self.sequence = sequence or SequenceGenerator(session, ORDER_SEQUENCE)

    async def create(self, owner: str, asset: AssetRef) -> Order:
        """Record a new active order."""
        order = Order(
            id=await self.sequence.next_value(),
            owner=owner,
            listed_registry=asset.registry,
            listed_token_id=asset.token_id,
            status=OrderStatus.ACTIVE,
        )
        self.session.add(order)
        await self.session.flush()
        return order

    async def get(self, order_id: int) -> Optional[Order]:
        """Get order by ID."""
        stmt = select(Order).where(Order.id == order_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_inactive(
        self,
        order: Order,
        status: OrderStatus,
        accepted_offer_id: Optional[int] = None,
    ) -> Order:
        """Move an order into a terminal status. No-op if it is already inactive."""
        if status == OrderStatus.ACTIVE:
            raise ValueError("Terminal status required")
        if not order.active:
            return order

        order.status = status
        order.accepted_offer_id = accepted_offer_id
        order.closed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return order

    async def count(self) -> int:
        """Number of orders ever created."""
        return await self.sequence.current()


class OfferRepository:
    """Storage for offers, keyed by a global id and grouped by order."""

    def __init__(self, session: AsyncSession, sequence: Optional[SequenceGenerator] = None):
        self.session = session
        self.sequence = sequence or SequenceGenerator(session, OFFER_SEQUENCE)

    async def append(self, order_id: int, proposer: str, bundle: Sequence[AssetRef]) -> Offer:
        """Record a new offer against an order."""
        offer = Offer(
            id=await self.sequence.next_value(),
            order_id=order_id,
            sequence=await self.count_for(order_id) + 1,
            proposer=proposer,
            assets=[
                OfferAsset(position=position, registry_id=asset.registry, token_id=asset.token_id)
                for position, asset in enumerate(bundle)
            ],
        )
        self.session.add(offer)
        await self.session.flush()
        return offer

    async def get(self, offer_id: int) -> Optional[Offer]:
        """Get offer by its global ID."""
        stmt = select(Offer).where(Offer.id == offer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_for(self, order_id: int) -> int:
        """Number of offers made against an order."""
        stmt = select(func.count()).select_from(Offer).where(Offer.order_id == order_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_for(self, order_id: int) -> list[Offer]:
        """All offers of an order, in the order they were made."""
        stmt = (
            select(Offer)
            .where(Offer.order_id == order_id)
            .order_by(Offer.sequence)
            .limit(await self.count_for(order_id))
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
