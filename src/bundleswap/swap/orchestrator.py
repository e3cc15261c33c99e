"""Escrow swap orchestrator.

The only component with behaviour: it opens orders by taking custody of the
listed asset, records offers, settles an accepted offer as one all-or-nothing
multi-asset exchange, and returns custody on cancellation.

Every mutating operation runs as:

    guard -> session + transfer journal -> checks -> transfers into custody
          -> store update -> transfers out of custody
          -> commit (or rollback + compensation) -> publish event

so no store change is committed unless every transfer of the operation took
effect, and every transfer already issued is reversed if anything fails.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bundleswap.config import Settings, get_settings
from bundleswap.errors import (
    CustodyViolationError,
    InvalidInputError,
    NativeValueRejectedError,
    NotActiveError,
    NotApprovedError,
    NotFoundError,
    OwnershipMismatchError,
    SwapError,
    UnauthorizedError,
)
from bundleswap.events import (
    EventPublisher,
    OfferAccepted,
    OfferMade,
    OrderCanceled,
    OrderCreated,
)
from bundleswap.ledger.models import Offer, Order, OrderStatus
from bundleswap.ledger.repository import OfferRepository, OrderRepository
from bundleswap.registry.base import AssetRef, RegistryDirectory
from bundleswap.swap.transfers import TransferJournal
from bundleswap.utils.locks import OperationGuard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderSnapshot:
    """Read-only projection of an order."""

    id: int
    owner: str
    listed_asset: Optional[AssetRef]
    active: bool
    status: Optional[str]
    accepted_offer_id: Optional[int] = None
    offer_count: int = 0

    @classmethod
    def absent(cls) -> "OrderSnapshot":
        """Default value returned for orders that do not exist."""
        return cls(id=0, owner="", listed_asset=None, active=False, status=None)

    @classmethod
    def from_model(cls, order: Order, offer_count: int = 0) -> "OrderSnapshot":
        return cls(
            id=order.id,
            owner=order.owner,
            listed_asset=order.listed_asset,
            active=order.active,
            status=OrderStatus(order.status).value,
            accepted_offer_id=order.accepted_offer_id,
            offer_count=offer_count,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "listed_asset": self.listed_asset.to_dict() if self.listed_asset else None,
            "active": self.active,
            "status": self.status,
            "accepted_offer_id": self.accepted_offer_id,
            "offer_count": self.offer_count,
        }


@dataclass(frozen=True)
class OfferSnapshot:
    """Read-only projection of an offer."""

    id: int
    order_id: int
    sequence: int
    proposer: str
    bundle: tuple[AssetRef, ...]

    @classmethod
    def from_model(cls, offer: Offer) -> "OfferSnapshot":
        return cls(
            id=offer.id,
            order_id=offer.order_id,
            sequence=offer.sequence,
            proposer=offer.proposer,
            bundle=offer.bundle,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "sequence": self.sequence,
            "proposer": self.proposer,
            "bundle": [asset.to_dict() for asset in self.bundle],
        }


class SwapOrchestrator:
    """Order/offer lifecycle and atomic swap executor."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        directory: RegistryDirectory,
        custody_identity: str,
        publisher: Optional[EventPublisher] = None,
        guard: Optional[OperationGuard] = None,
    ):
        """Initialize the orchestrator.

        Args:
            session_factory: Factory for the sessions backing both stores
            directory: Asset registries, by registry id
            custody_identity: Identity the escrow holds listed assets under
            publisher: Domain event publisher
            guard: Re-entrancy guard shared by all mutating operations
        """
        if not custody_identity:
            raise ValueError("custody_identity is required")

        self.session_factory = session_factory
        self.directory = directory
        self.custody_identity = custody_identity
        self.publisher = publisher or EventPublisher()
        self.guard = guard or OperationGuard()

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        directory: RegistryDirectory,
        settings: Optional[Settings] = None,
    ) -> "SwapOrchestrator":
        """Build an orchestrator configured from settings."""
        settings = settings or get_settings()
        return cls(
            session_factory=session_factory,
            directory=directory,
            custody_identity=settings.custody_identity,
            publisher=EventPublisher(history_size=settings.event_history_size),
            guard=OperationGuard(timeout=settings.operation_lock_timeout),
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(
        self, operation: str
    ) -> AsyncIterator[tuple[AsyncSession, TransferJournal]]:
        """One session and one transfer journal; commit or roll back both."""
        journal = TransferJournal(self.directory, operator=self.custody_identity)

        async with self.session_factory() as session:
            try:
                yield session, journal
                await session.commit()
            except Exception as e:
                await session.rollback()
                failed = await journal.compensate()

                if isinstance(e, SwapError):
                    logger.warning(f"{operation} rejected [{e.kind}]: {e.message}")
                else:
                    logger.exception(f"{operation} aborted by unexpected error")
                if failed:
                    logger.critical(
                        f"{operation}: {len(failed)} transfer(s) could not be reversed: "
                        + ", ".join(str(record.asset) for record in failed)
                    )
                raise

    def _require_caller(self, caller: str) -> None:
        if not caller:
            raise UnauthorizedError("Caller identity is required")
        if caller == self.custody_identity:
            raise UnauthorizedError("The escrow identity cannot act as a caller")

    def _parse_bundle(
        self, registries: Sequence[str], token_ids: Sequence[str]
    ) -> tuple[AssetRef, ...]:
        if len(registries) != len(token_ids):
            raise InvalidInputError(
                f"Bundle registries ({len(registries)}) and token ids ({len(token_ids)}) "
                "must have equal length"
            )
        if not registries:
            raise InvalidInputError("Bundle must contain at least one asset")

        bundle = tuple(
            AssetRef(str(registry), str(token_id))
            for registry, token_id in zip(registries, token_ids)
        )
        for asset in bundle:
            if not asset.registry or not asset.token_id:
                raise InvalidInputError(f"Incomplete asset reference: {asset}")
            self.directory.for_asset(asset)
        if len(set(bundle)) != len(bundle):
            raise InvalidInputError("Bundle lists the same asset more than once")

        return bundle

    async def _load_active_order(
        self, orders: OrderRepository, order_id: int, caller: Optional[str] = None
    ) -> Order:
        order = await orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if caller is not None and order.owner != caller:
            raise UnauthorizedError(f"Only the owner of order {order_id} can do this")
        if not order.active:
            raise NotActiveError(f"Order {order_id} is {OrderStatus(order.status).value}")
        return order

    async def _require_custody(self, asset: AssetRef) -> None:
        owner = await self.directory.for_asset(asset).owner_of(asset.token_id)
        if owner != self.custody_identity:
            raise CustodyViolationError(
                f"Listed asset {asset} is not in escrow custody (owner: {owner or 'none'})"
            )

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def create_order(self, caller: str, asset: AssetRef) -> OrderSnapshot:
        """List an asset: take custody of it and open an order.

        The registry decides whether the caller may hand it over; there is no
        separate ownership or approval pre-check.
        """
        self._require_caller(caller)

        async with self.guard.hold("create_order"):
            async with self._transaction("create_order") as (session, journal):
                if not asset.registry or not asset.token_id:
                    raise InvalidInputError(f"Incomplete asset reference: {asset}")

                await journal.transfer(asset, caller, self.custody_identity)
                order = await OrderRepository(session).create(caller, asset)
                snapshot = OrderSnapshot.from_model(order)

        logger.info(f"Order {snapshot.id} created by {caller}: {asset} in custody")
        await self.publisher.publish(
            OrderCreated(order_id=snapshot.id, owner=caller, asset=asset)
        )
        return snapshot

    async def make_offer(
        self,
        caller: str,
        order_id: int,
        registries: Sequence[str],
        token_ids: Sequence[str],
    ) -> OfferSnapshot:
        """Propose a bundle against an active order.

        Approval is checked optimistically; nothing moves until acceptance.
        """
        self._require_caller(caller)
        bundle = self._parse_bundle(registries, token_ids)

        async with self.guard.hold("make_offer"):
            async with self._transaction("make_offer") as (session, _journal):
                order = await self._load_active_order(OrderRepository(session), order_id)
                if order.listed_asset in bundle:
                    raise InvalidInputError(
                        f"Bundle cannot include the listed asset {order.listed_asset}"
                    )

                for asset in bundle:
                    registry = self.directory.for_asset(asset)
                    if not await registry.is_operator_authorized(
                        caller, self.custody_identity, asset.token_id
                    ):
                        raise NotApprovedError(
                            f"{caller} has not approved the escrow to move {asset}"
                        )

                offer = await OfferRepository(session).append(order.id, caller, bundle)
                snapshot = OfferSnapshot.from_model(offer)

        logger.info(
            f"Offer {snapshot.id} made on order {order_id} by {caller}: "
            f"{len(bundle)} asset(s)"
        )
        await self.publisher.publish(
            OfferMade(
                order_id=order_id,
                offer_id=snapshot.id,
                proposer=caller,
                bundle=bundle,
            )
        )
        return snapshot

    async def accept_offer(self, caller: str, order_id: int, offer_id: int) -> OrderSnapshot:
        """Settle an order against one of its offers.

        Sequence:
          1. re-validate that the proposer owns every bundled asset
          2. pull every bundled asset into custody
          3. re-validate custody of the listed asset
          4. mark the order settled (flushed, committed last)
          5. pay each bundled asset out to the order owner, in bundle order,
             then release the listed asset to the proposer
        """
        self._require_caller(caller)

        async with self.guard.hold("accept_offer"):
            async with self._transaction("accept_offer") as (session, journal):
                orders = OrderRepository(session)
                offers = OfferRepository(session)

                order = await self._load_active_order(orders, order_id, caller=caller)
                offer = await offers.get(offer_id)
                if offer is None:
                    raise NotFoundError(f"Offer {offer_id} not found")
                if offer.order_id != order.id:
                    raise NotFoundError(
                        f"Offer {offer_id} does not belong to order {order_id}"
                    )

                proposer = offer.proposer
                bundle = offer.bundle

                for asset in bundle:
                    owner = await self.directory.for_asset(asset).owner_of(asset.token_id)
                    if owner != proposer:
                        raise OwnershipMismatchError(
                            f"Proposer {proposer} no longer owns {asset} "
                            f"(owner: {owner or 'none'})"
                        )

                # Pulls, the custody check and the store write all precede the
                # first transfer out of custody.
                for asset in bundle:
                    await journal.transfer(asset, proposer, self.custody_identity)

                listed = order.listed_asset
                await self._require_custody(listed)

                await orders.set_inactive(order, OrderStatus.SETTLED, accepted_offer_id=offer.id)
                snapshot = OrderSnapshot.from_model(order, await offers.count_for(order.id))

                for asset in bundle:
                    await journal.transfer(asset, self.custody_identity, order.owner)
                await journal.transfer(listed, self.custody_identity, proposer)

        logger.info(
            f"Order {order_id} settled: offer {offer_id} from {proposer} accepted by {caller}"
        )
        await self.publisher.publish(
            OfferAccepted(order_id=order_id, offer_id=offer_id, owner=caller)
        )
        return snapshot

    async def cancel_order(self, caller: str, order_id: int) -> OrderSnapshot:
        """Withdraw a listing and return the asset to its owner."""
        self._require_caller(caller)

        async with self.guard.hold("cancel_order"):
            async with self._transaction("cancel_order") as (session, journal):
                orders = OrderRepository(session)
                order = await self._load_active_order(orders, order_id, caller=caller)

                listed = order.listed_asset
                await self._require_custody(listed)

                await orders.set_inactive(order, OrderStatus.CANCELED)
                snapshot = OrderSnapshot.from_model(
                    order, await OfferRepository(session).count_for(order.id)
                )

                await journal.transfer(listed, self.custody_identity, order.owner)

        logger.info(f"Order {order_id} canceled by {caller}: {listed} returned")
        await self.publisher.publish(OrderCanceled(order_id=order_id, owner=caller))
        return snapshot

    async def receive_value(self, sender: str, amount: object = None) -> None:
        """The escrow has no value-acceptance path."""
        logger.warning(f"Rejected native value transfer from {sender or 'unknown'}: {amount}")
        raise NativeValueRejectedError("The escrow does not accept native value transfers")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    async def get_order_count(self) -> int:
        """Number of orders ever created."""
        async with self.session_factory() as session:
            return await OrderRepository(session).count()

    async def get_order(self, order_id: int) -> OrderSnapshot:
        """Full order record, or the default snapshot if absent."""
        async with self.session_factory() as session:
            order = await OrderRepository(session).get(order_id)
            if order is None:
                return OrderSnapshot.absent()
            offer_count = await OfferRepository(session).count_for(order.id)
            return OrderSnapshot.from_model(order, offer_count)

    async def get_offers(self, order_id: int) -> list[OfferSnapshot]:
        """Every offer made against an order (empty if the order is absent)."""
        async with self.session_factory() as session:
            offers = await OfferRepository(session).list_for(order_id)
            return [OfferSnapshot.from_model(offer) for offer in offers]

    async def get_offer(self, offer_id: int) -> Optional[OfferSnapshot]:
        """A single offer by its global id."""
        async with self.session_factory() as session:
            offer = await OfferRepository(session).get(offer_id)
            return OfferSnapshot.from_model(offer) if offer else None
