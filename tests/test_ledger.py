"""Tests for the order and offer stores."""

import pytest

from bundleswap.ledger.models import Base, OfferAsset, OrderStatus
from bundleswap.ledger.repository import (
    OfferRepository,
    OrderRepository,
    SequenceGenerator,
)
from bundleswap.registry.base import AssetRef

X1 = AssetRef("RegistryX", "1")
X2 = AssetRef("RegistryX", "2")
Y7 = AssetRef("RegistryY", "7")
Y8 = AssetRef("RegistryY", "8")


class TestSequenceGenerator:
    """Tests for persisted id sequences."""

    @pytest.mark.asyncio
    async def test_starts_at_one_and_increases(self, db_session):
        """Test values start at 1 and never repeat."""
        sequence = SequenceGenerator(db_session, "orders")

        assert await sequence.current() == 0
        assert await sequence.next_value() == 1
        assert await sequence.next_value() == 2
        assert await sequence.current() == 2

    @pytest.mark.asyncio
    async def test_named_sequences_are_independent(self, db_session):
        """Test two names do not share a counter."""
        orders = SequenceGenerator(db_session, "orders")
        offers = SequenceGenerator(db_session, "offers")

        await orders.next_value()
        await orders.next_value()

        assert await offers.next_value() == 1

    @pytest.mark.asyncio
    async def test_rolled_back_value_is_not_consumed(self, db_session):
        """Test an aborted transaction leaves the sequence untouched."""
        sequence = SequenceGenerator(db_session, "orders")
        await sequence.next_value()
        await db_session.commit()

        await sequence.next_value()
        await db_session.rollback()

        assert await sequence.current() == 1
        assert await sequence.next_value() == 2


class TestOrderRepository:
    """Tests for the order store."""

    @pytest.mark.asyncio
    async def test_create_order(self, order_repo: OrderRepository, db_session):
        """Test order creation."""
        order = await order_repo.create("alice", X1)
        await db_session.commit()

        assert order.id == 1
        assert order.owner == "alice"
        assert order.listed_asset == X1
        assert order.active is True
        assert order.status == OrderStatus.ACTIVE
        assert order.accepted_offer_id is None

    @pytest.mark.asyncio
    async def test_ids_are_monotonic(self, order_repo: OrderRepository):
        """Test each order gets the next id."""
        first = await order_repo.create("alice", X1)
        second = await order_repo.create("bob", X2)

        assert (first.id, second.id) == (1, 2)
        assert await order_repo.count() == 2

    @pytest.mark.asyncio
    async def test_get_missing_order(self, order_repo: OrderRepository):
        """Test missing orders come back as None."""
        assert await order_repo.get(42) is None
        assert await order_repo.count() == 0

    @pytest.mark.asyncio
    async def test_set_inactive(self, order_repo: OrderRepository, db_session):
        """Test terminal transition records status and accepted offer."""
        order = await order_repo.create("alice", X1)

        await order_repo.set_inactive(order, OrderStatus.SETTLED, accepted_offer_id=3)
        await db_session.commit()

        loaded = await order_repo.get(order.id)
        assert loaded.active is False
        assert loaded.status == OrderStatus.SETTLED
        assert loaded.accepted_offer_id == 3
        assert loaded.closed_at is not None

    @pytest.mark.asyncio
    async def test_set_inactive_is_idempotent(self, order_repo: OrderRepository):
        """Test a second terminal transition is a no-op."""
        order = await order_repo.create("alice", X1)

        await order_repo.set_inactive(order, OrderStatus.CANCELED)
        await order_repo.set_inactive(order, OrderStatus.SETTLED, accepted_offer_id=1)

        assert order.status == OrderStatus.CANCELED
        assert order.accepted_offer_id is None

    @pytest.mark.asyncio
    async def test_set_inactive_requires_terminal_status(self, order_repo: OrderRepository):
        """Test orders cannot be moved back to active."""
        order = await order_repo.create("alice", X1)

        with pytest.raises(ValueError, match="Terminal status"):
            await order_repo.set_inactive(order, OrderStatus.ACTIVE)


class TestOfferRepository:
    """Tests for the offer store."""

    @pytest.mark.asyncio
    async def test_append_offer(
        self, order_repo: OrderRepository, offer_repo: OfferRepository, db_session
    ):
        """Test offer creation keeps bundle order."""
        order = await order_repo.create("alice", X1)

        offer = await offer_repo.append(order.id, "bob", [Y8, Y7])
        await db_session.commit()

        loaded = await offer_repo.get(offer.id)
        assert loaded.id == 1
        assert loaded.order_id == order.id
        assert loaded.sequence == 1
        assert loaded.proposer == "bob"
        assert loaded.bundle == (Y8, Y7)

    @pytest.mark.asyncio
    async def test_offer_ids_are_global(
        self, order_repo: OrderRepository, offer_repo: OfferRepository
    ):
        """Test first offers of two different orders get distinct ids."""
        order_a = await order_repo.create("alice", X1)
        order_b = await order_repo.create("carol", X2)

        offer_a = await offer_repo.append(order_a.id, "bob", [Y7])
        offer_b = await offer_repo.append(order_b.id, "bob", [Y8])

        assert offer_a.id != offer_b.id
        assert (offer_a.sequence, offer_b.sequence) == (1, 1)
        assert (await offer_repo.get(offer_b.id)).order_id == order_b.id

    @pytest.mark.asyncio
    async def test_count_and_list_for_order(
        self, order_repo: OrderRepository, offer_repo: OfferRepository
    ):
        """Test offers are counted and listed per order."""
        order_a = await order_repo.create("alice", X1)
        order_b = await order_repo.create("carol", X2)

        await offer_repo.append(order_a.id, "bob", [Y7])
        await offer_repo.append(order_b.id, "dave", [Y8])
        await offer_repo.append(order_a.id, "erin", [Y8])

        assert await offer_repo.count_for(order_a.id) == 2
        assert await offer_repo.count_for(order_b.id) == 1

        listed = await offer_repo.list_for(order_a.id)
        assert [offer.proposer for offer in listed] == ["bob", "erin"]
        assert [offer.sequence for offer in listed] == [1, 2]

    @pytest.mark.asyncio
    async def test_list_for_missing_order(self, offer_repo: OfferRepository):
        """Test unknown orders have no offers."""
        assert await offer_repo.count_for(99) == 0
        assert await offer_repo.list_for(99) == []
        assert await offer_repo.get(99) is None

    def test_bundle_column_names(self):
        """Test the bundle registry column keeps its name without hiding the declarative registry."""
        assert "registry" in OfferAsset.__table__.c
        assert OfferAsset.registry is Base.registry
