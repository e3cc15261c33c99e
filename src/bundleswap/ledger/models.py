"""SQLAlchemy models for the order book."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from bundleswap.registry.base import AssetRef


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    ACTIVE = "active"        # Listed asset held in custody
    SETTLED = "settled"      # Terminal: an offer was accepted
    CANCELED = "canceled"    # Terminal: listed asset returned to owner


class Order(Base):
    """A listing of one custodial asset for trade."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    listed_registry: Mapped[str] = mapped_column(String(100), nullable=False)
    listed_token_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        String(20), default=OrderStatus.ACTIVE, nullable=False
    )
    accepted_offer_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def active(self) -> bool:
        """Whether the listed asset is still in custody."""
        return self.status == OrderStatus.ACTIVE

    @property
    def listed_asset(self) -> AssetRef:
        return AssetRef(self.listed_registry, self.listed_token_id)


class Offer(Base):
    """A proposed bundle of assets against one order.

    ``id`` is global across all orders; ``sequence`` is the offer's position
    among its own order's offers.
    """

    __tablename__ = "offers"
    __table_args__ = (Index("ix_offers_order_sequence", "order_id", "sequence", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    proposer: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    assets: Mapped[list["OfferAsset"]] = relationship(
        back_populates="offer",
        lazy="selectin",
        order_by="OfferAsset.position",
        cascade="all, delete-orphan",
    )

    @property
    def bundle(self) -> tuple[AssetRef, ...]:
        return tuple(AssetRef(item.registry_id, item.token_id) for item in self.assets)


class OfferAsset(Base):
    """One asset of an offer's bundle, kept in bundle order."""

    __tablename__ = "offer_assets"
    __table_args__ = (Index("ix_offer_assets_offer_position", "offer_id", "position", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), nullable=False)
    position: Mapped[int] = mapped_column(nullable=False)
    registry_id: Mapped[str] = mapped_column("registry", String(100), nullable=False)
    token_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Relationships
    offer: Mapped["Offer"] = relationship(back_populates="assets")


class SequenceState(Base):
    """Tracks the last issued value of a named id sequence.

    Values are handed out inside the caller's transaction, so an aborted
    operation never consumes one.
    """

    __tablename__ = "sequences"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    last_value: Mapped[int] = mapped_column(default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
