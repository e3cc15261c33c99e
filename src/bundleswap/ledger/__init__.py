"""Ledger module: persisted orders, offers and id sequences."""

from bundleswap.ledger.database import close_db, get_session_factory, init_db
from bundleswap.ledger.models import (
    Offer,
    OfferAsset,
    Order,
    OrderStatus,
    SequenceState,
)
from bundleswap.ledger.repository import OfferRepository, OrderRepository, SequenceGenerator

__all__ = [
    # Models
    "Order",
    "Offer",
    "OfferAsset",
    "SequenceState",
    # Enums
    "OrderStatus",
    # Database
    "init_db",
    "close_db",
    "get_session_factory",
    # Stores
    "OrderRepository",
    "OfferRepository",
    "SequenceGenerator",
]
