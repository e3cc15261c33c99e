"""Escrow swap module.

Provides:
- SwapOrchestrator: order/offer lifecycle and atomic settlement
- TransferJournal: registry transfers with reverse-order compensation
"""

from bundleswap.swap.orchestrator import OfferSnapshot, OrderSnapshot, SwapOrchestrator
from bundleswap.swap.transfers import TransferJournal, TransferRecord

__all__ = [
    "SwapOrchestrator",
    "OrderSnapshot",
    "OfferSnapshot",
    "TransferJournal",
    "TransferRecord",
]
