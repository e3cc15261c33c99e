"""Transfer journal for one escrow operation.

Registries give no transactional rollback across calls, so every transfer an
operation issues is recorded here. If the operation aborts, the journal issues
the inverse transfers, newest first.
"""

import logging
from dataclasses import dataclass

from bundleswap.registry.base import AssetRef, RegistryDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferRecord:
    """A transfer that took effect in the registry."""

    asset: AssetRef
    sender: str
    recipient: str


class TransferJournal:
    """Issues registry transfers on behalf of the escrow and can undo them."""

    def __init__(self, directory: RegistryDirectory, operator: str):
        self.directory = directory
        self.operator = operator
        self.records: list[TransferRecord] = []

    async def transfer(self, asset: AssetRef, sender: str, recipient: str) -> TransferRecord:
        """Move an asset and remember that it moved."""
        registry = self.directory.for_asset(asset)
        await registry.transfer(sender, recipient, asset.token_id, self.operator)

        record = TransferRecord(asset=asset, sender=sender, recipient=recipient)
        self.records.append(record)
        logger.debug(f"Journaled transfer {asset}: {sender} -> {recipient}")
        return record

    async def compensate(self) -> list[TransferRecord]:
        """Reverse every recorded transfer, newest first.

        Returns the transfers that could not be reversed. Those leave an asset
        outside its pre-operation owner and are logged at CRITICAL.
        """
        failed: list[TransferRecord] = []

        while self.records:
            record = self.records.pop()
            registry = self.directory.for_asset(record.asset)
            try:
                await registry.transfer(
                    record.recipient, record.sender, record.asset.token_id, self.operator
                )
                logger.info(
                    f"Compensated transfer {record.asset}: {record.recipient} -> {record.sender}"
                )
            except Exception as e:
                failed.append(record)
                logger.critical(
                    f"COMPENSATION FAILED for {record.asset} "
                    f"({record.sender} -> {record.recipient}): {e}"
                )

        return failed
