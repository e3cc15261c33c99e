"""In-memory asset registry for dry-run mode and tests (no real assets)."""

import logging
from typing import Optional

from bundleswap.errors import InvalidInputError, NotApprovedError, OwnershipMismatchError
from bundleswap.registry.base import AssetRegistry

logger = logging.getLogger(__name__)


class InMemoryAssetRegistry(AssetRegistry):
    """Deterministic non-fungible token registry held in process memory.

    Follows the usual NFT approval rules: an owner can approve one operator
    per token, or approve an operator for all of its tokens. Per-token
    approval is cleared whenever the token moves.
    """

    def __init__(self, name: str):
        self._name = name
        self._owners: dict[str, str] = {}
        self._token_approvals: dict[str, str] = {}
        self._operator_approvals: set[tuple[str, str]] = set()
        self.transfer_log: list[tuple[str, str, str]] = []

    @property
    def name(self) -> str:
        return self._name

    def mint(self, owner: str, token_id: str) -> None:
        """Create a token owned by owner."""
        if token_id in self._owners:
            raise InvalidInputError(f"Token {self._name}#{token_id} already exists")
        self._owners[token_id] = owner
        logger.debug(f"Minted {self._name}#{token_id} to {owner}")

    def approve(self, owner: str, operator: Optional[str], token_id: str) -> None:
        """Grant (or clear, with operator=None) per-token approval."""
        if self._owners.get(token_id) != owner:
            raise OwnershipMismatchError(f"{owner} does not own {self._name}#{token_id}")
        if operator is None:
            self._token_approvals.pop(token_id, None)
        else:
            self._token_approvals[token_id] = operator

    def set_approval_for_all(self, owner: str, operator: str, approved: bool = True) -> None:
        """Grant or revoke blanket approval."""
        if approved:
            self._operator_approvals.add((owner, operator))
        else:
            self._operator_approvals.discard((owner, operator))

    async def owner_of(self, token_id: str) -> Optional[str]:
        return self._owners.get(token_id)

    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return (owner, operator) in self._operator_approvals

    async def get_approved(self, token_id: str) -> Optional[str]:
        return self._token_approvals.get(token_id)

    async def transfer(self, sender: str, recipient: str, token_id: str, operator: str) -> None:
        owner = self._owners.get(token_id)
        if owner is None or owner != sender:
            raise OwnershipMismatchError(
                f"{sender} does not own {self._name}#{token_id} (owner: {owner or 'none'})"
            )

        if operator != sender and not await self.is_operator_authorized(sender, operator, token_id):
            raise NotApprovedError(
                f"{operator} is not approved to move {self._name}#{token_id} for {sender}"
            )

        self._owners[token_id] = recipient
        self._token_approvals.pop(token_id, None)
        self.transfer_log.append((sender, recipient, token_id))
        logger.debug(f"Transferred {self._name}#{token_id}: {sender} -> {recipient}")
