"""Asset registry capability consumed by the escrow.

Registries are the only source of truth for who owns an asset and who may
move it. The escrow never caches an answer beyond the call that asked for it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from bundleswap.errors import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetRef:
    """A uniquely identified asset: (registry id, token id)."""

    registry: str
    token_id: str

    def __str__(self) -> str:
        return f"{self.registry}#{self.token_id}"

    def to_dict(self) -> dict:
        return {"registry": self.registry, "token_id": self.token_id}


class AssetRegistry(ABC):
    """Abstract base class for asset registries."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry identifier, as used in :class:`AssetRef`."""
        pass

    @abstractmethod
    async def owner_of(self, token_id: str) -> Optional[str]:
        """Current owner of a token, or None if the token does not exist."""
        pass

    @abstractmethod
    async def transfer(self, sender: str, recipient: str, token_id: str, operator: str) -> None:
        """
        Move a token.

        Args:
            sender: Identity the token is moved from; must be the current owner
            recipient: Identity receiving the token
            token_id: Token to move
            operator: Identity performing the move; must be the sender or approved by it

        Raises:
            OwnershipMismatchError: sender does not own the token
            NotApprovedError: operator is not authorized by the sender
        """
        pass

    @abstractmethod
    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        """Whether owner granted operator blanket approval over all its tokens."""
        pass

    @abstractmethod
    async def get_approved(self, token_id: str) -> Optional[str]:
        """Identity holding per-token approval, if any."""
        pass

    async def is_operator_authorized(self, owner: str, operator: str, token_id: str) -> bool:
        """Blanket or per-token approval, whichever the owner granted."""
        if await self.is_approved_for_all(owner, operator):
            return True
        return await self.get_approved(token_id) == operator


class RegistryDirectory:
    """Resolves registry ids to registry instances."""

    def __init__(self, registries: Optional[Iterable[AssetRegistry]] = None):
        self._registries: dict[str, AssetRegistry] = {}
        for registry in registries or []:
            self.add(registry)

    def add(self, registry: AssetRegistry) -> None:
        """Register a registry under its name."""
        if registry.name in self._registries:
            raise ValueError(f"Registry already registered: {registry.name}")
        self._registries[registry.name] = registry
        logger.info(f"Registered asset registry: {registry.name}")

    def get(self, name: str) -> AssetRegistry:
        """Get a registry by id. Raises InvalidInputError if unknown."""
        registry = self._registries.get(name)
        if registry is None:
            raise InvalidInputError(f"Unknown asset registry: {name}")
        return registry

    def for_asset(self, asset: AssetRef) -> AssetRegistry:
        return self.get(asset.registry)

    def __contains__(self, name: str) -> bool:
        return name in self._registries

    @property
    def names(self) -> list[str]:
        return sorted(self._registries)
