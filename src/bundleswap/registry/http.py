"""REST asset registry client.

Expected endpoints, relative to the registry base URL:

    GET  /tokens/{token_id}/owner           -> {"owner": "..."}       (404 if unknown)
    GET  /tokens/{token_id}/approved        -> {"approved": "..."|null}
    GET  /approvals/{owner}/{operator}      -> {"approved": true|false}
    POST /transfers  {"from", "to", "token_id", "operator"}
         403 -> operator not approved, 409 -> sender is not the owner
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from bundleswap.errors import (
    NotApprovedError,
    OwnershipMismatchError,
    RegistryUnavailableError,
)
from bundleswap.registry.base import AssetRegistry

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    """Quote a value for use as a single URL path segment."""
    return quote(value, safe="")


class HttpAssetRegistry(AssetRegistry):
    """Asset registry reached over HTTP."""

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            name: Registry id used in asset references
            base_url: Registry REST base URL
            api_key: Optional API key, sent as X-API-Key
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport override
        """
        self._name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return self._name

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Registry {self._name} request failed: {method} {path}: {e}")
            raise RegistryUnavailableError(f"Registry {self._name} unreachable: {e}") from e

    def _unexpected(self, response: httpx.Response) -> RegistryUnavailableError:
        logger.warning(
            f"Registry {self._name} answered {response.status_code} "
            f"for {response.request.method} {response.request.url.path}"
        )
        return RegistryUnavailableError(
            f"Registry {self._name} returned HTTP {response.status_code}"
        )

    async def owner_of(self, token_id: str) -> Optional[str]:
        response = await self._request("GET", f"/tokens/{_segment(token_id)}/owner")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._unexpected(response)
        return response.json().get("owner")

    async def get_approved(self, token_id: str) -> Optional[str]:
        response = await self._request("GET", f"/tokens/{_segment(token_id)}/approved")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._unexpected(response)
        return response.json().get("approved")

    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        response = await self._request("GET", f"/approvals/{_segment(owner)}/{_segment(operator)}")
        if response.status_code != 200:
            raise self._unexpected(response)
        return bool(response.json().get("approved", False))

    async def transfer(self, sender: str, recipient: str, token_id: str, operator: str) -> None:
        response = await self._request(
            "POST",
            "/transfers",
            json={"from": sender, "to": recipient, "token_id": token_id, "operator": operator},
        )

        if response.status_code in (200, 201, 204):
            logger.debug(f"Transferred {self._name}#{token_id}: {sender} -> {recipient}")
            return
        if response.status_code == 403:
            raise NotApprovedError(
                f"{operator} is not approved to move {self._name}#{token_id} for {sender}"
            )
        if response.status_code == 409:
            raise OwnershipMismatchError(f"{sender} does not own {self._name}#{token_id}")
        raise self._unexpected(response)
