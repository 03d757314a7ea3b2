"""Upstream name providers: ENS on mainnet and Base names via Alchemy."""

import asyncio
import logging
from typing import Optional, Protocol

import httpx
from ens import AsyncENS
from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3

from perfect_names.resilience.errors import (
    NameResolutionError,
    UpstreamAPIError,
    UpstreamNetworkError,
    UpstreamTimeout,
)

logger = logging.getLogger(__name__)

BASENAME_CONTRACT = "0x03c4738ee98ae44591e1a4a4f3cab6641d95dd9a"


class NameProvider(Protocol):
    """
    Something that can look up a name for an address.

    ``lookup`` returns None when the address has no name and raises a
    NameResolutionError subclass when the upstream fails.
    """

    name: str

    async def lookup(self, address: str) -> Optional[str]:
        ...


class EnsProvider:
    """Reverse ENS lookups over Ethereum JSON-RPC."""

    name = "ens"

    def __init__(self, rpc_url: str, ns: Optional[AsyncENS] = None):
        self.rpc_url = rpc_url
        self._ns = ns

    @property
    def ns(self) -> AsyncENS:
        """Lazy-load the ENS client."""
        if self._ns is None:
            w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
            self._ns = AsyncENS.from_web3(w3)
        return self._ns

    async def lookup(self, address: str) -> Optional[str]:
        try:
            return await self.ns.name(to_checksum_address(address))
        except NameResolutionError:
            raise
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise UpstreamTimeout("ENS resolution timeout", provider=self.name) from e
        except Exception as e:
            raise UpstreamNetworkError(f"ENS request failed: {e}", provider=self.name) from e


class BasenameProvider:
    """Base name lookups via the Alchemy NFT API."""

    name = "basename"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://base-mainnet.g.alchemy.com",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.headers = {"Accept": "application/json"}

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def lookup(self, address: str) -> Optional[str]:
        """
        Find the Base name NFT owned by an address.

        Args:
            address: Lowercase address

        Returns:
            The name, or None if the address owns no Base name or no API key
            is configured
        """
        if not self.api_key:
            logger.warning("ALCHEMY_API_KEY not configured, skipping Base name resolution")
            return None

        url = f"{self.base_url}/nft/v2/{self.api_key}/getNFTs"
        params = {"owner": address, "contractAddresses[]": BASENAME_CONTRACT}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamTimeout("Base name resolution timeout", provider=self.name) from e
        except httpx.TransportError as e:
            raise UpstreamNetworkError(
                f"Base name network request failed: {e}", provider=self.name
            ) from e

        if response.status_code != 200:
            raise UpstreamAPIError(
                response.status_code,
                f"Alchemy API returned {response.status_code}",
                provider=self.name,
            )

        owned = response.json().get("ownedNfts") or []
        if not owned:
            return None

        return owned[0].get("name") or owned[0].get("title") or None
