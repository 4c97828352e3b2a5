"""
web3.py backed on-chain data provider.

Each Web3PoolDataProvider owns one AsyncWeb3 instance over its own
AsyncHTTPProvider, i.e. one independent HTTP session per provider-pool slot.
Immutable field reads are grouped into a single JSON-RPC batch when the
node accepts batches, and fall back to sequential eth_calls otherwise.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_utils.address import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3

from ..pricing.pool_types import RawPriceState
from .base import POOL_FIELDS, FieldRequest, FieldResult, OnChainDataProvider
from .errors import ProviderConnectionError, ResolutionError, StateReadError

DEFAULT_TIMEOUT = 10.0

POOL_ABI = [
    {
        "name": "slot0",
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"},
            {"name": "observationIndex", "type": "uint16"},
            {"name": "observationCardinality", "type": "uint16"},
            {"name": "observationCardinalityNext", "type": "uint16"},
            {"name": "feeProtocol", "type": "uint8"},
            {"name": "unlocked", "type": "bool"},
        ],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "token0",
        "outputs": [{"name": "", "type": "address"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "token1",
        "outputs": [{"name": "", "type": "address"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "fee",
        "outputs": [{"name": "", "type": "uint24"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_ABI = [
    {
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
]


class Web3PoolDataProvider(OnChainDataProvider):
    """
    On-chain data provider over a single AsyncWeb3 HTTP connection.

    Every call is bounded by `timeout` seconds, both at the HTTP layer and
    around the awaited call itself.
    """

    def __init__(
        self,
        endpoint_url: str,
        w3: AsyncWeb3,
        timeout: float = DEFAULT_TIMEOUT,
        use_batching: bool = True,
    ):
        super().__init__(endpoint_url)
        self.w3 = w3
        self.timeout = timeout
        self.use_batching = use_batching
        self._contracts: Dict[Tuple[str, str], Any] = {}

    @classmethod
    async def connect(
        cls,
        endpoint_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        use_batching: bool = True,
    ) -> "Web3PoolDataProvider":
        """
        Open an HTTP connection to `endpoint_url` and check it answers.

        Raises:
            ProviderConnectionError: If the node is unreachable or too slow
        """
        w3 = AsyncWeb3(AsyncHTTPProvider(endpoint_url, request_kwargs={"timeout": timeout}))
        provider = cls(endpoint_url, w3, timeout=timeout, use_batching=use_batching)

        try:
            connected = await asyncio.wait_for(w3.is_connected(), timeout)
            if connected:
                provider.chain_id = await asyncio.wait_for(w3.eth.chain_id, timeout)
        except asyncio.TimeoutError as e:
            await provider.aclose()
            raise ProviderConnectionError(
                f"Timed out after {timeout}s connecting to {endpoint_url}", endpoint_url
            ) from e
        except Exception as e:
            await provider.aclose()
            raise ProviderConnectionError(
                f"RPC connection failed: {endpoint_url}: {e}", endpoint_url
            ) from e

        if not connected:
            await provider.aclose()
            raise ProviderConnectionError(f"RPC not connected: {endpoint_url}", endpoint_url)

        provider.logger.info(f"Connected to {endpoint_url} (chain id {provider.chain_id})")
        return provider

    def _contract(self, address: str, field_name: str):
        """Get (and cache) a contract object exposing `field_name`."""
        abi_name = "pool" if field_name in POOL_FIELDS or field_name == "slot0" else "erc20"
        checksum_address = to_checksum_address(address)
        key = (checksum_address, abi_name)
        if key not in self._contracts:
            abi = POOL_ABI if abi_name == "pool" else ERC20_ABI
            self._contracts[key] = self.w3.eth.contract(address=checksum_address, abi=abi)
        return self._contracts[key]

    def _function(self, address: str, field_name: str):
        contract = self._contract(address, field_name)
        return getattr(contract.functions, field_name)()

    async def resolve_immutable_field(self, address: str, field_name: str) -> Any:
        """Read one immutable field with a plain eth_call."""
        try:
            return await asyncio.wait_for(self._function(address, field_name).call(), self.timeout)
        except asyncio.TimeoutError as e:
            raise ResolutionError(
                f"{field_name}() on {address} timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise ResolutionError(f"{field_name}() on {address} failed: {e}") from e

    async def resolve_immutable_fields(
        self, requests: Sequence[FieldRequest]
    ) -> List[FieldResult]:
        """
        Read several immutable fields in one JSON-RPC batch.

        Falls back to sequential calls when the node rejects the batch or
        any entry in it fails, so each request gets its own value or error.
        """
        if not self.use_batching or len(requests) < 2:
            return await super().resolve_immutable_fields(requests)

        try:
            async with self.w3.batch_requests() as batch:
                for address, field_name in requests:
                    batch.add(self._function(address, field_name))
                responses = await asyncio.wait_for(batch.async_execute(), self.timeout)
            return list(responses)
        except asyncio.TimeoutError:
            error = ResolutionError(f"batched read timed out after {self.timeout}s")
            return [error for _ in requests]
        except Exception as e:
            self.logger.debug(
                f"Batched read on {self.endpoint_url} failed ({e}), falling back to sequential calls"
            )

        return await super().resolve_immutable_fields(requests)

    async def read_pool_state(self, pool_address: str) -> RawPriceState:
        """Read slot0 of a V3 pool."""
        try:
            values = await asyncio.wait_for(
                self._function(pool_address, "slot0").call(), self.timeout
            )
        except asyncio.TimeoutError as e:
            raise StateReadError(f"slot0() timed out after {self.timeout}s", pool_address) from e
        except Exception as e:
            raise StateReadError(f"slot0() failed: {e}", pool_address) from e

        try:
            return RawPriceState.from_slot0(values)
        except (TypeError, ValueError) as e:
            raise StateReadError(f"Malformed slot0 response: {e}", pool_address) from e

    async def aclose(self) -> None:
        """Close the cached HTTP session of this connection."""
        await self.w3.provider.disconnect()
