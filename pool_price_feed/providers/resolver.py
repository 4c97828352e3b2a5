"""
Pool descriptor resolution.

Reads the immutable metadata of a V3 pool (token addresses, fee tier) and
of its two tokens (decimals, symbol) and assembles a Pool descriptor.
"""

import asyncio
import logging
from typing import Any, List, Optional, Sequence

from eth_utils.address import is_address, to_checksum_address

from ..pricing.pool_types import V3_POOL_VERSION, Pool, Token, same_address
from .base import FieldRequest
from .errors import PriceFeedError, ResolutionError, UnsupportedPoolVersion

logger = logging.getLogger(__name__)

SUPPORTED_POOL_VERSIONS = frozenset({V3_POOL_VERSION})
MAX_TOKEN_DECIMALS = 255  # uint8


class PoolDescriptorResolver:
    """
    Resolve a pool address into a Pool descriptor.

    Failures are raised, never retried here; retry policy belongs to the
    caller. Token symbols are best effort and never fail a resolution.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def resolve(self, pool_address: str, provider, version: int = V3_POOL_VERSION) -> Pool:
        """
        Fetch and assemble the descriptor of one pool.

        Args:
            pool_address: Pool contract address
            provider: OnChainDataProvider or ProviderHandle to read through
            version: Layout version the pool is configured with

        Returns:
            Fully populated Pool

        Raises:
            UnsupportedPoolVersion: If no formula exists for `version`
            ResolutionError: If any required metadata read fails
        """
        if version not in SUPPORTED_POOL_VERSIONS:
            raise UnsupportedPoolVersion(version, pool_address)

        if not is_address(pool_address):
            raise ResolutionError(f"Invalid pool address: {pool_address!r}", pool_address)
        pool_address = to_checksum_address(pool_address)

        token0_address, token1_address, fee = await self._read_required(
            provider,
            [(pool_address, "token0"), (pool_address, "token1"), (pool_address, "fee")],
            pool_address,
            "pool does not expose the V3 pool interface",
        )

        if not is_address(token0_address) or not is_address(token1_address):
            raise ResolutionError(
                f"pool returned malformed token addresses: {token0_address!r}, {token1_address!r}",
                pool_address,
            )
        token0_address = to_checksum_address(token0_address)
        token1_address = to_checksum_address(token1_address)
        if same_address(token0_address, token1_address):
            raise ResolutionError(f"token0 and token1 are both {token0_address}", pool_address)

        decimals0, decimals1 = await self._read_required(
            provider,
            [(token0_address, "decimals"), (token1_address, "decimals")],
            pool_address,
            "token decimals() call failed",
        )
        for token_address, decimals in ((token0_address, decimals0), (token1_address, decimals1)):
            if not isinstance(decimals, int) or not 0 <= decimals <= MAX_TOKEN_DECIMALS:
                raise ResolutionError(
                    f"token {token_address} returned invalid decimals: {decimals!r}", pool_address
                )

        symbol0, symbol1 = await self._read_symbols(provider, token0_address, token1_address)

        pool = Pool(
            address=pool_address,
            version=version,
            token0=Token(address=token0_address, decimals=decimals0, symbol=symbol0),
            token1=Token(address=token1_address, decimals=decimals1, symbol=symbol1),
            fee=int(fee),
        )
        self.logger.info(
            f"Resolved pool {pool_address}: {pool.label} fee={pool.fee} "
            f"decimals={decimals0}/{decimals1}"
        )
        self.logger.debug(f"decimal delta for {pool_address}: {pool.decimal_delta}")
        return pool

    async def _batch(self, provider, requests: Sequence[FieldRequest]) -> List[Any]:
        call = provider.resolve_immutable_fields(requests)
        if self.timeout is None:
            return await call
        return await asyncio.wait_for(call, self.timeout)

    async def _read_required(
        self, provider, requests: Sequence[FieldRequest], pool_address: str, what: str
    ) -> List[Any]:
        """Batch-read fields that must all succeed."""
        try:
            results = await self._batch(provider, requests)
        except asyncio.TimeoutError as e:
            raise ResolutionError(f"{what}: timed out after {self.timeout}s", pool_address) from e
        except PriceFeedError as e:
            raise ResolutionError(f"{what}: {e.message}", pool_address) from e
        except Exception as e:
            raise ResolutionError(f"{what}: {e}", pool_address) from e

        for (address, field_name), result in zip(requests, results):
            if isinstance(result, Exception):
                raise ResolutionError(
                    f"{what}: {field_name}() on {address}: {result}", pool_address
                ) from result
        return list(results)

    async def _read_symbols(self, provider, token0_address: str, token1_address: str):
        """Best-effort symbol lookup; missing or failing symbols become None."""
        try:
            results = await self._batch(
                provider, [(token0_address, "symbol"), (token1_address, "symbol")]
            )
        except Exception as e:
            self.logger.debug(f"symbol() lookup failed for {token0_address}/{token1_address}: {e}")
            return None, None

        symbols = []
        for result in results:
            symbols.append(result if isinstance(result, str) and result else None)
        return symbols[0], symbols[1]
