"""
Base classes for on-chain data providers.

This module defines the abstract interface the price feed consumes to talk
to a chain: immutable field lookups (single and batched), pool state reads
and connection establishment. Transport, framing and ABI handling live in
the concrete implementations.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple, Union

from ..pricing.pool_types import RawPriceState

logger = logging.getLogger(__name__)

# (contract address, field name), e.g. ("0x88e6...", "token0")
FieldRequest = Tuple[str, str]
FieldResult = Union[Any, Exception]

# Immutable pool fields the resolver reads
POOL_FIELDS = ("token0", "token1", "fee")


class OnChainDataProvider(ABC):
    """
    Abstract base class for a single RPC connection.

    One instance wraps one independent connection to one endpoint.
    """

    def __init__(self, endpoint_url: str):
        self.endpoint_url = endpoint_url
        # Filled in by connect() when the endpoint reports it
        self.chain_id: Optional[int] = None
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @classmethod
    @abstractmethod
    async def connect(cls, endpoint_url: str, **kwargs) -> "OnChainDataProvider":
        """
        Establish a connection to an endpoint.

        Raises:
            ProviderConnectionError: If the endpoint is unreachable
        """
        pass

    @abstractmethod
    async def resolve_immutable_field(self, address: str, field_name: str) -> Any:
        """
        Read a single immutable field of a contract.

        Args:
            address: Contract address
            field_name: One of POOL_FIELDS, or "decimals" / "symbol" for a token

        Returns:
            Decoded field value
        """
        pass

    async def resolve_immutable_fields(
        self, requests: Sequence[FieldRequest]
    ) -> List[FieldResult]:
        """
        Read several immutable fields, possibly across contracts.

        Results come back in request order; a failed request yields its
        exception in place of a value. The default implementation issues
        the reads one after another; providers whose transport supports
        batching override this with a single round trip.
        """
        results: List[FieldResult] = []
        for address, field_name in requests:
            try:
                results.append(await self.resolve_immutable_field(address, field_name))
            except Exception as e:
                results.append(e)
        return results

    @abstractmethod
    async def read_pool_state(self, pool_address: str) -> RawPriceState:
        """
        Read the current slot0 state of a pool.

        Raises:
            StateReadError: If the read fails
        """
        pass

    async def aclose(self) -> None:
        """Release the underlying connection."""
        return None
