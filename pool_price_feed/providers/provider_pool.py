"""
Fixed-size pool of provider connections.

Connections are established once at startup and handed out by index:
monitored pool `i` always uses slot `i % size`. When there are fewer slots
than pools, several pollers share a slot and their calls are serialized by
the slot's lock, one request at a time, in the order they queue up.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ..pricing.pool_types import RawPriceState
from .base import FieldRequest, FieldResult, OnChainDataProvider
from .errors import ErrorHandler, ProviderConnectionError

logger = logging.getLogger(__name__)

ConnectFunc = Callable[[str], Awaitable[OnChainDataProvider]]


class ProviderHandle:
    """
    One provider-pool slot: a connection plus the lock serializing its calls.

    Exposes the same read methods as OnChainDataProvider so resolvers and
    pollers can use a handle wherever they would use a provider.
    """

    def __init__(self, index: int, provider: OnChainDataProvider):
        self.index = index
        self.provider = provider
        self.lock = asyncio.Lock()
        self.users = 0

    @property
    def endpoint_url(self) -> str:
        return self.provider.endpoint_url

    @property
    def shared(self) -> bool:
        return self.users > 1

    async def resolve_immutable_field(self, address: str, field_name: str):
        async with self.lock:
            return await self.provider.resolve_immutable_field(address, field_name)

    async def resolve_immutable_fields(self, requests: Sequence[FieldRequest]) -> List[FieldResult]:
        async with self.lock:
            return await self.provider.resolve_immutable_fields(requests)

    async def read_pool_state(self, pool_address: str) -> RawPriceState:
        async with self.lock:
            return await self.provider.read_pool_state(pool_address)

    def __repr__(self) -> str:
        return f"ProviderHandle(index={self.index}, endpoint={self.endpoint_url}, users={self.users})"


class ProviderPool:
    """
    A fixed collection of independently connected providers.

    Startup policy is fail-fast: if any slot cannot be connected after its
    retries, every connection already opened is closed and the whole pool
    fails with ProviderConnectionError.
    """

    def __init__(self, handles: List[ProviderHandle]):
        if not handles:
            raise ValueError("ProviderPool needs at least one connection")
        self.handles = handles

    @classmethod
    async def connect(
        cls,
        endpoints: Sequence[str],
        size: int,
        connect: ConnectFunc,
        max_retries: int = 3,
        error_handler: Optional[ErrorHandler] = None,
        expected_chain_id: Optional[int] = None,
    ) -> "ProviderPool":
        """
        Establish `size` connections spread round-robin over `endpoints`.

        Args:
            endpoints: RPC endpoint URLs
            size: Number of connections to open
            connect: Coroutine function opening one connection to a URL
            max_retries: Attempts per connection before giving up
            error_handler: Handler used to log failures and compute backoff
            expected_chain_id: Reject endpoints reporting a different chain id

        Returns:
            Connected ProviderPool

        Raises:
            ProviderConnectionError: If any connection cannot be established
                or serves the wrong chain
        """
        if not endpoints:
            raise ProviderConnectionError("No RPC endpoints configured")
        if size < 1:
            raise ValueError(f"Provider pool size must be positive, got {size}")

        error_handler = error_handler or ErrorHandler(logger)
        slot_urls = [endpoints[i % len(endpoints)] for i in range(size)]

        logger.info(f"Opening {size} provider connections over {len(endpoints)} endpoint(s)")
        results = await asyncio.gather(
            *(
                cls._connect_with_retry(url, connect, max_retries, error_handler)
                for url in slot_urls
            ),
            return_exceptions=True,
        )

        providers = [r for r in results if isinstance(r, OnChainDataProvider)]
        failures = [r for r in results if isinstance(r, BaseException)]
        if expected_chain_id is not None:
            failures.extend(
                ProviderConnectionError(
                    f"{p.endpoint_url} serves chain id {p.chain_id}, expected {expected_chain_id}",
                    p.endpoint_url,
                )
                for p in providers
                if p.chain_id is not None and p.chain_id != expected_chain_id
            )
        if failures:
            for provider in providers:
                await provider.aclose()
            first = failures[0]
            if isinstance(first, ProviderConnectionError):
                raise first
            raise ProviderConnectionError(f"Failed to open provider connection: {first}") from first

        handles = [ProviderHandle(index, provider) for index, provider in enumerate(providers)]
        return cls(handles)

    @staticmethod
    async def _connect_with_retry(
        url: str,
        connect: ConnectFunc,
        max_retries: int,
        error_handler: ErrorHandler,
    ) -> OnChainDataProvider:
        """Connect to one endpoint, backing off between failed attempts."""
        attempts = max(1, max_retries)
        for attempt in range(attempts):
            try:
                return await connect(url)
            except Exception as e:
                error_handler.log_error(
                    e,
                    {"endpoint": url, "attempt": attempt + 1, "max_retries": attempts},
                )
                if not error_handler.should_retry(e, attempt, attempts):
                    if isinstance(e, ProviderConnectionError):
                        raise
                    raise ProviderConnectionError(f"Could not connect to {url}: {e}", url) from e

                delay = error_handler.get_retry_delay(e, attempt)
                logger.info(f"Retrying {url} in {delay}s... (attempt {attempt + 1}/{attempts})")
                await asyncio.sleep(delay)

        raise ProviderConnectionError(f"Could not connect to {url}", url)

    def __len__(self) -> int:
        return len(self.handles)

    def get(self, index: int) -> ProviderHandle:
        """Get the handle in slot `index`."""
        return self.handles[index]

    def assign(self, pool_index: int) -> ProviderHandle:
        """Bind monitored pool `pool_index` to its slot, wrapping round-robin."""
        handle = self.handles[pool_index % len(self.handles)]
        handle.users += 1
        if handle.shared:
            logger.info(
                f"Connection {handle.index} is shared by {handle.users} pools; calls will be serialized"
            )
        return handle

    async def aclose(self) -> None:
        """Close every connection in the pool."""
        for handle in self.handles:
            try:
                await handle.provider.aclose()
            except Exception as e:
                logger.warning(f"Error closing connection {handle.index} ({handle.endpoint_url}): {e}")
