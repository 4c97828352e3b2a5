"""
Per-pool poller.

A PoolPoller owns one monitored pool and the provider-pool slot assigned to
it. It resolves the pool descriptor once, then on every tick reads slot0,
derives the price and hands it to the sink before sleeping until the next
tick boundary.
"""

import asyncio
import logging
from typing import Optional

from ...config.feed import PoolSpec
from ...pricing.converter import derive_price
from ...pricing.pool_types import DerivedPrice, Pool, RawPriceState
from ...providers.errors import (
    TRANSIENT_ERRORS,
    ErrorHandler,
    PriceFeedError,
    SinkError,
    StateReadError,
)
from ...providers.provider_pool import ProviderHandle
from ...providers.resolver import PoolDescriptorResolver
from ..sinks import PriceSink
from .base import PollerResult, PollerState

logger = logging.getLogger(__name__)


class PoolPoller:
    """
    Recurring price reader for a single pool.

    Ticks are strictly sequential: the next read never starts before the
    previous tick's emit has returned. Ticks are scheduled on fixed
    boundaries (start + n * interval); a tick that overruns skips the
    boundaries it missed instead of firing them back to back.

    StateReadError, ConversionError and sink delivery failures (connection
    errors and timeouts raised by emit) are logged and counted, and the
    poller carries on with the next tick. Resolution failures, unsupported
    pool versions and any other sink exception end this poller only.
    """

    def __init__(
        self,
        spec: PoolSpec,
        handle: ProviderHandle,
        sink: PriceSink,
        resolver: Optional[PoolDescriptorResolver] = None,
        *,
        reference_token: Optional[str] = None,
        full_precision: bool = False,
        request_timeout: Optional[float] = None,
        max_ticks: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
        resolve_semaphore: Optional[asyncio.Semaphore] = None,
        pool: Optional[Pool] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.spec = spec
        self.handle = handle
        self.sink = sink
        self.resolver = resolver or PoolDescriptorResolver(timeout=request_timeout)
        self.reference_token = reference_token
        self.full_precision = full_precision
        self.request_timeout = request_timeout
        self.max_ticks = max_ticks
        self.stop_event = stop_event or asyncio.Event()
        self.resolve_semaphore = resolve_semaphore
        self.pool = pool
        self.error_handler = error_handler or ErrorHandler(logger)

        self.state = PollerState.RESOLVING if pool is None else PollerState.IDLE
        self.result = PollerResult(pool_address=spec.address)

    @property
    def address(self) -> str:
        return self.spec.address

    async def run(self) -> PollerResult:
        """
        Resolve the pool (if needed) and poll until stopped.

        Returns:
            PollerResult, COMPLETED when stopped or out of ticks and FAILED
            when a pool-level error ended the poller
        """
        self.result.mark_started()
        phase = "resolve"
        try:
            if self.pool is None:
                self.state = PollerState.RESOLVING
                self.pool = await self._resolve()
            self.result.metadata["pair"] = self.pool.label
            self.state = PollerState.IDLE

            phase = "poll"
            logger.info(
                f"Polling {self.pool.label} ({self.address}) every {self.spec.interval_seconds}s "
                f"on connection {self.handle.index}"
            )
            await self._poll_loop()
            self.result.mark_completed()

        except asyncio.CancelledError:
            self.result.mark_cancelled()
            raise
        except PriceFeedError as e:
            self.error_handler.log_error(
                e, {"pool_address": self.address, "phase": phase, "tick": self.result.ticks}
            )
            self.result.mark_failed(str(e))
        except Exception as e:
            logger.error(f"Poller for {self.address} crashed in {phase} phase: {e}")
            self.result.mark_failed(str(e))
            raise
        finally:
            self.state = PollerState.TERMINATED

        return self.result

    async def _resolve(self) -> Pool:
        if self.resolve_semaphore is None:
            return await self.resolver.resolve(self.address, self.handle, self.spec.version)
        async with self.resolve_semaphore:
            return await self.resolver.resolve(self.address, self.handle, self.spec.version)

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.spec.interval_seconds
        next_tick = loop.time()

        while not self.stop_event.is_set():
            await self._tick()
            if self.max_ticks is not None and self.result.ticks >= self.max_ticks:
                return

            next_tick += interval
            now = loop.time()
            if next_tick < now:
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
                logger.warning(
                    f"Tick {self.result.ticks} of {self.address} overran its interval, "
                    f"skipping {missed} tick(s)"
                )

            if await self._wait(next_tick - now):
                return

    async def _tick(self) -> None:
        self.result.ticks += 1
        self.state = PollerState.IN_FLIGHT
        try:
            await self.poll_once()
        except TRANSIENT_ERRORS as e:
            self.result.failures += 1
            self.error_handler.log_error(
                e, {"pool_address": self.address, "tick": self.result.ticks}
            )
            return
        finally:
            self.state = PollerState.IDLE

        self.result.emitted += 1

    async def poll_once(self) -> DerivedPrice:
        """
        Read, convert and emit one price.

        Raises:
            StateReadError: If the state read fails or times out
            ConversionError: If the state cannot be priced
            SinkError: If the sink loses its connection or times out
        """
        state = await self.read_state()
        price = derive_price(
            self.pool,
            state,
            reference_token=self.reference_token,
            full_precision=self.full_precision,
        )
        try:
            await self.sink.emit(price)
        except (ConnectionError, asyncio.TimeoutError) as e:
            raise SinkError(f"emit failed: {e}", self.address) from e
        return price

    async def read_state(self) -> RawPriceState:
        """Read slot0 through the assigned connection, bounded by request_timeout."""
        try:
            call = self.handle.read_pool_state(self.address)
            if self.request_timeout is None:
                return await call
            return await asyncio.wait_for(call, self.request_timeout)
        except asyncio.TimeoutError as e:
            raise StateReadError(
                f"state read timed out after {self.request_timeout}s", self.address
            ) from e
        except StateReadError:
            raise
        except PriceFeedError as e:
            raise StateReadError(e.message, self.address) from e
        except Exception as e:
            raise StateReadError(f"state read failed: {e}", self.address) from e

    async def _wait(self, delay: float) -> bool:
        """Sleep until the next tick; True when shutdown was requested meanwhile."""
        if delay <= 0:
            return self.stop_event.is_set()
        try:
            await asyncio.wait_for(self.stop_event.wait(), delay)
            return True
        except asyncio.TimeoutError:
            return False

    def __repr__(self) -> str:
        return f"PoolPoller(pool={self.address}, state={self.state.value}, ticks={self.result.ticks})"
