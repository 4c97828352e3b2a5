"""
Price feed orchestrator.

Connects the provider pool, spawns one PoolPoller per monitored pool and
supervises them until they all finish or a shutdown is requested.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from ...config.feed import PoolSpec
from ...pricing.pool_types import Pool
from ...providers.errors import ErrorHandler
from ...providers.provider_pool import ConnectFunc, ProviderPool
from ...providers.resolver import PoolDescriptorResolver
from ..sinks import PriceSink
from .base import PollerResult, PollerStatus
from .poller import PoolPoller

logger = logging.getLogger(__name__)


class PriceFeedOrchestrator:
    """
    Supervisor for the per-pool pollers.

    Each poller runs as its own task. A poller that fails is logged and
    recorded; its siblings keep running. Only a failure to open the provider
    pool is fatal to the whole run.
    """

    def __init__(
        self,
        pool_specs: Sequence[PoolSpec],
        endpoints: Sequence[str],
        sink: PriceSink,
        connect: ConnectFunc,
        *,
        reference_token: Optional[str] = None,
        pool_size: Optional[int] = None,
        request_timeout: Optional[float] = 10.0,
        shutdown_grace: float = 5.0,
        full_precision: bool = False,
        connect_retries: int = 3,
        max_ticks: Optional[int] = None,
        resolver: Optional[PoolDescriptorResolver] = None,
        chain_id: Optional[int] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            pool_specs: Pools to monitor with their polling intervals
            endpoints: RPC endpoint URLs the provider pool spreads over
            sink: Destination of derived prices
            connect: Coroutine function opening one provider connection
            reference_token: Quote currency address
            pool_size: Number of connections (defaults to one per pool)
            request_timeout: Bound on each network read, in seconds
            shutdown_grace: How long pollers get to stop before being cancelled
            full_precision: Keep fractional bits when squaring sqrtPriceX96
            connect_retries: Attempts per connection at startup
            max_ticks: Stop each poller after this many ticks (None = forever)
            resolver: Descriptor resolver shared by all pollers
            chain_id: Chain every endpoint must serve (None = not checked)
        """
        if not pool_specs:
            raise ValueError("At least one pool must be configured")

        self.pool_specs = list(pool_specs)
        self.endpoints = list(endpoints)
        self.sink = sink
        self.connect = connect
        self.reference_token = reference_token
        self.pool_size = pool_size or len(self.pool_specs)
        self.request_timeout = request_timeout
        self.shutdown_grace = shutdown_grace
        self.full_precision = full_precision
        self.connect_retries = connect_retries
        self.max_ticks = max_ticks
        self.chain_id = chain_id
        self.resolver = resolver or PoolDescriptorResolver(timeout=request_timeout)
        self.error_handler = ErrorHandler(logger)

        self.provider_pool: Optional[ProviderPool] = None
        self.pollers: Dict[str, PoolPoller] = {}
        self.results: Dict[str, PollerResult] = {}
        self._stop_event = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    @property
    def descriptors(self) -> Dict[str, Pool]:
        """Pool descriptors resolved so far, keyed by pool address."""
        return {
            address: poller.pool
            for address, poller in self.pollers.items()
            if poller.pool is not None
        }

    def stop(self) -> None:
        """Request a graceful shutdown of every poller."""
        if not self._stop_event.is_set():
            logger.info("🛑 Shutdown requested")
        self._stop_event.set()

    async def run(self) -> Dict[str, Any]:
        """
        Run every poller until they all terminate or stop() is called.

        Returns:
            Dict with per-pool results and basic stats

        Raises:
            ProviderConnectionError: If the provider pool cannot be opened
        """
        logger.info(f"Starting price feed for {len(self.pool_specs)} pools")

        self.provider_pool = await ProviderPool.connect(
            self.endpoints,
            self.pool_size,
            self.connect,
            max_retries=self.connect_retries,
            error_handler=self.error_handler,
            expected_chain_id=self.chain_id,
        )

        tasks: Dict[asyncio.Task, str] = {}
        try:
            # Bound concurrent descriptor resolution by the number of connections
            resolve_semaphore = asyncio.Semaphore(len(self.provider_pool))

            for index, spec in enumerate(self.pool_specs):
                handle = self.provider_pool.assign(index)
                poller = PoolPoller(
                    spec,
                    handle,
                    self.sink,
                    self.resolver,
                    reference_token=self.reference_token,
                    full_precision=self.full_precision,
                    request_timeout=self.request_timeout,
                    max_ticks=self.max_ticks,
                    stop_event=self._stop_event,
                    resolve_semaphore=resolve_semaphore,
                )
                self.pollers[spec.address] = poller
                self.results[spec.address] = poller.result
                task = asyncio.create_task(poller.run(), name=f"poller-{spec.address}")
                tasks[task] = spec.address

            await self._supervise(tasks)

        finally:
            await self._cancel_all(tasks)
            await self.provider_pool.aclose()

        return self._summary()

    async def _supervise(self, tasks: Dict[asyncio.Task, str]) -> None:
        """Record pollers as they finish; on shutdown, allow a grace period."""
        pending = set(tasks)
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        try:
            while pending:
                done, pending = await asyncio.wait(
                    pending | {stop_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(stop_waiter)
                for task in done:
                    if task is not stop_waiter:
                        self._record(tasks[task], task)
                if stop_waiter in done:
                    break
        finally:
            stop_waiter.cancel()

        if not pending:
            return

        logger.info(
            f"Waiting up to {self.shutdown_grace}s for {len(pending)} pollers to stop"
        )
        done, pending = await asyncio.wait(pending, timeout=self.shutdown_grace)
        for task in done:
            self._record(tasks[task], task)

        if pending:
            logger.warning(f"⏹️ Cancelling {len(pending)} pollers still busy after grace period")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                self._record(tasks[task], task)

    async def _cancel_all(self, tasks: Dict[asyncio.Task, str]) -> None:
        """Cancel and await any poller task still running."""
        remaining = [task for task in tasks if not task.done()]
        for task in remaining:
            task.cancel()
        if remaining:
            await asyncio.gather(*remaining, return_exceptions=True)

    def _record(self, address: str, task: asyncio.Task) -> None:
        """Observe one finished poller task without affecting its siblings."""
        result = self.pollers[address].result

        if task.cancelled():
            if not result.is_complete:
                result.mark_cancelled()
            logger.warning(f"⏹️ {address} cancelled after {result.ticks} ticks")
        else:
            error = task.exception()
            if error is not None:
                if not result.is_complete:
                    result.mark_failed(str(error))
                logger.error(f"❌ {address} crashed: {error!r}", exc_info=error)
            elif result.status == PollerStatus.FAILED:
                logger.error(f"❌ {address} failed: {result.error}")
            else:
                logger.info(
                    f"✅ {address} finished: {result.emitted}/{result.ticks} ticks emitted, "
                    f"{result.failures} failed"
                )

        self.results[address] = result

    def _summary(self) -> Dict[str, Any]:
        results: List[PollerResult] = list(self.results.values())
        return {
            'completed': sum(1 for r in results if r.status == PollerStatus.COMPLETED),
            'failed': sum(1 for r in results if r.status == PollerStatus.FAILED),
            'cancelled': sum(1 for r in results if r.status == PollerStatus.CANCELLED),
            'total': len(self.pool_specs),
            'results': self.results,
        }
