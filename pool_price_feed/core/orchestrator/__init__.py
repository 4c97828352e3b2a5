"""
Poller orchestration for the price feed.

This module runs one independent poller per monitored pool and supervises
them until shutdown.

Usage:
    from pool_price_feed.core.orchestrator import PriceFeedOrchestrator

    orchestrator = PriceFeedOrchestrator(
        pool_specs=config.pool_specs,
        endpoints=config.rpc_endpoints,
        sink=LoggingPriceSink(),
        connect=Web3PoolDataProvider.connect,
        reference_token=config.reference_token,
    )

    # Run until every poller terminates or orchestrator.stop() is called
    results = await orchestrator.run()
"""

from .base import PollerResult, PollerState, PollerStatus
from .orchestrator import PriceFeedOrchestrator
from .poller import PoolPoller

__all__ = [
    'PollerResult',
    'PollerState',
    'PollerStatus',
    'PoolPoller',
    'PriceFeedOrchestrator',
]
