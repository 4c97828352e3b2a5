"""
Price sinks: where derived prices go once a poller has computed them.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from ..pricing.pool_types import DerivedPrice

logger = logging.getLogger(__name__)


class PriceSink(ABC):
    """
    Abstract consumer of derived prices.

    emit() is awaited inline by the poller, so a slow sink delays that
    pool's next tick. A ConnectionError or timeout raised by emit() costs
    that tick only; any other exception is terminal for the emitting
    poller only.
    """

    @abstractmethod
    async def emit(self, price: DerivedPrice) -> None:
        """Consume one derived price."""
        pass

    async def aclose(self) -> None:
        """Release any resources held by the sink."""
        return None


class LoggingPriceSink(PriceSink):
    """Write every price to the log at INFO level."""

    def __init__(self, logger_name: str = "pool_price_feed.prices"):
        self.logger = logging.getLogger(logger_name)

    async def emit(self, price: DerivedPrice) -> None:
        self.logger.info(
            f"{price.pool_address} {price.timestamp.isoformat()} "
            f"1 {price.base_token.label} = {price.price} {price.quote_token.label}"
        )


class MultiPriceSink(PriceSink):
    """Forward every price to several sinks, in order."""

    def __init__(self, sinks: Sequence[PriceSink]):
        self.sinks: List[PriceSink] = list(sinks)

    async def emit(self, price: DerivedPrice) -> None:
        for sink in self.sinks:
            await sink.emit(price)

    async def aclose(self) -> None:
        for sink in self.sinks:
            try:
                await sink.aclose()
            except Exception as e:
                logger.warning(f"Error closing sink {sink.__class__.__name__}: {e}")
