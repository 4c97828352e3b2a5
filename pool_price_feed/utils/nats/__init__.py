"""
NATS client utilities for pool_price_feed.

This module provides NATS messaging with both basic pub/sub and JetStream
support, and the price sink that publishes derived prices.
"""

from .client import NatsClient, NatsClientJS, dumps
from .price_publisher import NatsPricePublisher

__all__ = ["NatsClient", "NatsClientJS", "NatsPricePublisher", "dumps"]
