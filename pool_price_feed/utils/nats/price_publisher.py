"""
NATS publisher for derived pool prices.

Publishes every price the pollers emit to a per-pool subject so trading and
monitoring services can subscribe to the pools they care about.
"""

import asyncio
import logging
from typing import Optional

from nats.errors import Error as NatsError

from ...config.nats_config import NatsConfig
from ...core.sinks import PriceSink
from ...pricing.pool_types import DerivedPrice
from .client import NatsClient, NatsClientJS

logger = logging.getLogger(__name__)


class NatsPricePublisher(PriceSink):
    """
    Price sink publishing to NATS (or JetStream when enabled).

    Message subject: "<prefix>.<chain>.<pool address>"
    """

    def __init__(
        self,
        chain: str,
        config: Optional[NatsConfig] = None,
        client: Optional[NatsClient] = None,
    ):
        """
        Initialize the price publisher.

        Args:
            chain: Chain name used in the subject
            config: NATS configuration
            client: Pre-built client (defaults to one matching the config)
        """
        self.chain = chain
        self.config = config or NatsConfig()
        if client is None:
            client = NatsClientJS(self.config) if self.config.JETSTREAM_ENABLED else NatsClient(self.config)
        self.nats_client = client

    async def aconnect(self):
        """
        Connect to NATS and, with JetStream, make sure the stream exists.

        Raises:
            ConnectionError: If the server cannot be reached
        """
        try:
            await self.nats_client.aconnect()
            if isinstance(self.nats_client, NatsClientJS):
                await self.nats_client.aregister_new_stream(
                    self.config.STREAM_NAME, self.config.price_subjects
                )
        except (NatsError, OSError, asyncio.TimeoutError) as e:
            raise ConnectionError(f"Could not connect to NATS: {e!r}") from e
        logger.info("NatsPricePublisher connected")

    async def aclose(self):
        """Close NATS connection"""
        await self.nats_client.aclose()
        logger.info("NatsPricePublisher connection closed")

    async def emit(self, price: DerivedPrice) -> None:
        """
        Publish one price to its pool's subject.

        The message id (pool and timestamp) lets JetStream drop duplicates.

        Raises:
            ConnectionError: If the publish fails or does not finish within
                PUBLISH_TIMEOUT_SECONDS
        """
        subject = self.config.get_price_subject(self.chain, price.pool_address)
        message = {
            "type": "pool_price",
            "chain": self.chain,
            "data": price.to_dict(),
        }
        msg_id = f"{price.pool_address.lower()}:{price.timestamp.isoformat()}"
        timeout = self.config.PUBLISH_TIMEOUT_SECONDS
        try:
            await asyncio.wait_for(self.nats_client.apublish(subject, message, msg_id=msg_id), timeout)
        except asyncio.TimeoutError as e:
            raise ConnectionError(f"NATS publish to {subject} timed out after {timeout}s") from e
        except NatsError as e:
            raise ConnectionError(f"NATS publish to {subject} failed: {e!r}") from e
        logger.debug(f"Published {price.pool_address} price {price.price} to {subject}")
