import json
import logging
from typing import Any, Dict, List, Optional

import nats
from nats.aio.client import Client as NATS
from nats.js.client import JetStreamContext
from nats.js.errors import NotFoundError

from ...config.nats_config import NatsConfig

logger = logging.getLogger(__name__)


def dumps(msg: Any) -> str:
    """Serialize message to JSON string"""
    return json.dumps(msg)


def _headers(msg_id: Optional[str]) -> Optional[Dict[str, str]]:
    return {"Nats-Msg-Id": msg_id} if msg_id else None


class NatsClient:
    """
    A simple NATS client for JSON-encoded messages.
    Methods starting with 'a' execute asynchronously.
    """

    def __init__(self, config: Optional[NatsConfig] = None):
        self.config = config or NatsConfig()
        self.connection_params: Dict[str, Any] = self.config.connection_params
        self.url = self.connection_params["servers"][0]
        self.nc: Optional[NATS] = None

    @property
    def is_connected(self) -> bool:
        return self.nc is not None and self.nc.is_connected

    async def aconnect(self):
        """Asynchronously connect to NATS server"""
        logger.info(f"Connecting to NATS at {self.url}")
        self.nc = await nats.connect(**self.connection_params)
        logger.info(f"Connected to NATS at {self.url}")

    async def aclose(self):
        """Asynchronously close connection to NATS server"""
        if self.nc:
            await self.nc.close()
            self.nc = None

    async def apublish(self, subject: str, msg: Any, msg_id: Optional[str] = None):
        """Asynchronously publish a JSON message to a subject"""
        if not self.nc:
            raise ConnectionError("Not connected to NATS server")
        await self.nc.publish(subject, dumps(msg).encode(), headers=_headers(msg_id))


class NatsClientJS(NatsClient):
    """
    A NATS client with JetStream support for persistent messaging.
    Extends NatsClient with stream management.
    """

    def __init__(self, config: Optional[NatsConfig] = None):
        super().__init__(config)
        self.js: Optional[JetStreamContext] = None
        self._streams = set()

    async def aconnect(self):
        """Connect to NATS and initialize JetStream context"""
        await super().aconnect()
        self.js = self.nc.jetstream()
        logger.info("JetStream context initialized")

    async def _stream_exists(self, stream_name: str) -> bool:
        """Check if a JetStream stream exists"""
        try:
            await self.js.stream_info(stream_name)
            return True
        except NotFoundError:
            return False

    async def aregister_new_stream(self, stream_name: str, subjects: List[str]):
        """Register a new JetStream stream"""
        if not await self._stream_exists(stream_name):
            await self.js.add_stream(name=stream_name, subjects=subjects)
            self._streams.add(stream_name)
            logger.info(f"Registered stream: {stream_name} with subjects: {subjects}")

    async def apublish(self, subject: str, msg: Any, msg_id: Optional[str] = None):
        """Publish a message to JetStream; msg_id lets the server drop duplicates"""
        if not self.js:
            raise ConnectionError("JetStream not initialized")
        ack = await self.js.publish(subject, dumps(msg).encode(), headers=_headers(msg_id))
        if ack.duplicate:
            logger.debug(f"Duplicate message {msg_id} on {subject} dropped by {ack.stream}")
        return ack
