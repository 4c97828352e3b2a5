"""
Configuration management for pool_price_feed.

Build a ConfigManager once at startup and hand it to the components that
need it.

Example:
    from pool_price_feed.config import ConfigManager

    config = ConfigManager()
    config.validate_configuration()

    # Monitored pools and their polling intervals
    specs = config.pool_specs

    # RPC endpoints and quote currency
    endpoints = config.rpc_endpoints
    usdc = config.reference_token
"""

from .base import BaseConfig, ConfigError
from .chains import ChainConfig
from .feed import FeedConfig, PoolSpec
from .manager import ConfigManager
from .nats_config import NatsConfig

__all__ = [
    "BaseConfig",
    "ConfigError",
    "ChainConfig",
    "FeedConfig",
    "PoolSpec",
    "NatsConfig",
    "ConfigManager",
]
