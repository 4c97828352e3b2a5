"""
Configuration manager for pool_price_feed.

This module combines all configuration classes into a single object that is
built once by the entry point and passed to the components that need it.
"""

import logging
from typing import Any, Dict, List, Optional

from .base import BaseConfig, ConfigError
from .chains import ChainConfig
from .feed import FeedConfig, PoolSpec
from .nats_config import NatsConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Centralized configuration manager that combines all configuration classes.

    This class provides easy access to all configuration settings and ensures
    that configurations are properly initialized and validated.
    """

    def __init__(self, environment: str = None, feed: Optional[FeedConfig] = None):
        """
        Initialize the configuration manager.

        Args:
            environment: Override the environment (local, dev, staging, production)
            feed: Pre-built feed configuration (e.g. with CLI overrides applied)
        """
        self._environment = environment
        self._base_config = None
        self._chain_config = None
        self._feed_config = feed
        self._nats_config = None
        self._initialize_configs()

    def _initialize_configs(self):
        """Initialize all configuration objects."""
        try:
            self._base_config = BaseConfig()
            if self._environment:
                self._base_config.ENVIRONMENT = self._environment
                self._base_config._validate_config()

            self._chain_config = ChainConfig()
            if self._feed_config is None:
                self._feed_config = FeedConfig()
            self._nats_config = NatsConfig()

            logger.info(f"Configuration initialized for environment: {self.environment}")

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize configuration: {e}")
            raise ConfigError(f"Configuration initialization failed: {e}")

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self._base_config.ENVIRONMENT

    @property
    def base(self) -> BaseConfig:
        """Get base configuration."""
        return self._base_config

    @property
    def chains(self) -> ChainConfig:
        """Get chain configuration."""
        return self._chain_config

    @property
    def feed(self) -> FeedConfig:
        """Get feed configuration."""
        return self._feed_config

    @property
    def nats(self) -> NatsConfig:
        """Get NATS configuration."""
        return self._nats_config

    @property
    def chain(self) -> str:
        """Chain the monitored pools live on."""
        return self.feed.CHAIN

    @property
    def chain_id(self) -> int:
        """Chain id every RPC endpoint is expected to report."""
        return self.chains.get_chain_id(self.chain)

    @property
    def poll_interval(self) -> float:
        """Default polling interval: explicit setting or the chain's block time."""
        if self.feed.POLL_INTERVAL_SECONDS is not None:
            return self.feed.POLL_INTERVAL_SECONDS
        return self.chains.get_block_time(self.chain)

    @property
    def rpc_endpoints(self) -> List[str]:
        """Configured RPC endpoints, defaulting to the chain's RPC URL."""
        return self.feed.RPC_ENDPOINTS or [self.chains.get_rpc_url(self.chain)]

    @property
    def reference_token(self) -> str:
        """Checksummed address of the quote currency."""
        return self.chains.get_reference_token(self.chain, self.feed.QUOTE_TOKEN)

    @property
    def pool_specs(self) -> List[PoolSpec]:
        """Monitored pools with their effective intervals."""
        return self.feed.get_pool_specs(self.poll_interval)

    def validate_configuration(self) -> bool:
        """
        Validate all configuration settings.

        Returns:
            True if all configurations are valid

        Raises:
            ConfigError: If any configuration is invalid
        """
        try:
            self.chains.get_chain_config(self.chain)

            for url in self.rpc_endpoints:
                if not url.startswith(("http://", "https://")):
                    raise ConfigError(f"RPC endpoint must be an http(s) URL: {url}")

            specs = self.pool_specs
            reference = self.reference_token

            size = self.feed.get_provider_pool_size(len(specs))
            if size < len(specs):
                logger.warning(
                    f"{len(specs)} pools share {size} connections; pools on a shared "
                    f"connection will have their calls serialized"
                )

            logger.info(
                f"Configuration validation successful: {len(specs)} pools on {self.chain}, "
                f"quote token {reference}"
            )
            return True

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigError(f"Configuration validation failed: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert all configurations to dictionary format."""
        return {
            "environment": self.environment,
            "base": self.base.to_dict() if self.base else {},
            "chains": self.chains.to_dict() if self.chains else {},
            "feed": self.feed.to_dict() if self.feed else {},
            "nats": self.nats.to_dict() if self.nats else {},
        }

    def __repr__(self) -> str:
        """String representation of the configuration manager."""
        return f"ConfigManager(environment={self.environment}, chain={self.chain})"
