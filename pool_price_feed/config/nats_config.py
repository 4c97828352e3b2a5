"""
NATS configuration for pool_price_feed.
"""

from dataclasses import dataclass
from typing import Dict, List

from .base import BaseConfig, ConfigError


@dataclass
class NatsConfig(BaseConfig):
    """NATS messaging configuration for the price publisher."""

    # NATS Connection Settings
    NATS_ENABLED: bool = BaseConfig.get_env_bool("NATS_ENABLED", False)
    NATS_URL_LOCAL: str = BaseConfig.get_env("NATS_URL_LOCAL", "nats://localhost:4222")
    NATS_URL_DEV: str = BaseConfig.get_env("NATS_URL_DEV", "nats://nats:4222")
    NATS_URL_PRODUCTION: str = BaseConfig.get_env(
        "NATS_URL_PRODUCTION", "nats://nats-server:4222"
    )

    # Connection Parameters
    NATS_TIMEOUT: int = BaseConfig.get_env_int("NATS_TIMEOUT", 30)
    NATS_MAX_RECONNECT_ATTEMPTS: int = BaseConfig.get_env_int(
        "NATS_MAX_RECONNECT_ATTEMPTS", 60
    )
    NATS_RECONNECT_TIME_WAIT: int = BaseConfig.get_env_int(
        "NATS_RECONNECT_TIME_WAIT", 2
    )

    # JetStream Configuration
    JETSTREAM_ENABLED: bool = BaseConfig.get_env_bool("JETSTREAM_ENABLED", False)
    STREAM_NAME: str = BaseConfig.get_env("STREAM_NAME", "POOL_PRICES")

    # Subjects are "<prefix>.<chain>.<pool address>"
    PRICE_SUBJECT_PREFIX: str = BaseConfig.get_env("PRICE_SUBJECT_PREFIX", "prices.pools")

    # emit() is awaited inside the poller tick, so a stalled server must not hold it
    PUBLISH_TIMEOUT_SECONDS: float = BaseConfig.get_env_float("NATS_PUBLISH_TIMEOUT", 2.0)

    def _validate_config(self):
        super()._validate_config()
        if self.PUBLISH_TIMEOUT_SECONDS <= 0:
            raise ConfigError(
                f"NATS_PUBLISH_TIMEOUT must be positive, got {self.PUBLISH_TIMEOUT_SECONDS}"
            )

    @property
    def nats_urls(self) -> Dict[str, str]:
        """Get NATS URLs for different environments."""
        return {
            "local": self.NATS_URL_LOCAL,
            "dev": self.NATS_URL_DEV,
            "staging": self.NATS_URL_DEV,  # Use dev for staging
            "production": self.NATS_URL_PRODUCTION,
        }

    def get_nats_url(self, environment: str = None) -> str:
        """Get NATS URL for the current or specified environment."""
        env = environment or self.ENVIRONMENT
        return self.nats_urls.get(env, self.NATS_URL_LOCAL)

    def get_price_subject(self, chain: str, pool_address: str) -> str:
        """Get the subject prices of one pool are published on."""
        return f"{self.PRICE_SUBJECT_PREFIX}.{chain.lower()}.{pool_address.lower()}"

    @property
    def price_subjects(self) -> List[str]:
        """Wildcard subjects covering every published price."""
        return [f"{self.PRICE_SUBJECT_PREFIX}.>"]

    @property
    def connection_params(self) -> Dict:
        """Get NATS connection parameters."""
        return {
            "servers": [self.get_nats_url()],
            "connect_timeout": self.NATS_TIMEOUT,
            "max_reconnect_attempts": self.NATS_MAX_RECONNECT_ATTEMPTS,
            "reconnect_time_wait": self.NATS_RECONNECT_TIME_WAIT,
            "allow_reconnect": True,
            "ping_interval": 120,
            "max_outstanding_pings": 2,
        }
