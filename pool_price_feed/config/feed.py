"""
Price feed configuration: which pools to watch, how often and through which
endpoints.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from eth_utils.address import is_address, to_checksum_address

from ..pricing.pool_types import V3_POOL_VERSION
from .base import BaseConfig, ConfigError

# WETH/USDC 0.05% on Ethereum mainnet
DEFAULT_POOL = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"


@dataclass(frozen=True)
class PoolSpec:
    """
    One monitored pool as configured.

    Attributes:
        address: Checksummed pool address
        interval_seconds: Polling cadence for this pool
        version: Pool layout version (3 for Uniswap V3 style pools)
    """

    address: str
    interval_seconds: float
    version: int = V3_POOL_VERSION

    @classmethod
    def parse(cls, entry: str, default_interval: float) -> "PoolSpec":
        """
        Parse an `address[@interval[@version]]` entry.

        Examples:
            0x88e6...5640
            0x88e6...5640@5
            0x88e6...5640@12@3
        """
        parts = [part.strip() for part in entry.strip().split("@")]
        if not parts[0] or len(parts) > 3:
            raise ConfigError(f"Invalid pool entry: {entry!r}")

        address = parts[0]
        if not is_address(address):
            raise ConfigError(f"Invalid pool address: {address!r}")

        interval = default_interval
        if len(parts) > 1 and parts[1]:
            try:
                interval = float(parts[1])
            except ValueError:
                raise ConfigError(f"Invalid polling interval in pool entry: {entry!r}")

        version = V3_POOL_VERSION
        if len(parts) > 2 and parts[2]:
            try:
                version = int(parts[2])
            except ValueError:
                raise ConfigError(f"Invalid pool version in pool entry: {entry!r}")

        if interval <= 0:
            raise ConfigError(f"Polling interval must be positive, got {interval} for {address}")

        return cls(address=to_checksum_address(address), interval_seconds=interval, version=version)


@dataclass
class FeedConfig(BaseConfig):
    """Configuration of the monitored pools and the polling schedule."""

    CHAIN: str = BaseConfig.get_env("CHAIN", "ethereum")

    # Pools as "address[@interval[@version]]" entries
    POOLS: List[str] = field(
        default_factory=lambda: BaseConfig.get_env_list("POOLS", [DEFAULT_POOL])
    )

    # Unset means "use the chain's block time"
    POLL_INTERVAL_SECONDS: Optional[float] = field(
        default_factory=lambda: BaseConfig.get_env_optional_float("POLL_INTERVAL_SECONDS")
    )

    # Empty means "use the chain's RPC URL"
    RPC_ENDPOINTS: List[str] = field(
        default_factory=lambda: BaseConfig.get_env_list("RPC_ENDPOINTS")
    )

    # 0 means one connection per monitored pool
    PROVIDER_POOL_SIZE: int = BaseConfig.get_env_int("PROVIDER_POOL_SIZE", 0)
    CONNECT_RETRIES: int = BaseConfig.get_env_int("CONNECT_RETRIES", 3)
    REQUEST_TIMEOUT_SECONDS: float = BaseConfig.get_env_float("REQUEST_TIMEOUT_SECONDS", 10.0)
    SHUTDOWN_GRACE_SECONDS: float = BaseConfig.get_env_float("SHUTDOWN_GRACE_SECONDS", 5.0)

    # Symbol of a trusted token on CHAIN, or an address
    QUOTE_TOKEN: str = BaseConfig.get_env("QUOTE_TOKEN", "usdc")

    FULL_PRECISION: bool = BaseConfig.get_env_bool("FULL_PRECISION", False)
    USE_BATCHING: bool = BaseConfig.get_env_bool("USE_BATCHING", True)

    def _validate_config(self):
        """Validate feed settings."""
        super()._validate_config()
        if not self.POOLS:
            raise ConfigError("No pools configured (set POOLS)")
        if self.POLL_INTERVAL_SECONDS is not None and self.POLL_INTERVAL_SECONDS <= 0:
            raise ConfigError(
                f"POLL_INTERVAL_SECONDS must be positive, got {self.POLL_INTERVAL_SECONDS}"
            )
        if self.PROVIDER_POOL_SIZE < 0:
            raise ConfigError(f"PROVIDER_POOL_SIZE must be >= 0, got {self.PROVIDER_POOL_SIZE}")
        if self.CONNECT_RETRIES < 1:
            raise ConfigError(f"CONNECT_RETRIES must be >= 1, got {self.CONNECT_RETRIES}")
        if self.REQUEST_TIMEOUT_SECONDS <= 0:
            raise ConfigError(
                f"REQUEST_TIMEOUT_SECONDS must be positive, got {self.REQUEST_TIMEOUT_SECONDS}"
            )
        if self.SHUTDOWN_GRACE_SECONDS < 0:
            raise ConfigError(
                f"SHUTDOWN_GRACE_SECONDS must be >= 0, got {self.SHUTDOWN_GRACE_SECONDS}"
            )

    def get_pool_specs(self, default_interval: float) -> List[PoolSpec]:
        """
        Parse POOLS into PoolSpecs.

        Args:
            default_interval: Interval for entries without an explicit one

        Raises:
            ConfigError: On malformed or duplicate entries
        """
        interval = self.POLL_INTERVAL_SECONDS or default_interval
        specs = [PoolSpec.parse(entry, interval) for entry in self.POOLS]

        seen = set()
        for spec in specs:
            if spec.address.lower() in seen:
                raise ConfigError(f"Pool configured twice: {spec.address}")
            seen.add(spec.address.lower())
        return specs

    def get_provider_pool_size(self, pool_count: int) -> int:
        """Number of connections to open for `pool_count` monitored pools."""
        if self.PROVIDER_POOL_SIZE:
            return self.PROVIDER_POOL_SIZE
        return max(1, pool_count)
