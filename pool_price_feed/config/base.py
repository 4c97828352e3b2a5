"""
Environment-driven configuration base for pool_price_feed.

Settings are dataclass fields whose defaults come from environment
variables (a local `.env` file is loaded first). Subclasses add their own
fields and extend `_validate_config`.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import urlsplit

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ENVIRONMENTS = ("local", "dev", "staging", "production")

# Fields whose values may embed provider API keys
_SECRET_FIELD_MARKERS = ("URL", "ENDPOINT")

T = TypeVar("T")


class ConfigError(Exception):
    """Exception raised for configuration-related errors."""
    pass


def redact_url(url: str) -> str:
    """Keep scheme and host of a URL, hiding credentials, path and query."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return url
    host = parts.hostname if parts.port is None else f"{parts.hostname}:{parts.port}"
    hidden = parts.path.strip("/") or parts.query or parts.username
    return f"{parts.scheme}://{host}{'/***' if hidden else ''}"


@dataclass
class BaseConfig:
    """Settings shared by every configuration class."""

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "local")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self):
        self._setup_logging()
        self._validate_config()

    def _setup_logging(self):
        level = getattr(logging, self.LOG_LEVEL.upper(), None)
        if not isinstance(level, int):
            raise ConfigError(f"Invalid log level: {self.LOG_LEVEL}")
        logging.basicConfig(level=level, format=LOG_FORMAT)

    def _validate_config(self):
        """Validate configuration values. Subclasses call super() first."""
        if self.ENVIRONMENT not in ENVIRONMENTS:
            raise ConfigError(
                f"Invalid environment: {self.ENVIRONMENT} (expected one of {', '.join(ENVIRONMENTS)})"
            )

    @staticmethod
    def get_env(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Get environment variable with validation.

        Raises:
            ConfigError: If required variable is missing
        """
        value = os.getenv(key, default)
        if required and value is None:
            raise ConfigError(f"Required environment variable '{key}' is not set")
        return value

    @staticmethod
    def _get_env_as(key: str, cast: Callable[[str], T], type_name: str, default, required: bool) -> T:
        value = BaseConfig.get_env(key, None if default is None else str(default), required)
        try:
            return cast(value)
        except (ValueError, TypeError):
            raise ConfigError(f"Environment variable '{key}' must be {type_name}, got: {value}")

    @staticmethod
    def get_env_int(key: str, default: Optional[int] = None, required: bool = False) -> int:
        return BaseConfig._get_env_as(key, int, "an integer", default, required)

    @staticmethod
    def get_env_float(key: str, default: Optional[float] = None, required: bool = False) -> float:
        return BaseConfig._get_env_as(key, float, "a number", default, required)

    @staticmethod
    def get_env_optional_float(key: str) -> Optional[float]:
        """Float setting where unset or empty means "not configured"."""
        if not BaseConfig.get_env(key):
            return None
        return BaseConfig.get_env_float(key)

    @staticmethod
    def get_env_bool(key: str, default: bool = False) -> bool:
        value = BaseConfig.get_env(key, str(default))
        return value.strip().lower() in ("true", "1", "yes", "on")

    @staticmethod
    def get_env_list(key: str, default: Optional[List[str]] = None, separator: str = ",") -> List[str]:
        """Comma separated environment variable; blanks are dropped."""
        value = BaseConfig.get_env(key)
        if value is None:
            return list(default or [])
        return [item.strip() for item in value.split(separator) if item.strip()]

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """
        Settings as a dict, suitable for logging.

        Args:
            redact: Hide path and query of URL settings, where RPC providers
                put their API keys
        """
        data = {}
        for name in self.__dataclass_fields__:
            if name.startswith("_"):
                continue
            value = getattr(self, name)
            if redact and any(marker in name for marker in _SECRET_FIELD_MARKERS):
                if isinstance(value, str):
                    value = redact_url(value)
                elif isinstance(value, list):
                    value = [redact_url(v) for v in value]
            data[name] = value
        return data
