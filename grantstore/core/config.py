"""
Configuration module for the grant store.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional

from ..errors import ConfigurationError
from ..util.config import (
    get_section,
    load_config_file,
    load_config_from_env,
    parse_bool,
    parse_duration,
)
from ..util.resolver import DEFAULT_SCOPE_DELIMITER


SUPPORTED_STORE_TYPES = ("memory", "redis")


@dataclass
class StoreConfig:
    """Configuration for the authorization store and its sweeper"""
    store_type: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "grantstore"
    sweep_interval: timedelta = field(default_factory=lambda: timedelta(minutes=5))
    sweep_enabled: bool = True
    scope_delimiter: str = DEFAULT_SCOPE_DELIMITER
    metrics_enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreConfig":
        """Build a configuration from plain values, ignoring unknown keys"""
        config = cls()
        if "store_type" in data:
            config.store_type = str(data["store_type"]).lower()
        if "redis_url" in data:
            config.redis_url = str(data["redis_url"])
        if "key_prefix" in data:
            config.key_prefix = str(data["key_prefix"])
        if "sweep_interval" in data:
            config.sweep_interval = parse_duration(data["sweep_interval"])
        if "sweep_enabled" in data:
            config.sweep_enabled = parse_bool(data["sweep_enabled"])
        if "scope_delimiter" in data:
            config.scope_delimiter = str(data["scope_delimiter"])
        if "metrics_enabled" in data:
            config.metrics_enabled = parse_bool(data["metrics_enabled"])
        return config

    @classmethod
    def from_env(cls, prefix: str = "GRANTSTORE_") -> "StoreConfig":
        """Create configuration from environment variables"""
        return cls.from_dict(load_config_from_env(prefix))

    @classmethod
    def from_file(cls, file_path: str, section: Optional[str] = "grantstore") -> "StoreConfig":
        """Load configuration from a JSON or YAML file"""
        data = load_config_file(file_path)
        if section and section not in data:
            section = None
        return cls.from_dict(get_section(data, section))

    def validate(self) -> bool:
        """Validate the configuration"""
        if self.store_type not in SUPPORTED_STORE_TYPES:
            raise ConfigurationError(f"Unsupported store type: {self.store_type}", setting="store_type")
        if self.store_type == "redis" and not self.redis_url:
            raise ConfigurationError("redis_url is required for the redis store", setting="redis_url")
        if self.sweep_interval <= timedelta(0):
            raise ConfigurationError("sweep_interval must be positive", setting="sweep_interval")
        if not self.scope_delimiter:
            raise ConfigurationError("scope_delimiter cannot be empty", setting="scope_delimiter")
        return True
