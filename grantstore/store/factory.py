"""
Factory for creating authorization store implementations.
Provides a centralized way to create and configure storage backends.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.config import StoreConfig
from ..errors import ConfigurationError
from ..mapper import AuthorizationMapper
from ..metrics import MetricConfig, StoreMetrics
from ..types.client import ClientLookup
from .memory import MemoryAuthorizationStore
from .redis import RedisAuthorizationStore
from .types import AuthorizationStore


logger = logging.getLogger(__name__)

StoreBuilder = Callable[[AuthorizationMapper, StoreConfig, StoreMetrics], AuthorizationStore]


def _build_memory(mapper: AuthorizationMapper, config: StoreConfig,
                  metrics: StoreMetrics) -> AuthorizationStore:
    return MemoryAuthorizationStore(mapper, metrics=metrics)


def _build_redis(mapper: AuthorizationMapper, config: StoreConfig,
                 metrics: StoreMetrics) -> AuthorizationStore:
    return RedisAuthorizationStore(mapper, url=config.redis_url, prefix=config.key_prefix, metrics=metrics)


# Registry of available storage implementations
_STORAGE_IMPLEMENTATIONS: Dict[str, StoreBuilder] = {
    'memory': _build_memory,
    'redis': _build_redis,
}


class StorageFactory:
    """Factory for creating authorization store implementations."""

    @staticmethod
    def create_store(config: StoreConfig,
                     client_lookup: ClientLookup,
                     metrics: Optional[StoreMetrics] = None) -> AuthorizationStore:
        """
        Create an authorization store instance.

        Args:
            config: Store configuration
            client_lookup: Registered client lookup used to rebuild grants
            metrics: Metrics collector, built from config when omitted

        Returns:
            AuthorizationStore instance

        Raises:
            ConfigurationError: If store_type is not supported
        """
        builder = _STORAGE_IMPLEMENTATIONS.get(config.store_type.lower())
        if not builder:
            raise ConfigurationError(f"Unsupported storage type: {config.store_type}", setting="store_type")

        mapper = AuthorizationMapper(client_lookup, scope_delimiter=config.scope_delimiter)
        metrics = metrics or StoreMetrics(MetricConfig(enabled=config.metrics_enabled))
        store = builder(mapper, config, metrics)
        logger.info(f"Created {type(store).__name__} ({config.store_type})")
        return store

    @staticmethod
    def register_implementation(name: str, builder: StoreBuilder) -> None:
        """
        Register a new storage implementation.

        Args:
            name: Name to register the implementation under
            builder: Callable building the store from mapper, config and metrics
        """
        _STORAGE_IMPLEMENTATIONS[name.lower()] = builder

    @staticmethod
    def get_available_types() -> List[str]:
        """Get list of available storage types."""
        return list(_STORAGE_IMPLEMENTATIONS.keys())


def create_memory_store(client_lookup: ClientLookup, **kwargs: Any) -> MemoryAuthorizationStore:
    """Create a memory-based authorization store."""
    return MemoryAuthorizationStore(AuthorizationMapper(client_lookup), **kwargs)


def create_authorization_store(config: StoreConfig,
                               client_lookup: ClientLookup,
                               metrics: Optional[StoreMetrics] = None) -> AuthorizationStore:
    """
    Create an authorization store from configuration.

    Args:
        config: Store configuration, validated before use
        client_lookup: Registered client lookup
        metrics: Optional metrics collector

    Returns:
        AuthorizationStore instance
    """
    config.validate()
    return StorageFactory.create_store(config, client_lookup, metrics)
