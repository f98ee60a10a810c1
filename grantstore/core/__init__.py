"""Core configuration for the grant store."""

from .config import StoreConfig, SUPPORTED_STORE_TYPES

__all__ = ["StoreConfig", "SUPPORTED_STORE_TYPES"]
