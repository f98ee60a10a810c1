"""
Authorization store package.

Persists grants and finds them again by id or by any of their token
values, with in-memory and Redis backends.
"""

from .types import AuthorizationStore

from .memory import MemoryAuthorizationStore

from .redis import RedisAuthorizationStore

from .factory import (
    StorageFactory,
    create_authorization_store,
    create_memory_store,
)

__all__ = [
    "AuthorizationStore",
    "MemoryAuthorizationStore",
    "RedisAuthorizationStore",
    "StorageFactory",
    "create_authorization_store",
    "create_memory_store",
]
