"""
grantstore Python Package

Authorization record store for an OAuth2/OIDC authorization server:
persists grants with their codes and tokens, finds them again by any
token value, and sweeps expired grants.
"""

__version__ = "0.1.0"

from .core.config import StoreConfig
from .types import (
    AuthorizationGrantType,
    TokenKind,
    Token,
    Grant,
    ClientDescriptor,
    ClientLookup,
    MemoryClientLookup,
    create_grant,
    create_token,
)
from .codec import ValueCodec
from .util.resolver import resolve_grant_type, resolve_scopes
from .mapper import AuthorizationMapper, AuthorizationRecord
from .store import (
    AuthorizationStore,
    MemoryAuthorizationStore,
    RedisAuthorizationStore,
    create_authorization_store,
)
from .sweeper import ExpirySweeper
from .errors import (
    GrantStoreError,
    CodecError,
    ClientNotFoundError,
    ConflictError,
    StorageError,
    ConfigurationError,
)

__all__ = [
    "StoreConfig",
    "AuthorizationGrantType",
    "TokenKind",
    "Token",
    "Grant",
    "ClientDescriptor",
    "ClientLookup",
    "MemoryClientLookup",
    "create_grant",
    "create_token",
    "ValueCodec",
    "resolve_grant_type",
    "resolve_scopes",
    "AuthorizationMapper",
    "AuthorizationRecord",
    "AuthorizationStore",
    "MemoryAuthorizationStore",
    "RedisAuthorizationStore",
    "create_authorization_store",
    "ExpirySweeper",
    "GrantStoreError",
    "CodecError",
    "ClientNotFoundError",
    "ConflictError",
    "StorageError",
    "ConfigurationError",
]
