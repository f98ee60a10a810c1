"""
Domain types for the grant store.
"""

from .grant import (
    AuthorizationGrantType,
    TokenKind,
    Token,
    Grant,
    create_grant,
    create_token,
    INVALIDATED_METADATA_KEY,
    STATE_ATTRIBUTE,
    BEARER,
)

from .client import (
    ClientDescriptor,
    ClientLookup,
    MemoryClientLookup,
)

__all__ = [
    "AuthorizationGrantType",
    "TokenKind",
    "Token",
    "Grant",
    "create_grant",
    "create_token",
    "INVALIDATED_METADATA_KEY",
    "STATE_ATTRIBUTE",
    "BEARER",
    "ClientDescriptor",
    "ClientLookup",
    "MemoryClientLookup",
]
