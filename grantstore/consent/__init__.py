"""
Authorization consent package.
"""

from .types import AuthorizationConsent, SCOPE_AUTHORITY_PREFIX, consent_key

from .store import ConsentStore, MemoryConsentStore, RedisConsentStore

__all__ = [
    "AuthorizationConsent",
    "SCOPE_AUTHORITY_PREFIX",
    "consent_key",
    "ConsentStore",
    "MemoryConsentStore",
    "RedisConsentStore",
]
