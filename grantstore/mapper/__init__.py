"""
Mapping between grants and their persisted records.
"""

from .record import (
    AuthorizationRecord,
    SlotData,
    SLOT_PREFIXES,
)

from .mapper import AuthorizationMapper

__all__ = [
    "AuthorizationRecord",
    "SlotData",
    "SLOT_PREFIXES",
    "AuthorizationMapper",
]
