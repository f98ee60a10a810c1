"""
Flat persisted form of a grant.

Each of the six token kinds has a fixed set of named fields
(value, issued_at, expires_at, metadata), so a record can be stored as a
single row, document or hash and indexed by each token value.
"""

import json
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from ..common.utils import parse_iso_timestamp
from ..types.grant import TokenKind


SLOT_PREFIXES = {
    TokenKind.AUTHORIZATION_CODE: "authorization_code",
    TokenKind.ACCESS_TOKEN: "access_token",
    TokenKind.REFRESH_TOKEN: "refresh_token",
    TokenKind.ID_TOKEN: "oidc_id_token",
    TokenKind.USER_CODE: "user_code",
    TokenKind.DEVICE_CODE: "device_code",
}


class SlotData(NamedTuple):
    """The stored fields of one populated token slot."""
    value: str
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]
    metadata: str


@dataclass
class AuthorizationRecord:
    """Persisted form of a grant; maps are already codec-encoded strings."""

    id: str
    registered_client_id: str
    principal_name: str
    authorization_grant_type: str
    authorized_scopes: str = ""
    attributes: str = ""
    state: Optional[str] = None

    authorization_code_value: Optional[str] = None
    authorization_code_issued_at: Optional[datetime] = None
    authorization_code_expires_at: Optional[datetime] = None
    authorization_code_metadata: str = ""

    access_token_value: Optional[str] = None
    access_token_issued_at: Optional[datetime] = None
    access_token_expires_at: Optional[datetime] = None
    access_token_metadata: str = ""
    access_token_type: Optional[str] = None
    access_token_scopes: Optional[str] = None

    oidc_id_token_value: Optional[str] = None
    oidc_id_token_issued_at: Optional[datetime] = None
    oidc_id_token_expires_at: Optional[datetime] = None
    oidc_id_token_metadata: str = ""
    oidc_id_token_claims: str = ""

    refresh_token_value: Optional[str] = None
    refresh_token_issued_at: Optional[datetime] = None
    refresh_token_expires_at: Optional[datetime] = None
    refresh_token_metadata: str = ""

    user_code_value: Optional[str] = None
    user_code_issued_at: Optional[datetime] = None
    user_code_expires_at: Optional[datetime] = None
    user_code_metadata: str = ""

    device_code_value: Optional[str] = None
    device_code_issued_at: Optional[datetime] = None
    device_code_expires_at: Optional[datetime] = None
    device_code_metadata: str = ""

    def get_slot(self, kind: TokenKind) -> Optional[SlotData]:
        """Read a populated slot, or None when the grant holds no token of that kind."""
        prefix = SLOT_PREFIXES[kind]
        value = getattr(self, f"{prefix}_value")
        if value is None:
            return None
        return SlotData(
            value=value,
            issued_at=getattr(self, f"{prefix}_issued_at"),
            expires_at=getattr(self, f"{prefix}_expires_at"),
            metadata=getattr(self, f"{prefix}_metadata") or "",
        )

    def set_slot(self, kind: TokenKind, slot: Optional[SlotData]) -> None:
        """Populate a slot, or clear it when slot is None."""
        prefix = SLOT_PREFIXES[kind]
        setattr(self, f"{prefix}_value", slot.value if slot else None)
        setattr(self, f"{prefix}_issued_at", slot.issued_at if slot else None)
        setattr(self, f"{prefix}_expires_at", slot.expires_at if slot else None)
        setattr(self, f"{prefix}_metadata", slot.metadata if slot else "")

    @staticmethod
    def value_field(kind: TokenKind) -> str:
        """Name of the field holding the indexed value of a kind."""
        if kind is TokenKind.STATE:
            return "state"
        return f"{SLOT_PREFIXES[kind]}_value"

    def slot_value(self, kind: TokenKind) -> Optional[str]:
        return getattr(self, self.value_field(kind))

    def slot_expires_at(self, kind: TokenKind) -> Optional[datetime]:
        if kind is TokenKind.STATE:
            return None
        return getattr(self, f"{SLOT_PREFIXES[kind]}_expires_at")

    def index_entries(self) -> Dict[TokenKind, str]:
        """Every indexed value of this record, state included, keyed by kind."""
        entries = {}
        for kind in TokenKind.probe_order():
            value = self.slot_value(kind)
            if value:
                entries[kind] = value
        return entries

    def expired_kinds(self, as_of: datetime) -> List[TokenKind]:
        """Populated slots whose expiry is at or before as_of."""
        expired = []
        for kind in TokenKind.slot_kinds():
            expires_at = self.slot_expires_at(kind)
            if self.slot_value(kind) is not None and expires_at is not None and expires_at <= as_of:
                expired.append(kind)
        return expired

    def is_expired(self, as_of: datetime) -> bool:
        return bool(self.expired_kinds(as_of))

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert record to dictionary.

        Returns:
            Dictionary representation with ISO formatted timestamps
        """
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.isoformat() if isinstance(value, datetime) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthorizationRecord":
        """
        Create AuthorizationRecord from dictionary.

        Args:
            data: Dictionary data, unknown keys are ignored

        Returns:
            AuthorizationRecord instance
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key.endswith("_issued_at") or key.endswith("_expires_at"):
                value = parse_iso_timestamp(value) if isinstance(value, str) else value
            values[key] = value
        return cls(**values)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, json_str: str) -> "AuthorizationRecord":
        return cls.from_dict(json.loads(json_str))
