"""
Conversion between in-memory grants and their flat persisted records.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from ..codec import ValueCodec
from ..errors import ClientNotFoundError, CodecError
from ..types.client import ClientLookup
from ..types.grant import BEARER, STATE_ATTRIBUTE, Grant, Token, TokenKind
from ..util.resolver import (
    DEFAULT_SCOPE_DELIMITER,
    join_scopes,
    resolve_grant_type,
    resolve_scopes,
)
from .record import AuthorizationRecord, SlotData


logger = logging.getLogger(__name__)


class AuthorizationMapper:
    """
    Flattens grants into records and rebuilds grants from records.

    Rebuilding a grant requires its registered client to still exist;
    a record whose client is gone cannot be turned back into a grant.
    The mapper is stateless apart from its collaborators and can be
    shared between concurrent callers.
    """

    def __init__(self,
                 client_lookup: Optional[ClientLookup] = None,
                 codec: Optional[ValueCodec] = None,
                 scope_delimiter: str = DEFAULT_SCOPE_DELIMITER):
        """
        Initialize the mapper.

        Args:
            client_lookup: Registered client lookup used by to_grant
            codec: Codec for attribute, metadata and claims maps
            scope_delimiter: Delimiter of the stored scope strings
        """
        self.client_lookup = client_lookup
        self.codec = codec or ValueCodec()
        self.scope_delimiter = scope_delimiter

    def to_record(self, grant: Grant) -> AuthorizationRecord:
        """
        Flatten a grant into its persisted record.

        Raises:
            CodecError: If attributes, metadata or claims hold unsupported values
        """
        record = AuthorizationRecord(
            id=grant.id,
            registered_client_id=grant.registered_client_id,
            principal_name=grant.principal_name,
            authorization_grant_type=grant.authorization_grant_type.value,
            authorized_scopes=join_scopes(grant.authorized_scopes, self.scope_delimiter),
            attributes=self._encode(grant.attributes, grant.id, None, "attributes"),
            state=grant.state,
        )

        for kind in TokenKind.slot_kinds():
            token = grant.tokens.get(kind)
            if token is None:
                continue
            record.set_slot(kind, SlotData(
                value=token.value,
                issued_at=token.issued_at,
                expires_at=token.expires_at,
                metadata=self._encode(token.metadata, grant.id, kind, "metadata"),
            ))
            if kind is TokenKind.ACCESS_TOKEN:
                record.access_token_scopes = join_scopes(token.scopes, self.scope_delimiter)
                record.access_token_type = token.token_type
            elif kind is TokenKind.ID_TOKEN:
                record.oidc_id_token_claims = self._encode(token.claims, grant.id, kind, "claims")

        return record

    def to_grant(self, record: AuthorizationRecord,
                 client_lookup: Optional[ClientLookup] = None) -> Grant:
        """
        Rebuild a grant from its persisted record.

        Args:
            record: Persisted record
            client_lookup: Overrides the mapper's client lookup for this call

        Returns:
            Grant instance

        Raises:
            ClientNotFoundError: If the registered client no longer exists
            CodecError: If a stored map cannot be decoded
        """
        lookup = client_lookup or self.client_lookup
        if lookup is None:
            raise ValueError("a client lookup is required to rebuild grants")

        client = lookup.find_client(record.registered_client_id)
        if client is None:
            raise ClientNotFoundError(record.registered_client_id, grant_id=record.id)

        attributes = self._decode(record.attributes, record.id, None, "attributes")
        if record.state and STATE_ATTRIBUTE not in attributes:
            attributes[STATE_ATTRIBUTE] = record.state

        tokens = [self._to_token(record, kind, slot)
                  for kind, slot in self._populated_slots(record).items()]

        return Grant(
            id=record.id,
            registered_client_id=client.id,
            principal_name=record.principal_name,
            authorization_grant_type=resolve_grant_type(record.authorization_grant_type),
            authorized_scopes=resolve_scopes(record.authorized_scopes, self.scope_delimiter),
            attributes=attributes,
            tokens=tokens,
        )

    def _to_token(self, record: AuthorizationRecord, kind: TokenKind, slot: SlotData) -> Token:
        extra: Dict[str, Any] = {}
        if kind is TokenKind.ACCESS_TOKEN:
            extra["scopes"] = resolve_scopes(record.access_token_scopes, self.scope_delimiter)
            extra["token_type"] = record.access_token_type or BEARER
        elif kind is TokenKind.ID_TOKEN:
            extra["claims"] = self._decode(record.oidc_id_token_claims, record.id, kind, "claims")

        return Token(
            kind=kind,
            value=slot.value,
            issued_at=slot.issued_at,
            expires_at=slot.expires_at,
            metadata=self._decode(slot.metadata, record.id, kind, "metadata"),
            **extra,
        )

    @staticmethod
    def _populated_slots(record: AuthorizationRecord) -> Dict[TokenKind, SlotData]:
        slots = {}
        for kind in TokenKind.slot_kinds():
            slot = record.get_slot(kind)
            if slot is not None:
                slots[kind] = slot
        return slots

    def _encode(self, data: Mapping[str, Any], grant_id: str,
                kind: Optional[TokenKind], path: str) -> str:
        try:
            return self.codec.encode(data, path)
        except CodecError as e:
            _annotate(e, grant_id, kind)
            logger.error(f"Cannot encode {path} of grant {grant_id}: {e.message}")
            raise

    def _decode(self, encoded: Optional[str], grant_id: str,
                kind: Optional[TokenKind], path: str) -> Dict[str, Any]:
        try:
            return self.codec.decode(encoded, path)
        except CodecError as e:
            _annotate(e, grant_id, kind)
            logger.error(f"Cannot decode {path} of grant {grant_id}: {e.message}")
            raise


def _annotate(error: CodecError, grant_id: str, kind: Optional[TokenKind]) -> None:
    error.context.grant_id = grant_id
    if kind is not None:
        error.context.token_kind = kind.value
