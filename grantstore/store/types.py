"""
Authorization store interface.

The store persists grants as flat AuthorizationRecords and finds them
again by id or by any one of their token values. Backends implement the
record-level primitives; the public grant-level operations, the
multi-slot lookup protocol and error wrapping live here so every backend
behaves the same way.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Dict, List, Optional, Union

from ..common.utils import as_utc, get_current_time, mask_token
from ..errors import ClientNotFoundError, ErrorContext, GrantStoreError, StorageError
from ..mapper import AuthorizationMapper, AuthorizationRecord
from ..metrics import MetricConfig, StoreMetrics
from ..types.grant import AuthorizationGrantType, Grant, TokenKind


logger = logging.getLogger(__name__)

QUERYABLE_FIELDS = ("registered_client_id", "principal_name", "authorization_grant_type")


class AuthorizationStore(ABC):
    """
    Abstract base class for authorization store implementations.

    All implementations must be safe for concurrent use. Every write is
    a full-record replace addressed by grant id, and every operation
    touches a single grant, except the bulk removals and sweeps.
    """

    def __init__(self, mapper: AuthorizationMapper, metrics: Optional[StoreMetrics] = None):
        """
        Initialize the store.

        Args:
            mapper: Converts grants to records and back
            metrics: Metrics collector, disabled when omitted
        """
        self.mapper = mapper
        self.metrics = metrics or StoreMetrics(MetricConfig(enabled=False))

    # Record-level primitives

    @abstractmethod
    async def _store_record(self, record: AuthorizationRecord) -> None:
        """
        Upsert a record and its token indexes.

        Raises:
            ConflictError: If one of its token values is indexed under another grant
        """
        pass

    @abstractmethod
    async def _load_record(self, grant_id: str) -> Optional[AuthorizationRecord]:
        pass

    @abstractmethod
    async def _delete_record(self, grant_id: str) -> bool:
        pass

    @abstractmethod
    async def _find_record_by_token(self, kind: TokenKind, value: str) -> Optional[AuthorizationRecord]:
        """Look a value up in exactly one kind's index."""
        pass

    @abstractmethod
    async def _find_expired_records(self, kind: TokenKind, as_of: datetime) -> List[AuthorizationRecord]:
        pass

    @abstractmethod
    async def _delete_expired_records(self, as_of: datetime) -> int:
        """
        Delete every record with at least one slot expiring at or before as_of.

        A record must be re-checked against as_of at the moment it is
        deleted, so a grant re-saved with a later expiry survives the pass.
        """
        pass

    @abstractmethod
    async def _find_records(self, field: str, value: str) -> List[AuthorizationRecord]:
        pass

    @abstractmethod
    async def _delete_records(self, field: str, value: str) -> int:
        pass

    @abstractmethod
    async def _count_records(self) -> int:
        pass

    async def close(self) -> None:
        """Close the store and release resources"""
        pass

    # Grant-level operations

    async def save(self, grant: Grant) -> None:
        """
        Save a grant, replacing any previous version with the same id.

        Raises:
            CodecError: If the grant holds values the codec cannot store
            ConflictError: If a token value already belongs to another grant
            StorageError: If the backend fails
        """
        if grant is None:
            raise ValueError("grant cannot be None")

        with self.metrics.track("save"):
            record = self.mapper.to_record(grant)
            await self._guard("save", self._store_record(record), grant_id=grant.id)
        logger.debug(f"Saved grant {grant.id} for client {grant.registered_client_id}")

    async def remove(self, grant: Grant) -> bool:
        """Remove a grant; removing an unknown grant is a no-op."""
        if grant is None:
            raise ValueError("grant cannot be None")
        return await self.remove_by_id(grant.id)

    async def remove_by_id(self, grant_id: str) -> bool:
        """
        Remove a grant by id.

        Returns:
            True if a grant was removed, False if none existed
        """
        _require_text(grant_id, "id")
        with self.metrics.track("remove"):
            removed = await self._guard("remove", self._delete_record(grant_id), grant_id=grant_id)
        if removed:
            logger.debug(f"Removed grant {grant_id}")
        return removed

    async def find_by_id(self, grant_id: str) -> Optional[Grant]:
        """
        Find a grant by id.

        Returns:
            Grant if found, None otherwise

        Raises:
            ClientNotFoundError: If the grant's registered client no longer exists
        """
        _require_text(grant_id, "id")
        with self.metrics.track("find_by_id"):
            record = await self._guard("find_by_id", self._load_record(grant_id), grant_id=grant_id)
            return self.mapper.to_grant(record) if record is not None else None

    async def find_by_token(self, token: str,
                            kind_hint: Optional[Union[str, TokenKind]] = None) -> Optional[Grant]:
        """
        Find the grant holding a token value.

        With a kind hint only that kind's index is searched. Without one,
        indexes are probed in TokenKind.probe_order() and the first match
        wins.

        Args:
            token: Token value presented by a caller
            kind_hint: Kind of the token, if known

        Returns:
            Grant if found, None otherwise

        Raises:
            ClientNotFoundError: If the matching grant's client no longer exists
        """
        _require_text(token, "token")
        kinds = [TokenKind.from_value(kind_hint)] if kind_hint is not None else TokenKind.probe_order()

        with self.metrics.track("find_by_token"):
            for kind in kinds:
                record = await self._guard(
                    "find_by_token", self._find_record_by_token(kind, token), kind=kind, token=token
                )
                if record is None or record.slot_value(kind) != token:
                    continue

                self.metrics.record_lookup(kind.value, hit=True)
                logger.debug(f"Token {mask_token(token)} matched {kind.value} of grant {record.id}")
                return self.mapper.to_grant(record)

        self.metrics.record_lookup(kinds[0].value if kind_hint is not None else "any", hit=False)
        return None

    async def find_expired(self, kind: Union[str, TokenKind], as_of: Optional[datetime] = None) -> List[Grant]:
        """
        Find grants whose token of the given kind expired at or before as_of.

        Records whose registered client has disappeared are skipped.
        """
        kind = TokenKind.from_value(kind)
        if kind is TokenKind.STATE:
            raise ValueError("state values do not expire")
        as_of = as_utc(as_of) or get_current_time()

        with self.metrics.track("find_expired"):
            records = await self._guard("find_expired", self._find_expired_records(kind, as_of), kind=kind)
            expired = [record for record in records if kind in record.expired_kinds(as_of)]
            return self._to_grants(expired)

    async def delete_expired(self, as_of: Optional[datetime] = None) -> int:
        """
        Delete every grant holding at least one token expired at or before as_of.

        The whole grant goes, even when another of its tokens is still valid.

        Returns:
            Number of grants deleted
        """
        as_of = as_utc(as_of) or get_current_time()
        with self.metrics.track("delete_expired"):
            deleted = await self._guard("delete_expired", self._delete_expired_records(as_of))
        self.metrics.record_sweep(deleted)
        if deleted:
            logger.info(f"Deleted {deleted} expired grants (as of {as_of.isoformat()})")
        return deleted

    async def find_by_registered_client_id(self, registered_client_id: str) -> List[Grant]:
        _require_text(registered_client_id, "registered_client_id")
        records = await self._guard("find_by_registered_client_id",
                                    self._find_records("registered_client_id", registered_client_id))
        return self._to_grants(records)

    async def find_by_principal_name(self, principal_name: str) -> List[Grant]:
        _require_text(principal_name, "principal_name")
        records = await self._guard("find_by_principal_name",
                                    self._find_records("principal_name", principal_name))
        return self._to_grants(records)

    async def find_by_grant_type(self, grant_type: Union[str, AuthorizationGrantType]) -> List[Grant]:
        value = grant_type.value if isinstance(grant_type, AuthorizationGrantType) else grant_type
        _require_text(value, "grant_type")
        records = await self._guard("find_by_grant_type",
                                    self._find_records("authorization_grant_type", value))
        return self._to_grants(records)

    async def remove_by_registered_client_id(self, registered_client_id: str) -> int:
        """Remove every grant of a registered client, returning the count."""
        _require_text(registered_client_id, "registered_client_id")
        removed = await self._guard("remove_by_registered_client_id",
                                    self._delete_records("registered_client_id", registered_client_id))
        logger.info(f"Removed {removed} grants of client {registered_client_id}")
        return removed

    async def remove_by_principal_name(self, principal_name: str) -> int:
        """Remove every grant of a principal, returning the count."""
        _require_text(principal_name, "principal_name")
        removed = await self._guard("remove_by_principal_name",
                                    self._delete_records("principal_name", principal_name))
        logger.info(f"Removed {removed} grants of principal {principal_name}")
        return removed

    async def count(self) -> int:
        return await self._guard("count", self._count_records())

    async def get_statistics(self) -> Dict[str, Any]:
        return {
            "backend": type(self).__name__,
            "total_grants": await self.count(),
        }

    # Helpers

    def _to_grants(self, records: List[AuthorizationRecord]) -> List[Grant]:
        grants = []
        for record in records:
            try:
                grants.append(self.mapper.to_grant(record))
            except ClientNotFoundError as e:
                logger.warning(f"Skipping orphaned grant {record.id}: {e.message}")
        return grants

    async def _guard(self, operation: str, call: Awaitable,
                     grant_id: Optional[str] = None,
                     kind: Optional[TokenKind] = None,
                     token: Optional[str] = None):
        """Await a backend call, wrapping backend failures into StorageError."""
        try:
            return await call
        except GrantStoreError:
            raise
        except Exception as e:
            context = ErrorContext.for_token(grant_id=grant_id, token_kind=kind, token_value=token)
            logger.error(f"Storage failure during {operation} (grant={grant_id}, "
                         f"token={mask_token(token)}): {type(e).__name__}")
            raise StorageError(operation, type(e).__name__, context=context, cause=e) from e


def _require_text(value: Optional[str], name: str) -> None:
    if not value:
        raise ValueError(f"{name} cannot be empty")
