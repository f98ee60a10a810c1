"""
In-memory authorization store implementation.

This module provides an asyncio-safe in-memory store suitable for
development, testing and single-instance deployments.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from ..errors import ConflictError, ErrorContext
from ..mapper import AuthorizationMapper, AuthorizationRecord
from ..metrics import StoreMetrics
from ..types.grant import TokenKind
from .types import AuthorizationStore


logger = logging.getLogger(__name__)


class MemoryAuthorizationStore(AuthorizationStore):
    """
    In-memory authorization store.

    Records are kept in a dictionary keyed by grant id, with one
    value -> grant id index per token kind. A single lock serializes
    writes so that index updates and record replacement happen together.

    Note: All data is lost when the process terminates.
    """

    def __init__(self, mapper: AuthorizationMapper, metrics: Optional[StoreMetrics] = None):
        super().__init__(mapper, metrics)
        self._records: Dict[str, AuthorizationRecord] = {}
        self._indexes: Dict[TokenKind, Dict[str, str]] = {kind: {} for kind in TokenKind}
        self._lock = asyncio.Lock()

    async def _store_record(self, record: AuthorizationRecord) -> None:
        async with self._lock:
            entries = record.index_entries()
            for kind, value in entries.items():
                owner = self._indexes[kind].get(value)
                if owner is not None and owner != record.id:
                    raise ConflictError(
                        f"{kind.value} value is already held by another grant",
                        existing_grant_id=owner,
                        context=ErrorContext.for_token(record.id, kind, value),
                    )

            previous = self._records.get(record.id)
            if previous is not None:
                self._unindex(previous)

            self._records[record.id] = record
            for kind, value in entries.items():
                self._indexes[kind][value] = record.id

    async def _load_record(self, grant_id: str) -> Optional[AuthorizationRecord]:
        async with self._lock:
            return self._records.get(grant_id)

    async def _delete_record(self, grant_id: str) -> bool:
        async with self._lock:
            return self._remove(grant_id)

    async def _find_record_by_token(self, kind: TokenKind, value: str) -> Optional[AuthorizationRecord]:
        async with self._lock:
            grant_id = self._indexes[kind].get(value)
            return self._records.get(grant_id) if grant_id is not None else None

    async def _find_expired_records(self, kind: TokenKind, as_of: datetime) -> List[AuthorizationRecord]:
        async with self._lock:
            return [record for record in self._records.values() if kind in record.expired_kinds(as_of)]

    async def _delete_expired_records(self, as_of: datetime) -> int:
        async with self._lock:
            expired = [grant_id for grant_id, record in self._records.items() if record.is_expired(as_of)]
            for grant_id in expired:
                self._remove(grant_id)
            return len(expired)

    async def _find_records(self, field: str, value: str) -> List[AuthorizationRecord]:
        async with self._lock:
            return [record for record in self._records.values() if getattr(record, field) == value]

    async def _delete_records(self, field: str, value: str) -> int:
        async with self._lock:
            matching = [grant_id for grant_id, record in self._records.items()
                        if getattr(record, field) == value]
            for grant_id in matching:
                self._remove(grant_id)
            return len(matching)

    async def _count_records(self) -> int:
        async with self._lock:
            return len(self._records)

    async def get_statistics(self):
        stats = await super().get_statistics()
        async with self._lock:
            stats["indexed_values"] = {kind.value: len(index) for kind, index in self._indexes.items()}
        return stats

    def _remove(self, grant_id: str) -> bool:
        # caller holds the lock
        record = self._records.pop(grant_id, None)
        if record is None:
            return False
        self._unindex(record)
        return True

    def _unindex(self, record: AuthorizationRecord) -> None:
        for kind, value in record.index_entries().items():
            if self._indexes[kind].get(value) == record.id:
                del self._indexes[kind][value]
