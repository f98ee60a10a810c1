"""Redis-backed authorization store.

Key layout (prefix defaults to "grantstore"):
- `{prefix}:grant:{id}` holds the record as a JSON blob.
- `{prefix}:idx:{kind}:{value}` holds the id of the grant owning a token
  value, which is what makes token values unique per kind.
- `{prefix}:pending:{id}` marks a grant whose save has claimed its index
  keys but not yet written its record. It expires on its own, so an
  interrupted save does not hold its values forever.
- `{prefix}:exp:{kind}` is a sorted set of grant ids scored by the
  expiry (epoch seconds) of that kind's token, used by sweeps.
- `{prefix}:client:{id}`, `{prefix}:principal:{name}` and
  `{prefix}:grant_type:{type}` are sets of grant ids for bulk queries.
- `{prefix}:all` is the set of every stored grant id.

A save claims all of its index keys in one Lua script, then writes the
record in a transaction that WATCHes those keys and checks they still
point at the grant. Deletions run under WATCH on the grant key, so a
grant replaced while a sweep is deciding about it is left alone.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from ..common.utils import chunk_list
from ..errors import ConflictError, ErrorContext
from ..mapper import AuthorizationMapper, AuthorizationRecord
from ..metrics import StoreMetrics
from ..types.grant import TokenKind
from .types import QUERYABLE_FIELDS, AuthorizationStore


logger = logging.getLogger(__name__)

MAX_DELETE_ATTEMPTS = 3
MGET_BATCH_SIZE = 500
PENDING_CLAIM_TTL_MS = 30000

# KEYS[1]: pending marker of the saving grant, KEYS[2..]: index keys
# ARGV[1..4]: grant id, marker TTL (ms), grant key prefix, pending key prefix
# ARGV[5..]: record field and value of each index key, in pairs
# An owner holds a key while it is pending or its stored record still
# carries the value. Returns nil on success, or {position, owner}.
CLAIM_SCRIPT = """
local grant_id = ARGV[1]
for i = 2, #KEYS do
    local owner = redis.call('GET', KEYS[i])
    if owner and owner ~= grant_id then
        if redis.call('EXISTS', ARGV[4] .. owner) == 1 then
            return {i - 1, owner}
        end
        local blob = redis.call('GET', ARGV[3] .. owner)
        if blob and cjson.decode(blob)[ARGV[2 * i + 1]] == ARGV[2 * i + 2] then
            return {i - 1, owner}
        end
    end
end
redis.call('SET', KEYS[1], '1', 'PX', ARGV[2])
for i = 2, #KEYS do
    redis.call('SET', KEYS[i], grant_id)
end
return nil
"""

# KEYS[1]: pending marker, KEYS[2..]: index keys to give up if still owned
RELEASE_SCRIPT = """
redis.call('DEL', KEYS[1])
for i = 2, #KEYS do
    if redis.call('GET', KEYS[i]) == ARGV[1] then
        redis.call('DEL', KEYS[i])
    end
end
return 0
"""


class RedisAuthorizationStore(AuthorizationStore):
    def __init__(
        self,
        mapper: AuthorizationMapper,
        url: str = "redis://localhost:6379/0",
        prefix: str = "grantstore",
        metrics: Optional[StoreMetrics] = None,
        client=None,
    ):
        super().__init__(mapper, metrics)
        self.url = url
        self.prefix = prefix.rstrip(":")
        self._client = client
        self._scripts = {}

    async def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
            logger.info(f"Connected authorization store to {self.url}")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._scripts = {}
            logger.info("Disconnected authorization store from Redis")

    # Key helpers
    def _grant_key(self, grant_id: str) -> str:
        return f"{self.prefix}:grant:{grant_id}"

    def _index_key(self, kind: TokenKind, value: str) -> str:
        return f"{self.prefix}:idx:{kind.value}:{value}"

    def _expiry_key(self, kind: TokenKind) -> str:
        return f"{self.prefix}:exp:{kind.value}"

    def _field_key(self, field: str, value: str) -> str:
        names = {
            "registered_client_id": "client",
            "principal_name": "principal",
            "authorization_grant_type": "grant_type",
        }
        return f"{self.prefix}:{names[field]}:{value}"

    def _pending_key(self, grant_id: str) -> str:
        return f"{self.prefix}:pending:{grant_id}"

    def _all_key(self) -> str:
        return f"{self.prefix}:all"

    # Writes

    async def _store_record(self, record: AuthorizationRecord) -> None:
        client = await self._get_client()
        previous = await self._load(client, record.id)

        entries = record.index_entries()
        await self._claim(client, record.id, entries)
        try:
            await self._write(client, record, previous, entries)
        except ConflictError:
            held = previous.index_entries() if previous is not None else {}
            await self._release(client, record.id,
                                {kind: value for kind, value in entries.items() if held.get(kind) != value})
            raise
        logger.debug(f"Stored grant {record.id}")

    async def _write(self, client, record: AuthorizationRecord,
                     previous: Optional[AuthorizationRecord], entries: Dict[TokenKind, str]) -> None:
        """Write the record if every index key still points at it."""
        index_keys = [self._index_key(kind, value) for kind, value in entries.items()]
        async with client.pipeline(transaction=True) as pipe:
            if index_keys:
                await pipe.watch(*index_keys)
                owners = await pipe.mget(index_keys)
                for (kind, value), owner in zip(entries.items(), owners):
                    if owner != record.id:
                        raise self._conflict(record.id, kind, value, owner)

            pipe.multi()
            pipe.set(self._grant_key(record.id), record.to_json())
            pipe.delete(self._pending_key(record.id))
            pipe.sadd(self._all_key(), record.id)

            if previous is not None:
                for kind, value in previous.index_entries().items():
                    if record.slot_value(kind) != value:
                        pipe.delete(self._index_key(kind, value))
                for field in QUERYABLE_FIELDS:
                    old_value = getattr(previous, field)
                    if old_value != getattr(record, field):
                        pipe.srem(self._field_key(field, old_value), record.id)

            for field in QUERYABLE_FIELDS:
                pipe.sadd(self._field_key(field, getattr(record, field)), record.id)

            for kind in TokenKind.slot_kinds():
                expires_at = record.slot_expires_at(kind) if record.slot_value(kind) else None
                if expires_at is not None:
                    pipe.zadd(self._expiry_key(kind), {record.id: expires_at.timestamp()})
                else:
                    pipe.zrem(self._expiry_key(kind), record.id)

            try:
                await pipe.execute()
            except WatchError:
                raise ConflictError(
                    "token index changed while the grant was being saved",
                    context=ErrorContext(grant_id=record.id),
                ) from None

    async def _claim(self, client, grant_id: str, entries: Dict[TokenKind, str]) -> None:
        """
        Point every index key of a record at grant_id in one atomic step.

        Keys held by another grant, stored or still being saved, are left
        alone and the whole claim fails with ConflictError. Keys whose
        owner no longer carries the value are leftovers of an interrupted
        save and are taken over.
        """
        kinds = list(entries)
        args = [grant_id, PENDING_CLAIM_TTL_MS, self._grant_key(""), self._pending_key("")]
        for kind in kinds:
            args.extend([AuthorizationRecord.value_field(kind), entries[kind]])

        script = self._script(client, "claim", CLAIM_SCRIPT)
        result = await script(
            keys=[self._pending_key(grant_id)] + [self._index_key(kind, entries[kind]) for kind in kinds],
            args=args,
        )
        if result:
            position, owner = result
            kind = kinds[int(position) - 1]
            raise self._conflict(grant_id, kind, entries[kind], owner)

    async def _release(self, client, grant_id: str, entries: Dict[TokenKind, str]) -> None:
        """Drop the pending marker and the given claims still pointing at grant_id."""
        script = self._script(client, "release", RELEASE_SCRIPT)
        keys = [self._pending_key(grant_id)]
        keys.extend(self._index_key(kind, value) for kind, value in entries.items())
        await script(keys=keys, args=[grant_id])

    def _script(self, client, name: str, source: str):
        if name not in self._scripts:
            self._scripts[name] = client.register_script(source)
        return self._scripts[name]

    @staticmethod
    def _conflict(grant_id: str, kind: TokenKind, value: str, owner: Optional[str]) -> ConflictError:
        return ConflictError(
            f"{kind.value} value is already held by another grant",
            existing_grant_id=owner,
            context=ErrorContext.for_token(grant_id, kind, value),
        )

    async def _delete_record(self, grant_id: str) -> bool:
        client = await self._get_client()
        for _ in range(MAX_DELETE_ATTEMPTS):
            try:
                return await self._delete_if(client, grant_id, lambda record: True)
            except WatchError:
                logger.debug(f"Grant {grant_id} changed during delete, retrying")
        return await self._delete_if(client, grant_id, lambda record: True)

    async def _delete_if(self, client, grant_id: str,
                         predicate: Callable[[AuthorizationRecord], bool]) -> bool:
        """Delete a grant if predicate holds for its current version."""
        key = self._grant_key(grant_id)
        async with client.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            raw = await pipe.get(key)
            if not raw:
                return False
            record = AuthorizationRecord.from_json(raw)
            if not predicate(record):
                return False

            pipe.multi()
            pipe.delete(key)
            pipe.srem(self._all_key(), grant_id)
            for kind, value in record.index_entries().items():
                pipe.delete(self._index_key(kind, value))
            for kind in TokenKind.slot_kinds():
                pipe.zrem(self._expiry_key(kind), grant_id)
            for field in QUERYABLE_FIELDS:
                pipe.srem(self._field_key(field, getattr(record, field)), grant_id)
            await pipe.execute()
        return True

    async def _delete_expired_records(self, as_of: datetime) -> int:
        client = await self._get_client()
        candidates = set()
        for kind in TokenKind.slot_kinds():
            candidates.update(await client.zrangebyscore(self._expiry_key(kind), "-inf", as_of.timestamp()))

        deleted = 0
        for grant_id in candidates:
            try:
                if await self._delete_if(client, grant_id, lambda record: record.is_expired(as_of)):
                    deleted += 1
            except WatchError:
                logger.debug(f"Grant {grant_id} was replaced during sweep, skipping")
        return deleted

    async def _delete_records(self, field: str, value: str) -> int:
        client = await self._get_client()
        deleted = 0
        for grant_id in await client.smembers(self._field_key(field, value)):
            if await self._delete_record(grant_id):
                deleted += 1
        await client.delete(self._field_key(field, value))
        return deleted

    # Reads

    async def _load(self, client, grant_id: str) -> Optional[AuthorizationRecord]:
        raw = await client.get(self._grant_key(grant_id))
        return AuthorizationRecord.from_json(raw) if raw else None

    async def _load_many(self, client, grant_ids: Iterable[str]) -> List[AuthorizationRecord]:
        records = []
        for batch in chunk_list(sorted(grant_ids), MGET_BATCH_SIZE):
            raws = await client.mget([self._grant_key(grant_id) for grant_id in batch])
            records.extend(AuthorizationRecord.from_json(raw) for raw in raws if raw)
        return records

    async def _load_record(self, grant_id: str) -> Optional[AuthorizationRecord]:
        client = await self._get_client()
        return await self._load(client, grant_id)

    async def _find_record_by_token(self, kind: TokenKind, value: str) -> Optional[AuthorizationRecord]:
        client = await self._get_client()
        grant_id = await client.get(self._index_key(kind, value))
        if not grant_id:
            return None
        return await self._load(client, grant_id)

    async def _find_expired_records(self, kind: TokenKind, as_of: datetime) -> List[AuthorizationRecord]:
        client = await self._get_client()
        grant_ids = await client.zrangebyscore(self._expiry_key(kind), "-inf", as_of.timestamp())
        return await self._load_many(client, grant_ids)

    async def _find_records(self, field: str, value: str) -> List[AuthorizationRecord]:
        client = await self._get_client()
        records = await self._load_many(client, await client.smembers(self._field_key(field, value)))
        return [record for record in records if getattr(record, field) == value]

    async def _count_records(self) -> int:
        client = await self._get_client()
        return await client.scard(self._all_key())
