"""
Tests for the in-memory authorization store.
"""

from datetime import datetime, timedelta

import pytest

from grantstore import MemoryAuthorizationStore, create_grant, create_token
from grantstore.errors import ClientNotFoundError, CodecError, ConflictError, StorageError
from grantstore.types import AuthorizationGrantType, Token, TokenKind


class TestSaveAndFind:
    """Lookup by id and by any held token value"""

    @pytest.mark.asyncio
    async def test_find_by_id(self, store, full_grant):
        await store.save(full_grant)
        assert await store.find_by_id("grant-full") == full_grant

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, store):
        assert await store.find_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_every_held_value_finds_the_grant(self, store, full_grant):
        await store.save(full_grant)

        for kind, value in full_grant.token_values().items():
            assert (await store.find_by_token(value, kind)).id == "grant-full"
            assert (await store.find_by_token(value)).id == "grant-full"

    @pytest.mark.asyncio
    async def test_state_lookup(self, store, full_grant):
        await store.save(full_grant)

        assert (await store.find_by_token("state-abc-123", TokenKind.STATE)).id == "grant-full"
        assert (await store.find_by_token("state-abc-123", "state")).id == "grant-full"
        assert (await store.find_by_token("state-abc-123")).id == "grant-full"

    @pytest.mark.asyncio
    async def test_unknown_value(self, store, full_grant):
        await store.save(full_grant)

        assert await store.find_by_token("never-issued") is None
        assert await store.find_by_token("never-issued", TokenKind.ACCESS_TOKEN) is None

    @pytest.mark.asyncio
    async def test_kind_hint_scopes_the_search(self, store, make_grant):
        await store.save(make_grant(access_token="AT1"))

        assert await store.find_by_token("AT1", TokenKind.REFRESH_TOKEN) is None
        assert (await store.find_by_token("AT1", TokenKind.ACCESS_TOKEN)).id == "grant-1"

    @pytest.mark.asyncio
    async def test_unknown_kind_hint(self, store):
        with pytest.raises(ValueError):
            await store.find_by_token("AT1", "bogus")

    @pytest.mark.asyncio
    async def test_empty_arguments(self, store):
        with pytest.raises(ValueError):
            await store.find_by_token("")
        with pytest.raises(ValueError):
            await store.find_by_id("")

    @pytest.mark.asyncio
    async def test_unhinted_lookup_prefers_earlier_kind(self, store, make_grant):
        # same string held as a refresh token by one grant and a code by another
        await store.save(make_grant("grant-rt", refresh_token="shared"))
        await store.save(make_grant("grant-code", authorization_code="shared"))

        assert (await store.find_by_token("shared")).id == "grant-code"
        assert (await store.find_by_token("shared", TokenKind.REFRESH_TOKEN)).id == "grant-rt"


class TestReplace:
    """save is a full replace keyed by grant id"""

    @pytest.mark.asyncio
    async def test_save_is_idempotent(self, store, make_grant):
        grant = make_grant(access_token="AT1")
        await store.save(grant)
        await store.save(grant)

        assert await store.count() == 1
        assert await store.find_by_token("AT1") == grant

    @pytest.mark.asyncio
    async def test_rotated_token_no_longer_found(self, store, make_grant, now):
        grant = make_grant(access_token="AT1", refresh_token="RT1")
        await store.save(grant)

        rotated = grant.with_token(Token(TokenKind.ACCESS_TOKEN, "AT2", now, now + timedelta(hours=1)))
        await store.save(rotated)

        assert await store.find_by_token("AT1") is None
        assert (await store.find_by_token("AT2")).id == "grant-1"
        assert (await store.find_by_token("RT1")).id == "grant-1"

    @pytest.mark.asyncio
    async def test_code_exchange_clears_code(self, store, make_grant):
        grant = make_grant(authorization_code="C1")
        await store.save(grant)
        await store.save(grant.without_token(TokenKind.AUTHORIZATION_CODE))

        assert await store.find_by_token("C1") is None
        assert await store.find_by_id("grant-1") is not None


class TestConflicts:
    @pytest.mark.asyncio
    async def test_value_held_by_another_grant(self, store, make_grant):
        await store.save(make_grant("grant-a", access_token="AT1"))

        with pytest.raises(ConflictError) as exc_info:
            await store.save(make_grant("grant-b", access_token="AT1", refresh_token="RT-b"))

        assert exc_info.value.existing_grant_id == "grant-a"
        assert "AT1" not in str(exc_info.value)
        assert await store.find_by_id("grant-b") is None
        assert await store.find_by_token("RT-b") is None
        assert (await store.find_by_token("AT1")).id == "grant-a"

    @pytest.mark.asyncio
    async def test_same_value_under_different_kinds_is_allowed(self, store, make_grant):
        await store.save(make_grant("grant-a", access_token="X"))
        await store.save(make_grant("grant-b", refresh_token="X"))
        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_codec_failure_leaves_store_untouched(self, store, make_grant):
        with pytest.raises(CodecError):
            await store.save(make_grant(attributes={"bad": object()}, access_token="AT1"))
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_scope_with_surrounding_whitespace_rejected(self, store, make_grant):
        with pytest.raises(ValueError):
            await store.save(make_grant(scopes=(" read", "write")))
        assert await store.count() == 0


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove(self, store, full_grant):
        await store.save(full_grant)
        assert await store.remove(full_grant) is True

        assert await store.find_by_id("grant-full") is None
        for value in full_grant.token_values().values():
            assert await store.find_by_token(value) is None
        assert await store.find_by_token("state-abc-123") is None

    @pytest.mark.asyncio
    async def test_remove_unknown_is_noop(self, store, make_grant):
        assert await store.remove(make_grant("never-saved")) is False
        assert await store.remove_by_id("never-saved") is False

    @pytest.mark.asyncio
    async def test_values_reusable_after_remove(self, store, make_grant):
        await store.save(make_grant("grant-a", access_token="AT1"))
        await store.remove_by_id("grant-a")
        await store.save(make_grant("grant-b", access_token="AT1"))

        assert (await store.find_by_token("AT1")).id == "grant-b"


class TestOrphans:
    @pytest.mark.asyncio
    async def test_lookup_of_orphaned_grant(self, store, clients, make_grant):
        await store.save(make_grant(access_token="AT1"))
        clients.unregister("client-1")

        with pytest.raises(ClientNotFoundError):
            await store.find_by_token("AT1")
        with pytest.raises(ClientNotFoundError):
            await store.find_by_id("grant-1")

    @pytest.mark.asyncio
    async def test_scans_skip_orphans(self, store, clients, make_grant):
        await store.save(make_grant("grant-a", principal="alice", access_token="AT1"))
        await store.save(make_grant("grant-b", client_id="client-2", principal="alice", access_token="AT2"))
        clients.unregister("client-1")

        found = await store.find_by_principal_name("alice")
        assert [grant.id for grant in found] == ["grant-b"]


class TestQueries:
    @pytest.mark.asyncio
    async def test_find_by_client_and_principal(self, store, make_grant):
        await store.save(make_grant("g1", client_id="client-1", principal="alice"))
        await store.save(make_grant("g2", client_id="client-1", principal="bob"))
        await store.save(make_grant("g3", client_id="client-2", principal="alice"))

        assert {g.id for g in await store.find_by_registered_client_id("client-1")} == {"g1", "g2"}
        assert {g.id for g in await store.find_by_principal_name("alice")} == {"g1", "g3"}

    @pytest.mark.asyncio
    async def test_find_by_grant_type(self, store, make_grant):
        await store.save(make_grant("g1"))
        await store.save(make_grant("g2", client_id="client-2", grant_type=AuthorizationGrantType.DEVICE_CODE))
        await store.save(make_grant("g3", grant_type=AuthorizationGrantType("urn:custom:x")))

        assert [g.id for g in await store.find_by_grant_type(AuthorizationGrantType.DEVICE_CODE)] == ["g2"]
        assert [g.id for g in await store.find_by_grant_type("urn:custom:x")] == ["g3"]

    @pytest.mark.asyncio
    async def test_bulk_removal(self, store, make_grant):
        await store.save(make_grant("g1", client_id="client-1", principal="alice", access_token="AT1"))
        await store.save(make_grant("g2", client_id="client-1", principal="bob"))
        await store.save(make_grant("g3", client_id="client-2", principal="alice"))

        assert await store.remove_by_registered_client_id("client-1") == 2
        assert await store.find_by_token("AT1") is None
        assert await store.remove_by_principal_name("alice") == 1
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_statistics(self, store, full_grant):
        await store.save(full_grant)
        stats = await store.get_statistics()

        assert stats["backend"] == "MemoryAuthorizationStore"
        assert stats["total_grants"] == 1
        assert stats["indexed_values"]["state"] == 1
        assert stats["indexed_values"]["access_token"] == 1


class TestExpiry:
    @pytest.mark.asyncio
    async def test_find_expired_by_kind(self, store, make_grant, now):
        await store.save(make_grant("g1", access_token="AT1"))

        assert await store.find_expired(TokenKind.ACCESS_TOKEN, now) == []
        expired = await store.find_expired("access_token", now + timedelta(hours=1))
        assert [grant.id for grant in expired] == ["g1"]
        assert await store.find_expired(TokenKind.REFRESH_TOKEN, now + timedelta(days=30)) == []

    @pytest.mark.asyncio
    async def test_state_has_no_expiry(self, store):
        with pytest.raises(ValueError):
            await store.find_expired(TokenKind.STATE)

    @pytest.mark.asyncio
    async def test_delete_expired_removes_whole_grant(self, store, now):
        grant = create_grant("client-1", "alice", "authorization_code", grant_id="g1", tokens=[
            create_token(TokenKind.ACCESS_TOKEN, "AT1", timedelta(hours=1), issued_at=now),
            create_token(TokenKind.REFRESH_TOKEN, "RT1", timedelta(days=7), issued_at=now),
        ])
        await store.save(grant)

        assert await store.delete_expired(now + timedelta(seconds=3599)) == 0
        assert await store.delete_expired(now + timedelta(seconds=3601)) == 1
        assert await store.find_by_token("RT1") is None
        assert await store.find_by_id("g1") is None

    @pytest.mark.asyncio
    async def test_tokens_without_expiry_are_kept(self, store, make_grant, now):
        grant = make_grant("g1").with_token(Token(TokenKind.DEVICE_CODE, "DC1", now, None))
        await store.save(grant)
        assert await store.delete_expired(now + timedelta(days=3650)) == 0

    @pytest.mark.asyncio
    async def test_naive_cutoff_is_treated_as_utc(self, store, make_grant):
        await store.save(make_grant("g1", access_token="AT1"))

        assert await store.find_expired(TokenKind.ACCESS_TOKEN, datetime(2026, 1, 1, 12, 30)) == []
        expired = await store.find_expired(TokenKind.ACCESS_TOKEN, datetime(2026, 1, 1, 14, 0))
        assert [grant.id for grant in expired] == ["g1"]

        assert await store.delete_expired(datetime(2026, 1, 1, 12, 30)) == 0
        assert await store.delete_expired(datetime(2026, 1, 1, 14, 0)) == 1


class TestMetricsAndErrors:
    @pytest.mark.asyncio
    async def test_lookups_are_counted(self, store, metrics, make_grant):
        await store.save(make_grant(access_token="AT1"))
        await store.find_by_token("AT1")
        await store.find_by_token("missing")

        assert metrics.get_value("grantstore_token_lookups_total", kind="access_token", outcome="hit") == 1
        assert metrics.get_value("grantstore_token_lookups_total", kind="any", outcome="miss") == 1
        assert metrics.get_value("grantstore_operations_total", operation="save", status="success") == 1

    @pytest.mark.asyncio
    async def test_backend_failure_is_wrapped(self, mapper, make_grant):
        class BrokenStore(MemoryAuthorizationStore):
            async def _load_record(self, grant_id):
                raise RuntimeError("connection reset while reading secret-token-value")

        store = BrokenStore(mapper)
        with pytest.raises(StorageError) as exc_info:
            await store.find_by_id("grant-1")

        assert exc_info.value.operation == "find_by_id"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert "secret-token-value" not in exc_info.value.message
