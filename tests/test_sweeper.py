"""
Tests for the expiry sweeper.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from grantstore import ExpirySweeper, create_grant, create_token
from grantstore.common.utils import get_current_time
from grantstore.types import TokenKind


@pytest.fixture
def sweeper(store):
    return ExpirySweeper(store, interval=timedelta(minutes=5))


def access_and_refresh_grant(grant_id, issued_at, refresh_validity=timedelta(days=7)):
    return create_grant("client-1", "alice", "authorization_code", grant_id=grant_id, tokens=[
        create_token(TokenKind.ACCESS_TOKEN, f"AT-{grant_id}", timedelta(hours=1), issued_at=issued_at),
        create_token(TokenKind.REFRESH_TOKEN, f"RT-{grant_id}", refresh_validity, issued_at=issued_at),
    ])


class TestSweepPolicy:
    @pytest.mark.asyncio
    async def test_expired_access_token_removes_grant(self, store, sweeper, now):
        await store.save(access_and_refresh_grant("g1", now))

        assert await sweeper.delete_expired(now + timedelta(seconds=3601)) == 1
        assert await store.find_by_token("RT-g1") is None
        assert sweeper.last_deleted == 1
        assert sweeper.last_sweep_at == now + timedelta(seconds=3601)

    @pytest.mark.asyncio
    async def test_unexpired_grants_survive(self, store, sweeper, now):
        await store.save(access_and_refresh_grant("g1", now))
        await store.save(access_and_refresh_grant("g2", now + timedelta(hours=2)))

        assert await sweeper.delete_expired(now + timedelta(hours=1, minutes=30)) == 1
        assert await store.find_by_id("g2") is not None

    @pytest.mark.asyncio
    async def test_resaved_grant_uses_new_expiry(self, store, sweeper, now):
        await store.save(access_and_refresh_grant("g1", now))
        await store.save(access_and_refresh_grant("g1", now + timedelta(hours=1)))

        assert await sweeper.delete_expired(now + timedelta(seconds=3601)) == 0
        assert await store.find_by_token("AT-g1") is not None

    @pytest.mark.asyncio
    async def test_find_expired(self, store, sweeper, now):
        await store.save(access_and_refresh_grant("g1", now))

        expired = await sweeper.find_expired(TokenKind.ACCESS_TOKEN, now + timedelta(hours=1))
        assert [grant.id for grant in expired] == ["g1"]
        assert await sweeper.find_expired(TokenKind.REFRESH_TOKEN, now + timedelta(hours=1)) == []

    @pytest.mark.asyncio
    async def test_sweep_is_counted(self, store, sweeper, metrics, now):
        await store.save(access_and_refresh_grant("g1", now))
        await store.save(access_and_refresh_grant("g2", now))
        await sweeper.delete_expired(now + timedelta(days=8))

        assert metrics.get_value("grantstore_grants_swept_total") == 2

    @pytest.mark.asyncio
    async def test_naive_cutoff_is_treated_as_utc(self, store, sweeper, now):
        await store.save(access_and_refresh_grant("g1", now))

        expired = await sweeper.find_expired(TokenKind.ACCESS_TOKEN, datetime(2026, 1, 1, 14, 0))
        assert [grant.id for grant in expired] == ["g1"]

        assert await sweeper.delete_expired(datetime(2026, 1, 1, 12, 30)) == 0
        assert await sweeper.delete_expired(datetime(2026, 1, 1, 14, 0)) == 1
        assert sweeper.last_sweep_at == datetime(2026, 1, 1, 14, 0, tzinfo=timezone.utc)


class TestBackgroundLoop:
    def test_interval_must_be_positive(self, store):
        with pytest.raises(ValueError):
            ExpirySweeper(store, interval=timedelta(0))

    @pytest.mark.asyncio
    async def test_run_once_uses_current_time(self, store, sweeper):
        issued = get_current_time() - timedelta(hours=2)
        await store.save(access_and_refresh_grant("g1", issued))

        assert await sweeper.run_once() == 1
        assert sweeper.last_sweep_at is not None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store):
        sweeper = ExpirySweeper(store, interval=timedelta(milliseconds=10))
        await store.save(access_and_refresh_grant("g1", get_current_time() - timedelta(hours=2)))

        await sweeper.start()
        assert sweeper.running
        for _ in range(50):
            if await store.count() == 0:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert not sweeper.running
        assert await store.count() == 0
