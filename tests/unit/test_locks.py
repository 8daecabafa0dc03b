import logging

import pytest

from typedstore.storage.locks import LockProvider, scoped_lock
from tests.helpers import InMemLockProvider

pytestmark = [pytest.mark.unit, pytest.mark.locks]


def test_inmemory_provider_satisfies_protocol():
    assert isinstance(InMemLockProvider(), LockProvider)


@pytest.mark.asyncio
async def test_scoped_lock_releases_on_normal_exit(locks):
    async with scoped_lock(locks, "Widget:1", 30_000) as handle:
        assert handle is not None
        assert locks.is_held("Widget:1")
    assert not locks.is_held("Widget:1")
    assert locks.released == ["Widget:1"]


@pytest.mark.asyncio
async def test_scoped_lock_releases_when_block_raises(locks):
    with pytest.raises(KeyError):
        async with scoped_lock(locks, "Widget:1", 30_000):
            raise KeyError("boom")
    assert not locks.is_held("Widget:1")


@pytest.mark.asyncio
async def test_scoped_lock_yields_none_when_held_elsewhere(locks):
    locks.hold("Widget:1")
    async with scoped_lock(locks, "Widget:1", 30_000) as handle:
        assert handle is None
    # the external holder keeps its lock
    assert locks.is_held("Widget:1")
    assert locks.released == []


@pytest.mark.asyncio
async def test_try_acquire_is_single_shot_and_ttl_bounded(locks, clock):
    first = await locks.try_acquire("k", 1_000)
    assert first is not None
    assert await locks.try_acquire("k", 1_000) is None

    clock.advance_ms(1_000)
    second = await locks.try_acquire("k", 1_000)
    assert second is not None
    # the expired owner can no longer release
    assert await locks.release(first) is False
    assert await locks.release(second) is True


@pytest.mark.asyncio
async def test_release_failure_is_logged_not_raised(locks, caplog):
    caplog.set_level(logging.WARNING, logger="typedstore")
    locks.fail_release = True

    async with scoped_lock(locks, "Widget:1", 30_000) as handle:
        assert handle is not None

    rec = next(r for r in caplog.records if getattr(r, "code", "") == "store.lock.release")
    assert rec.levelno == logging.WARNING
    assert getattr(rec, "lock", None) == "Widget:1"


@pytest.mark.asyncio
async def test_lock_expired_before_release_is_warned(locks, clock, caplog):
    caplog.set_level(logging.WARNING, logger="typedstore")
    async with scoped_lock(locks, "Widget:1", 500):
        clock.advance_ms(600)
    assert any(getattr(r, "event", "") == "store.lock.expired" for r in caplog.records)
