import logging

import pytest

from typedstore import DataProvider, NullArgumentError, ReadStatus, StoreConfig
from tests.helpers import InMemStoreSession, Widget

pytestmark = [pytest.mark.unit, pytest.mark.provider]


@pytest.mark.asyncio
async def test_set_then_get_returns_equal_value(widgets):
    w = Widget(id=1, name="bolt", tags=["m4"])

    assert await widgets.insert_or_update("Widget:1", w) is True

    got = await widgets.get_by_key("Widget:1")
    assert got == w
    assert got.id == w.id and got.name == w.name and got.tags == w.tags


@pytest.mark.asyncio
async def test_write_is_one_transaction_with_index_add(widgets, session):
    await widgets.set("Widget:1", Widget(id=1, name="bolt"))

    assert session.calls_of("exec") == [("exec", 0, ["set", "sadd"])]
    assert await widgets.get_keys_in_set() == ["Widget:1"]


@pytest.mark.asyncio
async def test_failed_transaction_writes_nothing(widgets, session):
    session.fail_transactions = True

    assert await widgets.insert_or_update("Widget:1", Widget(id=1, name="bolt")) is False
    assert await widgets.get_by_key("Widget:1") is None
    assert await widgets.get_keys_in_set() == []


@pytest.mark.asyncio
async def test_insert_encoded_payload(widgets):
    payload = widgets.codec.encode(Widget(id=3, name="washer"))

    assert await widgets.insert_or_update_payload("Widget:3", payload) is True
    assert await widgets.get_by_key("Widget:3") == Widget(id=3, name="washer")


@pytest.mark.asyncio
async def test_update_overwrites_and_keeps_single_index_entry(widgets):
    await widgets.insert_or_update("Widget:1", Widget(id=1, name="old"))
    await widgets.insert_or_update("Widget:1", Widget(id=1, name="new"))

    assert (await widgets.get_by_key("Widget:1")).name == "new"
    assert await widgets.get_keys_in_set() == ["Widget:1"]


@pytest.mark.asyncio
async def test_get_by_key_missing_is_none(widgets):
    assert await widgets.get_by_key("Widget:404") is None


@pytest.mark.asyncio
async def test_get_by_keys_uses_one_batched_fetch_and_skips_bad_entries(widgets, session, caplog):
    caplog.set_level(logging.DEBUG, logger="typedstore")
    await widgets.insert_or_update("Widget:1", Widget(id=1, name="a"))
    await widgets.insert_or_update("Widget:2", Widget(id=2, name="b"))
    await session.set(0, "Widget:bad", '{"id": "not-a-number"}')
    session.calls.clear()

    got = await widgets.get_by_keys(["Widget:1", "Widget:missing", "Widget:bad", "Widget:2"])

    assert [w.id for w in got] == [1, 2]
    assert len(session.calls_of("mget")) == 1
    rec = next(r for r in caplog.records if getattr(r, "event", "") == "store.decode.failed")
    assert getattr(rec, "key", None) == "Widget:bad"


@pytest.mark.asyncio
async def test_get_results_tags_each_key(widgets, session):
    await widgets.insert_or_update("Widget:1", Widget(id=1, name="a"))
    await session.set(0, "Widget:bad", "garbage")

    results = await widgets.get_results(["Widget:1", "Widget:none", "Widget:bad"])

    assert [r.status for r in results] == [ReadStatus.OK, ReadStatus.MISSING, ReadStatus.DECODE_FAILED]
    assert results[0].ok and results[0].value == Widget(id=1, name="a")
    assert results[1].value is None and results[1].error is None
    assert results[2].error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda p: p.insert_or_update(None, Widget(id=1, name="a")),
        lambda p: p.insert_or_update("Widget:1", None),
        lambda p: p.insert_or_update_payload("Widget:1", None),
        lambda p: p.get_by_key(None),
        lambda p: p.get_by_keys(None),
        lambda p: p.get_by_keys(["Widget:1", None]),
        lambda p: p.delete(None),
    ],
)
async def test_null_arguments_fail_before_any_io(widgets, session, call):
    with pytest.raises(NullArgumentError):
        await call(widgets)
    assert session.calls == []


@pytest.mark.asyncio
async def test_db_index_selection(session, locks):
    provider = DataProvider(
        Widget,
        config=StoreConfig(redis_urls=["redis://unused"], default_db_index=3),
        session=session,
        lock_provider=locks,
    )
    await provider.insert_or_update("Widget:1", Widget(id=1, name="default"))
    await provider.insert_or_update("Widget:1", Widget(id=1, name="five"), db_index=5)
    await provider.insert_or_update("Widget:1", Widget(id=1, name="negative"), db_index=-2)

    assert (await provider.get_by_key("Widget:1")).name == "default"
    assert (await provider.get_by_key("Widget:1", db_index=0)).name == "default"
    assert (await provider.get_by_key("Widget:1", db_index=3)).name == "default"
    assert (await provider.get_by_key("Widget:1", db_index=5)).name == "five"
    assert "Widget:1" in session.db(0).strings
    assert session.db(0).strings["Widget:1"] == provider.codec.encode(Widget(id=1, name="negative"))


@pytest.mark.asyncio
async def test_reconfigure_closes_owned_session_only():
    injected = InMemStoreSession()
    provider = DataProvider(Widget, session=injected)

    await provider.reconfigure(StoreConfig(redis_urls=["redis://other:6379"], default_db_index=1))

    assert provider.config.default_db_index == 1
    assert provider.session is injected
    assert injected.closed is False


@pytest.mark.asyncio
async def test_owned_session_is_rebuilt_lazily_after_reconfigure():
    from typedstore.storage import RedisLockProvider, RedisStoreSession

    provider = DataProvider(Widget, config=StoreConfig(redis_urls=["redis://a:6379"]))
    first = provider.session
    assert isinstance(first, RedisStoreSession)
    assert first.list_endpoints() == ["redis://a:6379"]
    assert isinstance(provider.lock_provider, RedisLockProvider)

    await provider.reconfigure(StoreConfig(redis_urls=["redis://b:6379", "redis://c:6379"]))

    second = provider.session
    assert second is not first
    assert second.list_endpoints() == ["redis://b:6379", "redis://c:6379"]
    await provider.aclose()
