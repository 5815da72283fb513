"""Tests for event fan-out."""

import pytest

from tokenprism.core.data.cache import ThreadSafeInMemoryCache
from tokenprism.core.services import FanoutBroadcaster, SnapshotStore, SubscriptionRegistry


@pytest.fixture
def store():
    return SnapshotStore(ThreadSafeInMemoryCache())


@pytest.fixture
def broadcaster(engine, store):
    return FanoutBroadcaster(SubscriptionRegistry(), engine, store)


def _connect(broadcaster, connection):
    broadcaster.registry.connect(connection)
    return connection


@pytest.mark.asyncio
async def test_subscribe_sends_cached_slice_without_fetching(broadcaster, store, engine, make_record, connection_factory):
    await store.replace(engine.merge([[make_record("v100", volume=100.0), make_record("v60", volume=60.0), make_record("v10", volume=10.0)]]))
    conn = _connect(broadcaster, connection_factory("c1"))

    ack = await broadcaster.subscribe_filters(conn, {"sortBy": "volume", "period": "24h", "minVolume": 40, "limit": 2})

    assert ack == {"ok": True}
    (payload,) = conn.named("tokens:refresh")
    assert [token["address"] for token in payload["tokens"]] == ["v100", "v60"]
    assert payload["count"] == 2


@pytest.mark.asyncio
async def test_subscribe_before_first_refresh_sends_empty_slice(broadcaster, connection_factory):
    conn = _connect(broadcaster, connection_factory("c1"))

    ack = await broadcaster.subscribe_filters(conn, {"sortBy": "nonsense", "limit": -4})

    assert ack == {"ok": True}
    assert conn.named("tokens:refresh")[0]["tokens"] == []
    assert list(broadcaster.registry.groups()) == ["filters:sort=volume&period=24h&minVol=0&minLiq=0&limit=20"]


@pytest.mark.asyncio
async def test_subscribe_reports_failure_when_initial_send_fails(broadcaster, connection_factory):
    conn = _connect(broadcaster, connection_factory("c1", fail=True))

    assert await broadcaster.subscribe_filters(conn, {}) == {"ok": False}


@pytest.mark.asyncio
async def test_filter_groups_only_reach_their_members(broadcaster, engine, make_record, connection_factory):
    big = _connect(broadcaster, connection_factory("big"))
    liquid = _connect(broadcaster, connection_factory("liquid"))
    idle = _connect(broadcaster, connection_factory("idle"))
    await broadcaster.subscribe_filters(big, {"minVolume": 150})
    await broadcaster.subscribe_filters(liquid, {"sortBy": "liquidity", "limit": 1})
    for conn in (big, liquid):
        conn.events.clear()
    snapshot = engine.merge(
        [[make_record("a", volume=200.0, liquidity=1.0), make_record("b", volume=100.0, liquidity=9.0)]]
    )

    await broadcaster.broadcast_filter_groups(snapshot)

    assert [t["address"] for t in big.named("tokens:refresh")[0]["tokens"]] == ["a"]
    assert [t["address"] for t in liquid.named("tokens:refresh")[0]["tokens"]] == ["b"]
    assert idle.events == []


@pytest.mark.asyncio
async def test_refresh_goes_to_every_client(broadcaster, make_aggregated, connection_factory):
    conns = [_connect(broadcaster, connection_factory(f"c{i}")) for i in range(3)]

    await broadcaster.broadcast_tokens_refresh([make_aggregated("a"), make_aggregated("b")])

    for conn in conns:
        assert conn.named("tokens:refresh")[0]["count"] == 2


@pytest.mark.asyncio
async def test_token_update_reaches_room_members_twice(broadcaster, make_aggregated, connection_factory):
    watcher = _connect(broadcaster, connection_factory("watcher"))
    other = _connect(broadcaster, connection_factory("other"))
    broadcaster.registry.join_token("watcher", "MINT")

    await broadcaster.broadcast_token_update(make_aggregated("mint"))

    assert len(watcher.named("token:update")) == 2
    assert len(other.named("token:update")) == 1


@pytest.mark.asyncio
async def test_failing_connection_does_not_block_others(broadcaster, make_aggregated, connection_factory):
    _connect(broadcaster, connection_factory("broken", fail=True))
    healthy = _connect(broadcaster, connection_factory("healthy"))

    await broadcaster.broadcast_price_alert(make_aggregated("a"), 12.5)
    await broadcaster.broadcast_volume_spike(make_aggregated("a"), 80.0)

    assert healthy.named("price:alert")[0]["changePercent"] == 12.5
    assert healthy.named("volume:spike")[0]["spikePercent"] == 80.0


@pytest.mark.asyncio
async def test_unsubscribe_filters_acknowledges(broadcaster, connection_factory):
    conn = _connect(broadcaster, connection_factory("c1"))
    await broadcaster.subscribe_filters(conn, {"limit": 3})

    assert await broadcaster.unsubscribe_filters(conn) == {"ok": True}
    assert broadcaster.registry.groups() == {}


@pytest.mark.asyncio
async def test_send_to_unknown_connection(broadcaster, connection_factory):
    conn = _connect(broadcaster, connection_factory("c1"))

    assert await broadcaster.send_to("c1", "custom", {"x": 1}) is True
    assert await broadcaster.send_to("missing", "custom", {}) is False
    assert conn.events == [("custom", {"x": 1})]
