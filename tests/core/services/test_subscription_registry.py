"""Tests for connection and group membership tracking."""

from tokenprism.core.models import FilterCriterion
from tokenprism.core.services import SubscriptionRegistry


def _criterion(**raw):
    return FilterCriterion.normalize(raw)


def test_identical_filters_share_one_group(connection_factory):
    registry = SubscriptionRegistry()
    first, second = connection_factory("c1"), connection_factory("c2")
    registry.connect(first)
    registry.connect(second)

    registry.join_group("c1", _criterion(sortBy="volume", period="24h", minVolume=40, limit=2))
    registry.join_group("c2", _criterion(sortBy="volume", period="24h", minVolume=40, limit=2))

    groups = registry.groups()
    assert list(groups) == ["filters:sort=volume&period=24h&minVol=40&minLiq=0&limit=2"]
    assert {conn.connection_id for conn in registry.members_of_group(next(iter(groups)))} == {"c1", "c2"}


def test_disconnecting_last_member_discards_group(connection_factory):
    registry = SubscriptionRegistry()
    registry.connect(connection_factory("c1"))
    criterion = _criterion(minVolume=40)
    registry.join_group("c1", criterion)

    registry.disconnect("c1")

    assert registry.groups() == {}
    assert registry.connection_count == 0


def test_group_survives_while_members_remain(connection_factory):
    registry = SubscriptionRegistry()
    for cid in ("c1", "c2"):
        registry.connect(connection_factory(cid))
        registry.join_group(cid, _criterion(limit=5))

    registry.disconnect("c1")

    name = _criterion(limit=5).group_name
    assert name in registry.groups()
    assert [conn.connection_id for conn in registry.members_of_group(name)] == ["c2"]


def test_leave_all_groups_keeps_connection(connection_factory):
    registry = SubscriptionRegistry()
    registry.connect(connection_factory("c1"))
    registry.join_group("c1", _criterion(limit=5))
    registry.join_group("c1", _criterion(limit=6))

    left = registry.leave_all_groups("c1")

    assert len(left) == 2
    assert registry.groups() == {}
    assert registry.groups_of("c1") == set()
    assert registry.connection_count == 1


def test_token_rooms_are_case_insensitive(connection_factory):
    registry = SubscriptionRegistry()
    registry.connect(connection_factory("c1"))

    registry.join_token("c1", "MintABC")

    assert [conn.connection_id for conn in registry.members_of_token("mintabc")] == ["c1"]
    registry.leave_token("c1", "MINTABC")
    assert registry.members_of_token("mintabc") == []


def test_disconnect_clears_token_rooms(connection_factory):
    registry = SubscriptionRegistry()
    registry.connect(connection_factory("c1"))
    registry.join_token("c1", "mint")

    registry.disconnect("c1")

    assert registry.members_of_token("mint") == []
    assert registry.get("c1") is None
