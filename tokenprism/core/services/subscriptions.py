"""Connection, token room and filter group membership."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from tokenprism.core.models import FilterCriterion


@runtime_checkable
class Connection(Protocol):
    """A real-time client the broadcaster can push events to."""

    connection_id: str

    async def send(self, event: str, payload: dict[str, Any]) -> None: ...


@dataclass
class FilterGroup:
    criterion: FilterCriterion
    members: set[str] = field(default_factory=set)


class SubscriptionRegistry:
    """Tracks which connections belong to which token rooms and filter groups.

    Every read-modify-write of the membership maps happens under one lock.
    Read accessors return copies.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        self._token_rooms: dict[str, set[str]] = {}
        self._groups: dict[str, FilterGroup] = {}
        self._memberships: dict[str, set[str]] = {}

    def connect(self, connection: Connection) -> None:
        with self._lock:
            self._connections[connection.connection_id] = connection
            self._memberships.setdefault(connection.connection_id, set())
        logger.info("Client connected", connection_id=connection.connection_id)

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection and every room and group it joined."""
        with self._lock:
            self._connections.pop(connection_id, None)
            for members in self._token_rooms.values():
                members.discard(connection_id)
            self._token_rooms = {room: members for room, members in self._token_rooms.items() if members}
            self._leave_groups_locked(connection_id)
            self._memberships.pop(connection_id, None)
        logger.info("Client disconnected", connection_id=connection_id)

    def join_token(self, connection_id: str, address: str) -> str:
        room = address.strip().lower()
        with self._lock:
            self._token_rooms.setdefault(room, set()).add(connection_id)
        logger.debug("Client subscribed to token", connection_id=connection_id, address=room)
        return room

    def leave_token(self, connection_id: str, address: str) -> None:
        room = address.strip().lower()
        with self._lock:
            members = self._token_rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._token_rooms[room]
        logger.debug("Client unsubscribed from token", connection_id=connection_id, address=room)

    def join_group(self, connection_id: str, criterion: FilterCriterion) -> FilterGroup:
        """Add a connection to the criterion's group.

        The first member registers the criterion; later members reuse it.
        """
        name = criterion.group_name
        with self._lock:
            group = self._groups.get(name)
            if group is None:
                group = self._groups[name] = FilterGroup(criterion=criterion)
            group.members.add(connection_id)
            self._memberships.setdefault(connection_id, set()).add(name)
            return FilterGroup(criterion=group.criterion, members=set(group.members))

    def leave_all_groups(self, connection_id: str) -> list[str]:
        with self._lock:
            return self._leave_groups_locked(connection_id)

    def _leave_groups_locked(self, connection_id: str) -> list[str]:
        names = sorted(self._memberships.get(connection_id, set()))
        for name in names:
            group = self._groups.get(name)
            if group is None:
                continue
            group.members.discard(connection_id)
            if not group.members:
                del self._groups[name]
                logger.debug("Filter group removed", group=name)
        if connection_id in self._memberships:
            self._memberships[connection_id] = set()
        return names

    def groups(self) -> dict[str, FilterCriterion]:
        with self._lock:
            return {name: group.criterion for name, group in self._groups.items()}

    def members_of_group(self, name: str) -> list[Connection]:
        with self._lock:
            group = self._groups.get(name)
            if group is None:
                return []
            return [self._connections[cid] for cid in group.members if cid in self._connections]

    def members_of_token(self, address: str) -> list[Connection]:
        with self._lock:
            members = self._token_rooms.get(address.lower(), set())
            return [self._connections[cid] for cid in members if cid in self._connections]

    def groups_of(self, connection_id: str) -> set[str]:
        with self._lock:
            return set(self._memberships.get(connection_id, set()))

    def get(self, connection_id: str) -> Connection | None:
        with self._lock:
            return self._connections.get(connection_id)

    def connections(self) -> list[Connection]:
        with self._lock:
            return list(self._connections.values())

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)
