"""Topology index.

Builds the area -> room -> device hierarchy from the flat cached collections
and resolves loosely worded area/room references.

Key features:
- Ordered fuzzy-match strategies (exact, substring, canonical aliases)
- Areas rebuilt from room membership when the processor omits room ids
- Unresolved room references degrade to "unassigned", never an error
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TypeVar

from tutera.services.crestron.models import Area, Device, DeviceCollections, Room

logger = logging.getLogger(__name__)

UNASSIGNED = "unassigned"

# =============================================================================
# Canonical Location Aliases
# =============================================================================

# Maps a canonical fragment of a target name to the phrasings users say
# for it. Checked only after exact and substring matching fail.
LOCATION_VARIATIONS: dict[str, list[str]] = {
    "2nd floor": ["second floor", "2nd", "upstairs"],
    "1st floor": ["first floor", "1st", "main floor"],
    "lower level": ["basement", "lower", "downstairs"],
    "master suite": ["master", "primary suite"],
    "master bedroom": ["master bed", "primary bedroom"],
}


def normalize(text: str) -> str:
    """Lowercase and trim."""
    return text.lower().strip()


def _exact(query: str, target: str) -> bool:
    return query == target


def _substring(query: str, target: str) -> bool:
    return query in target or target in query


def _alias(query: str, target: str) -> bool:
    for canonical, variations in LOCATION_VARIATIONS.items():
        if canonical in target and any(alt in query for alt in variations):
            return True
    return False


# Order is a business rule: first qualifying strategy wins.
MATCH_STRATEGIES: list[tuple[str, Callable[[str, str], bool]]] = [
    ("exact", _exact),
    ("substring", _substring),
    ("alias", _alias),
]


def match_strategy(query: str, target: str) -> str | None:
    """Return the name of the first strategy matching, or None."""
    query_norm = normalize(query)
    target_norm = normalize(target)
    if not query_norm or not target_norm:
        return None
    for name, strategy in MATCH_STRATEGIES:
        if strategy(query_norm, target_norm):
            return name
    return None


def fuzzy_match(query: str, target: str) -> bool:
    """Check whether a user reference names the target.

    Args:
        query: What the user said (e.g., "upstairs")
        target: Registered name (e.g., "2nd Floor")

    Returns:
        True if any strategy matches.
    """
    return match_strategy(query, target) is not None


T = TypeVar("T", Area, Room)


def _find_by_name(name: str | None, candidates: Iterable[T]) -> T | None:
    if not name:
        return None
    for candidate in candidates:
        if fuzzy_match(name, candidate.name):
            return candidate
    return None


def find_area(name: str | None, areas: Iterable[Area]) -> Area | None:
    """First area whose name fuzzy-matches, else None."""
    return _find_by_name(name, areas)


def find_room(name: str | None, rooms: Iterable[Room]) -> Room | None:
    """First room whose name fuzzy-matches, else None."""
    return _find_by_name(name, rooms)


def build_areas(areas: list[Area], rooms: list[Room]) -> list[Area]:
    """Fill in area membership from rooms' area references.

    Some processor versions return areas with room ids populated; others only
    tag each room with its area id/name. When no area carries room ids, the
    membership is derived from the rooms, and areas known only through rooms
    are created.
    """
    if any(area.room_ids for area in areas) or not rooms:
        return areas

    from_rooms: dict[str, Area] = {}
    for room in rooms:
        if room.area_id and room.area_name:
            area = from_rooms.setdefault(
                room.area_id, Area(id=room.area_id, name=room.area_name)
            )
            area.room_ids.add(room.id)

    if not areas:
        return list(from_rooms.values())

    merged = []
    for area in areas:
        derived = from_rooms.get(area.id)
        merged.append(Area(area.id, area.name, set(derived.room_ids)) if derived else area)
    return merged


@dataclass
class RoomNode:
    """A room and the devices assigned to it."""

    room: Room
    devices: list[Device] = field(default_factory=list)


@dataclass
class AreaNode:
    """An area and its member rooms."""

    area: Area
    rooms: list[RoomNode] = field(default_factory=list)


class TopologyIndex:
    """Read-only index over one set of cached collections.

    Usage:
        topology = TopologyIndex(cache.collections)
        room = topology.find_room("kitchen")
        name = topology.room_name(light.room_id)
    """

    def __init__(self, collections: DeviceCollections) -> None:
        self._collections = collections
        self._rooms_by_id: dict[str, Room] = {room.id: room for room in collections.rooms}
        self._areas_by_id: dict[str, Area] = {area.id: area for area in collections.areas}
        self._area_by_room: dict[str, Area] = {}
        for area in collections.areas:
            for room_id in area.room_ids:
                self._area_by_room.setdefault(room_id, area)

    @property
    def collections(self) -> DeviceCollections:
        return self._collections

    @property
    def areas(self) -> list[Area]:
        return self._collections.areas

    @property
    def rooms(self) -> list[Room]:
        return self._collections.rooms

    def get_room(self, room_id: str | None) -> Room | None:
        """Room by id; None for missing or dangling references."""
        if room_id is None:
            return None
        return self._rooms_by_id.get(room_id)

    def get_area(self, area_id: str) -> Area | None:
        return self._areas_by_id.get(area_id)

    def room_name(self, room_id: str | None) -> str | None:
        """Resolved room name for a device's room id."""
        room = self.get_room(room_id)
        return room.name if room else None

    def area_for_room(self, room_id: str | None) -> Area | None:
        if room_id is None:
            return None
        return self._area_by_room.get(room_id)

    def find_area(self, name: str | None) -> Area | None:
        return find_area(name, self.areas)

    def find_room(self, name: str | None) -> Room | None:
        return find_room(name, self.rooms)

    def all_devices(self) -> list[Device]:
        """Every room-placeable device in the cache."""
        c = self._collections
        return [
            *c.lights,
            *c.shades,
            *c.thermostats,
            *c.media_rooms,
            *c.scenes,
            *c.door_locks,
            *c.sensors,
            *c.security_devices,
        ]

    def hierarchy(self) -> dict[str, AreaNode]:
        """Build the area -> room -> device tree.

        Rooms that no area claims, and devices whose room id does not resolve,
        are grouped under an "unassigned" node.
        """
        room_nodes: dict[str, RoomNode] = {room.id: RoomNode(room) for room in self.rooms}
        unassigned_room = RoomNode(Room(id=UNASSIGNED, name="Unassigned"))

        for device in self.all_devices():
            node = room_nodes.get(device.room_id) if device.room_id else None
            (node or unassigned_room).devices.append(device)

        tree: dict[str, AreaNode] = {}
        claimed: set[str] = set()
        for area in self.areas:
            area_node = AreaNode(area)
            for room_id in sorted(area.room_ids):
                if room_id in room_nodes:
                    area_node.rooms.append(room_nodes[room_id])
                    claimed.add(room_id)
            tree[area.id] = area_node

        leftovers = [node for room_id, node in room_nodes.items() if room_id not in claimed]
        if unassigned_room.devices:
            leftovers.append(unassigned_room)
        if leftovers:
            tree[UNASSIGNED] = AreaNode(
                Area(id=UNASSIGNED, name="Unassigned"), rooms=leftovers
            )

        logger.debug("Built hierarchy: %d areas, %d rooms", len(tree), len(room_nodes))
        return tree


__all__ = [
    "LOCATION_VARIATIONS",
    "MATCH_STRATEGIES",
    "UNASSIGNED",
    "AreaNode",
    "RoomNode",
    "TopologyIndex",
    "build_areas",
    "find_area",
    "find_room",
    "fuzzy_match",
    "match_strategy",
    "normalize",
]
