"""Device matcher for structured command targets.

Resolves area/room/device-name hints into a concrete candidate device set.

Resolution precedence per device family:
1. Room hint resolving to a registered room -> exact room id
2. Room hint not resolving -> fuzzy match against each device's room name
3. Area hint resolving -> room id membership in the area
4. No usable hint -> every device of the family
A device-name hint is then applied as an extra filter. Thermostats fall back
to their own hardware name when location filtering finds nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

from tutera.services.crestron.models import (
    DoorLock,
    Light,
    MediaRoom,
    Scene,
    Shade,
    Thermostat,
)
from tutera.services.crestron.topology import TopologyIndex, fuzzy_match

logger = logging.getLogger(__name__)

D = TypeVar("D", Light, Shade, Thermostat, MediaRoom, DoorLock, Scene)


@dataclass
class MatchHints:
    """Target hints carried by an intent."""

    area: str | None = None
    room: str | None = None
    device_name: str | None = None

    @property
    def location(self) -> str | None:
        """The most specific location hint."""
        return self.room or self.area


class DeviceMatcher:
    """Resolves hints against a topology snapshot. Never raises."""

    def __init__(self, topology: TopologyIndex) -> None:
        self._topology = topology

    @property
    def topology(self) -> TopologyIndex:
        return self._topology

    def _by_location(self, devices: Sequence[D], hints: MatchHints) -> list[D]:
        topology = self._topology

        if hints.room:
            room = topology.find_room(hints.room)
            if room:
                return [d for d in devices if d.room_id == room.id]
            return [
                d
                for d in devices
                if (name := topology.room_name(d.room_id)) and fuzzy_match(hints.room, name)
            ]

        if hints.area:
            area = topology.find_area(hints.area)
            if area:
                return [d for d in devices if d.room_id and d.room_id in area.room_ids]

        return list(devices)

    def _by_name(self, devices: list[D], hints: MatchHints) -> list[D]:
        if not hints.device_name:
            return devices
        return [d for d in devices if fuzzy_match(hints.device_name, d.name)]

    def get_matching_lights(self, hints: MatchHints) -> list[Light]:
        """Lights matching the area/room/name hints."""
        lights = self._by_location(self._topology.collections.lights, hints)
        return self._by_name(lights, hints)

    def get_matching_shades(self, hints: MatchHints) -> list[Shade]:
        """Shades matching the area/room/name hints."""
        shades = self._by_location(self._topology.collections.shades, hints)
        return self._by_name(shades, hints)

    def get_matching_thermostats(self, hints: MatchHints) -> list[Thermostat]:
        """Thermostats matching the hints.

        Room registries and hardware labels drift apart ("Master Bedroom" vs
        "Master Suite Thermostat"), so an empty location match falls back to
        matching the location hint against each thermostat's own name.
        """
        thermostats = self._topology.collections.thermostats
        matched = self._by_location(thermostats, hints)
        location = hints.location
        if not matched and location:
            matched = [t for t in thermostats if fuzzy_match(location, t.name)]
            if matched:
                logger.debug(
                    "Thermostats for %r resolved by device name: %s",
                    location,
                    [t.name for t in matched],
                )
        return self._by_name(matched, hints)

    def get_matching_media_rooms(self, hints: MatchHints) -> list[MediaRoom]:
        """Media rooms matching the area/room/name hints."""
        media_rooms = self._by_location(self._topology.collections.media_rooms, hints)
        return self._by_name(media_rooms, hints)

    def get_matching_door_locks(self, hints: MatchHints) -> list[DoorLock]:
        """Door locks matching the area/room/name hints."""
        locks = self._by_location(self._topology.collections.door_locks, hints)
        return self._by_name(locks, hints)

    def find_scene(self, scene_name: str, room: str | None = None) -> Scene | None:
        """Find a scene by name, preferring scenes in the given room."""
        scenes = self._topology.collections.scenes
        if room:
            resolved = self._topology.find_room(room)
            if resolved:
                for scene in scenes:
                    if scene.room_id == resolved.id and fuzzy_match(scene_name, scene.name):
                        return scene
        for scene in scenes:
            if fuzzy_match(scene_name, scene.name):
                return scene
        return None
