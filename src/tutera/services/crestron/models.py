"""Crestron Home data models.

Flat device collections as cached from the processor:
- Areas (groupings of rooms by level/zone)
- Rooms
- Lights, shades, thermostats, media rooms, scenes, door locks, sensors,
  security devices
- Thermostat pairs (main + optional floor heat sharing a room)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

LIGHT_LEVEL_MAX = 65535
SHADE_POSITION_MAX = 65535


class DeviceType(str, Enum):
    """Device-type tag used by snapshots and cache patches."""

    LIGHT = "light"
    SHADE = "shade"
    THERMOSTAT = "thermostat"
    MEDIA_ROOM = "mediaRoom"
    SCENE = "scene"
    DOOR_LOCK = "doorLock"
    SENSOR = "sensor"
    SECURITY_DEVICE = "securityDevice"


class ThermostatMode(str, Enum):
    """Thermostat operating mode."""

    OFF = "off"
    HEAT = "heat"
    COOL = "cool"
    AUTO = "auto"


class FanMode(str, Enum):
    """Thermostat fan mode."""

    AUTO = "auto"
    ON = "on"


@dataclass
class Area:
    """A logical grouping of rooms (floor, wing).

    Room membership is a set: order is irrelevant.
    """

    id: str
    name: str
    room_ids: set[str] = field(default_factory=set)


@dataclass
class Room:
    """A named location containing zero or more devices."""

    id: str
    name: str
    area_id: str | None = None
    area_name: str | None = None


@dataclass
class Light:
    """Dimmer or switch load. Level is 0..65535."""

    id: str
    name: str
    room_id: str | None = None
    level: int = 0
    is_on: bool = False
    sub_type: str = "dimmer"

    type = DeviceType.LIGHT

    @property
    def brightness_percent(self) -> int:
        """Level expressed as a 0-100 percentage."""
        return round(self.level * 100 / LIGHT_LEVEL_MAX)

    @property
    def is_lit(self) -> bool:
        """Check if the load is on at any level."""
        return self.is_on or self.level > 0


@dataclass
class Shade:
    """Motorized shade. Position is 0 (closed) .. 65535 (open)."""

    id: str
    name: str
    room_id: str | None = None
    position: int = 0

    type = DeviceType.SHADE

    @property
    def position_percent(self) -> int:
        """Position expressed as a 0-100 percentage open."""
        return round(self.position * 100 / SHADE_POSITION_MAX)


@dataclass
class Thermostat:
    """Climate device. Temperatures are whole degrees Fahrenheit."""

    id: str
    name: str
    room_id: str | None = None
    current_temp: int = 0
    heat_set_point: int = 0
    cool_set_point: int = 0
    mode: ThermostatMode = ThermostatMode.OFF
    fan_mode: FanMode = FanMode.AUTO
    sub_type: str | None = None

    type = DeviceType.THERMOSTAT


@dataclass
class MediaProvider:
    """Source available to a media room."""

    id: int
    name: str


@dataclass
class MediaRoom:
    """Audio/video zone."""

    id: str
    name: str
    room_id: str | None = None
    is_powered_on: bool = False
    volume_percent: int = 0
    is_muted: bool = False
    current_provider_id: int | None = None
    available_providers: list[MediaProvider] = field(default_factory=list)

    type = DeviceType.MEDIA_ROOM

    @property
    def current_source_name(self) -> str | None:
        """Name of the selected provider, if known."""
        for provider in self.available_providers:
            if provider.id == self.current_provider_id:
                return provider.name
        return None


@dataclass
class Scene:
    """Pre-programmed combination of device states."""

    id: str
    name: str
    room_id: str | None = None

    type = DeviceType.SCENE


@dataclass
class DoorLock:
    """Door lock."""

    id: str
    name: str
    room_id: str | None = None
    is_locked: bool = True

    type = DeviceType.DOOR_LOCK


@dataclass
class Sensor:
    """Read-only sensor (occupancy, contact, ...)."""

    id: str
    name: str
    room_id: str | None = None
    sub_type: str = "contact"
    value: bool = False

    type = DeviceType.SENSOR


@dataclass
class SecurityDevice:
    """Security panel or partition. Read-only; state is the processor's label."""

    id: str
    name: str
    room_id: str | None = None
    state: str = "Unknown"

    type = DeviceType.SECURITY_DEVICE


Device = Light | Shade | Thermostat | MediaRoom | Scene | DoorLock | Sensor | SecurityDevice


def is_floor_heat(thermostat: Thermostat) -> bool:
    """Identify the auxiliary floor-heat variant of a thermostat."""
    if thermostat.sub_type and thermostat.sub_type.lower() in ("floorheat", "floor_heat"):
        return True
    name = thermostat.name.lower()
    return "floor" in name or "radiant" in name


def is_temperature_satisfied(thermostat: Thermostat) -> bool:
    """Check if the measured temperature has reached the heat setpoint."""
    return thermostat.current_temp >= thermostat.heat_set_point


@dataclass
class ThermostatPair:
    """Main thermostat and optional floor heat sharing a room."""

    room_id: str
    room_name: str
    main: Thermostat
    floor_heat: Thermostat | None = None


@dataclass
class DeviceCollections:
    """One complete set of cached collections."""

    areas: list[Area] = field(default_factory=list)
    rooms: list[Room] = field(default_factory=list)
    lights: list[Light] = field(default_factory=list)
    shades: list[Shade] = field(default_factory=list)
    thermostats: list[Thermostat] = field(default_factory=list)
    media_rooms: list[MediaRoom] = field(default_factory=list)
    scenes: list[Scene] = field(default_factory=list)
    door_locks: list[DoorLock] = field(default_factory=list)
    sensors: list[Sensor] = field(default_factory=list)
    security_devices: list[SecurityDevice] = field(default_factory=list)
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Collection counts for API responses."""
        return {
            "areas": len(self.areas),
            "rooms": len(self.rooms),
            "lights": len(self.lights),
            "shades": len(self.shades),
            "thermostats": len(self.thermostats),
            "media_rooms": len(self.media_rooms),
            "scenes": len(self.scenes),
            "door_locks": len(self.door_locks),
            "sensors": len(self.sensors),
            "security_devices": len(self.security_devices),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
