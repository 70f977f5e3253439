"""Shared fixtures: an in-memory controller and a small sample house."""

from __future__ import annotations

import asyncio
import copy
from typing import Any

import pytest

from tutera.services.crestron.client import FetchResult, SetterResult
from tutera.services.crestron.models import (
    Area,
    DoorLock,
    FanMode,
    Light,
    MediaProvider,
    MediaRoom,
    Room,
    Scene,
    SecurityDevice,
    Sensor,
    Shade,
    Thermostat,
    ThermostatMode,
)
from tutera.services.session import ControlSession

COLLECTIONS = (
    "areas",
    "rooms",
    "lights",
    "shades",
    "thermostats",
    "media_rooms",
    "scenes",
    "door_locks",
    "sensors",
    "security_devices",
)


class FakeController:
    """RemoteController backed by plain lists.

    Fetches return deep copies of ``self.data``. Setter calls are recorded
    in ``self.calls``; devices listed in ``failing_ids`` report failure.
    """

    def __init__(self, data: dict[str, list[Any]] | None = None) -> None:
        self.data: dict[str, list[Any]] = {name: [] for name in COLLECTIONS}
        if data:
            self.data.update(data)
        self.fetch_errors: dict[str, str] = {}
        self.raise_on_fetch: Exception | None = None
        self.fetch_delay = 0.0
        self.fetch_count = 0
        self.failing_ids: set[str] = set()
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []

    async def _get(self, name: str) -> FetchResult:
        self.fetch_count += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.raise_on_fetch:
            raise self.raise_on_fetch
        if name in self.fetch_errors:
            return FetchResult(False, [], self.fetch_errors[name])
        return FetchResult(True, copy.deepcopy(self.data[name]))

    async def get_areas(self) -> FetchResult:
        return await self._get("areas")

    async def get_rooms(self) -> FetchResult:
        return await self._get("rooms")

    async def get_lights(self) -> FetchResult:
        return await self._get("lights")

    async def get_shades(self) -> FetchResult:
        return await self._get("shades")

    async def get_thermostats(self) -> FetchResult:
        return await self._get("thermostats")

    async def get_media_rooms(self) -> FetchResult:
        return await self._get("media_rooms")

    async def get_scenes(self) -> FetchResult:
        return await self._get("scenes")

    async def get_door_locks(self) -> FetchResult:
        return await self._get("door_locks")

    async def get_sensors(self) -> FetchResult:
        return await self._get("sensors")

    async def get_security_devices(self) -> FetchResult:
        return await self._get("security_devices")

    def _record(self, setter: str, device_id: str, *args: Any) -> SetterResult:
        self.calls.append((setter, device_id, args))
        if device_id in self.failing_ids:
            return SetterResult(success=False, device_id=device_id, message="HTTP error: 500")
        return SetterResult(success=True, device_id=device_id, message="OK")

    def calls_for(self, setter: str) -> list[tuple[str, tuple[Any, ...]]]:
        return [(device_id, args) for name, device_id, args in self.calls if name == setter]

    async def set_light(self, device_id: str, level: int, is_on: bool) -> SetterResult:
        return self._record("set_light", device_id, level, is_on)

    async def set_shade_position(self, device_id: str, position: int) -> SetterResult:
        return self._record("set_shade_position", device_id, position)

    async def set_thermostat_set_point(
        self, device_id: str, heat: int | None = None, cool: int | None = None
    ) -> SetterResult:
        return self._record("set_thermostat_set_point", device_id, heat, cool)

    async def set_thermostat_mode(self, device_id: str, mode: ThermostatMode) -> SetterResult:
        return self._record("set_thermostat_mode", device_id, mode)

    async def set_thermostat_fan_mode(self, device_id: str, fan_mode: FanMode) -> SetterResult:
        return self._record("set_thermostat_fan_mode", device_id, fan_mode)

    async def set_media_room_power(self, device_id: str, on: bool) -> SetterResult:
        return self._record("set_media_room_power", device_id, on)

    async def set_media_room_volume(self, device_id: str, volume_percent: int) -> SetterResult:
        return self._record("set_media_room_volume", device_id, volume_percent)

    async def set_media_room_mute(self, device_id: str, muted: bool) -> SetterResult:
        return self._record("set_media_room_mute", device_id, muted)

    async def set_media_room_source(self, device_id: str, provider_id: int) -> SetterResult:
        return self._record("set_media_room_source", device_id, provider_id)

    async def recall_scene(self, device_id: str) -> SetterResult:
        return self._record("recall_scene", device_id)

    async def set_door_lock(self, device_id: str, locked: bool) -> SetterResult:
        return self._record("set_door_lock", device_id, locked)


class FakeAuth:
    """AuthProvider that counts refreshes."""

    def __init__(self, succeed: bool = True, delay: float = 0.0) -> None:
        self.succeed = succeed
        self.delay = delay
        self.refresh_calls = 0
        self.invalidated = 0
        self.on_refresh: Any = None

    async def refresh_auth(self) -> bool:
        self.refresh_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.on_refresh:
            self.on_refresh()
        return self.succeed

    def invalidate_auth(self) -> None:
        self.invalidated += 1


def sample_house() -> dict[str, list[Any]]:
    """Two floors, four rooms, a handful of devices of every type."""
    half = 32768  # 50%
    return {
        # Areas come back without room ids; membership is derived from rooms.
        "areas": [Area("a1", "1st Floor"), Area("a2", "2nd Floor")],
        "rooms": [
            Room("r1", "Kitchen", "a1", "1st Floor"),
            Room("r2", "Living Room", "a1", "1st Floor"),
            Room("r3", "Master Bedroom", "a2", "2nd Floor"),
            Room("r4", "Office", "a2", "2nd Floor"),
        ],
        "lights": [
            Light("l1", "Kitchen Pendant", "r1", level=0, is_on=False),
            Light("l2", "Kitchen Island", "r1", level=half, is_on=True),
            Light("l3", "Kitchen Cans", "r1", level=half, is_on=True),
            Light("l4", "Living Room Lamp", "r2", level=65535, is_on=True),
            Light("l5", "Master Sconce", "r3", level=0, is_on=False),
            Light("l6", "Office Desk", "r4", level=0, is_on=False),
            Light("l7", "Porch Light", "r99", level=0, is_on=False),
        ],
        "shades": [
            Shade("h1", "Kitchen Shade", "r1", position=0),
            Shade("h2", "Living Room Shade", "r2", position=65535),
            Shade("h3", "Living Room Sheer", "r2", position=0),
        ],
        "thermostats": [
            Thermostat("t1", "Kitchen Thermostat", "r1", 72, 68, 74, ThermostatMode.COOL),
            Thermostat("t2", "Kitchen Floor Heat", "r1", 72, 70, 80, ThermostatMode.OFF),
            Thermostat("t3", "Master Suite Thermostat", "r3", 66, 70, 76, ThermostatMode.HEAT),
            Thermostat("t4", "Guest Suite Thermostat", None, 68, 68, 75, ThermostatMode.OFF),
        ],
        "media_rooms": [
            MediaRoom(
                "m1",
                "Living Room",
                "r2",
                is_powered_on=False,
                volume_percent=30,
                current_provider_id=1,
                available_providers=[MediaProvider(1, "Apple TV"), MediaProvider(2, "Sonos")],
            ),
            MediaRoom(
                "m2",
                "Kitchen Audio",
                "r1",
                is_powered_on=True,
                volume_percent=20,
                current_provider_id=2,
                available_providers=[MediaProvider(2, "Sonos")],
            ),
        ],
        "scenes": [Scene("s1", "Movie Night", "r2"), Scene("s2", "All Off")],
        "door_locks": [
            DoorLock("d1", "Front Door", "r2", is_locked=True),
            DoorLock("d2", "Garage Door", None, is_locked=False),
        ],
        "sensors": [Sensor("x1", "Kitchen Motion", "r1", sub_type="motion", value=True)],
        "security_devices": [SecurityDevice("z1", "House Alarm", None, state="Disarmed")],
    }


@pytest.fixture
def controller() -> FakeController:
    """Controller holding the sample house."""
    return FakeController(sample_house())


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
async def session(controller: FakeController, auth: FakeAuth) -> ControlSession:
    """Session with the sample house already polled in."""
    session = ControlSession(controller, auth)
    assert await session.poll_once() is True
    controller.calls.clear()
    return session
