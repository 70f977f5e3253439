"""Crestron Home API client.

Async client for the Crestron Home REST API (``/cws/api``).
Handles:
- Authentication (auth token -> session auth key)
- Per-collection reads (areas, rooms, lights, shades, thermostats, ...)
- Per-device-type setters (lights, shades, thermostats, media rooms, scenes,
  locks)

The control core only depends on the ``RemoteController`` and ``AuthProvider``
protocols below; ``CrestronClient`` is the production implementation.
Setter and fetch failures are reported as ``success=False``, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from tutera.exceptions import CrestronAuthenticationError
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

logger = logging.getLogger(__name__)

API_PREFIX = "/cws/api"
AUTH_TOKEN_HEADER = "Crestron-RestAPI-AuthToken"
AUTH_KEY_HEADER = "Crestron-RestAPI-AuthKey"

_MODE_FROM_CRESTRON = {
    "Off": ThermostatMode.OFF,
    "Heat": ThermostatMode.HEAT,
    "Cool": ThermostatMode.COOL,
    "Auto": ThermostatMode.AUTO,
    "AuxHeat": ThermostatMode.HEAT,
}
_MODE_TO_CRESTRON = {
    ThermostatMode.OFF: "Off",
    ThermostatMode.HEAT: "Heat",
    ThermostatMode.COOL: "Cool",
    ThermostatMode.AUTO: "Auto",
}
_FAN_FROM_CRESTRON = {
    "Auto": FanMode.AUTO,
    "On": FanMode.ON,
    "CirculateLow": FanMode.AUTO,
    "CirculateMedium": FanMode.AUTO,
}
_SENSOR_SUBTYPES = {
    "OccupancySensor": "motion",
    "Motion": "motion",
    "Window": "contact",
    "Door": "contact",
    "Doorbell": "contact",
    "WaterAlarm": "contact",
    "Contact": "contact",
    "Temperature": "temperature",
    "Humidity": "humidity",
    "Luminance": "luminance",
}
_SENSOR_PRESENCE = {
    "Occupied": True,
    "Vacant": False,
    "OpenOrOn": True,
    "CloseOrOff": False,
}


@dataclass
class FetchResult:
    """Result of a collection read."""

    success: bool
    data: list[Any] = field(default_factory=list)
    error: str | None = None


@dataclass
class SetterResult:
    """Result of a device setter call."""

    success: bool
    device_id: str
    message: str = ""
    response_data: dict[str, Any] | None = None


class RemoteController(Protocol):
    """Per-device-type reads and setters against the processor."""

    async def get_areas(self) -> FetchResult: ...

    async def get_rooms(self) -> FetchResult: ...

    async def get_lights(self) -> FetchResult: ...

    async def get_shades(self) -> FetchResult: ...

    async def get_thermostats(self) -> FetchResult: ...

    async def get_media_rooms(self) -> FetchResult: ...

    async def get_scenes(self) -> FetchResult: ...

    async def get_door_locks(self) -> FetchResult: ...

    async def get_sensors(self) -> FetchResult: ...

    async def get_security_devices(self) -> FetchResult: ...

    async def set_light(self, device_id: str, level: int, is_on: bool) -> SetterResult: ...

    async def set_shade_position(self, device_id: str, position: int) -> SetterResult: ...

    async def set_thermostat_set_point(
        self, device_id: str, heat: int | None = None, cool: int | None = None
    ) -> SetterResult: ...

    async def set_thermostat_mode(self, device_id: str, mode: ThermostatMode) -> SetterResult: ...

    async def set_thermostat_fan_mode(self, device_id: str, fan_mode: FanMode) -> SetterResult: ...

    async def set_media_room_power(self, device_id: str, on: bool) -> SetterResult: ...

    async def set_media_room_volume(self, device_id: str, volume_percent: int) -> SetterResult: ...

    async def set_media_room_mute(self, device_id: str, muted: bool) -> SetterResult: ...

    async def set_media_room_source(self, device_id: str, provider_id: int) -> SetterResult: ...

    async def recall_scene(self, device_id: str) -> SetterResult: ...

    async def set_door_lock(self, device_id: str, locked: bool) -> SetterResult: ...


class AuthProvider(Protocol):
    """Session refresh collaborator."""

    async def refresh_auth(self) -> bool: ...

    def invalidate_auth(self) -> None: ...


def _crestron_id(device_id: str) -> int | str:
    return int(device_id) if device_id.isdigit() else device_id


def _optional_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _extract(payload: Any, key: str) -> list[Any]:
    """Pull a list out of a possibly nested Crestron response."""
    if not payload:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return payload.get(key) or []
    return []


class CrestronClient:
    """Async client for the Crestron Home REST API.

    Example:
        async with CrestronClient("https://192.168.1.20", token) as client:
            lights = await client.get_lights()
            await client.set_light("1042", level=65535, is_on=True)
    """

    def __init__(
        self,
        url: str,
        auth_token: str | None,
        timeout: float = 10.0,
        verify_ssl: bool = False,
    ) -> None:
        """Initialize the client.

        Args:
            url: Processor base URL (e.g., "https://192.168.1.20")
            auth_token: Web API auth token used to obtain session keys
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates (processors self-sign)
        """
        self._url = url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._auth_key: str | None = None
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        """Get the processor URL."""
        return self._url

    @property
    def authenticated(self) -> bool:
        """Check if a session auth key is held."""
        return self._auth_key is not None

    async def __aenter__(self) -> CrestronClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Create the HTTP client and log in."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._url,
                timeout=self._timeout,
                verify=self._verify_ssl,
            )
        if not self.authenticated:
            try:
                await self.login()
            except CrestronAuthenticationError as e:
                logger.warning("Initial Crestron login failed: %s", e)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from Crestron processor")

    async def login(self) -> str:
        """Exchange the auth token for a session auth key.

        Returns:
            The new auth key.

        Raises:
            CrestronAuthenticationError: If there is no token or it is rejected.
        """
        if not self._auth_token:
            raise CrestronAuthenticationError("No auth token configured")
        if not self._client:
            raise CrestronAuthenticationError("Client not connected")

        try:
            response = await self._client.get(
                f"{API_PREFIX}/login", headers={AUTH_TOKEN_HEADER: self._auth_token}
            )
        except httpx.RequestError as e:
            raise CrestronAuthenticationError(f"Connection error: {e}") from e

        if response.status_code in (401, 403):
            raise CrestronAuthenticationError(f"Auth token rejected ({response.status_code})")
        if response.status_code != 200:
            raise CrestronAuthenticationError(f"Login failed with status {response.status_code}")

        data = response.json()
        auth_key = data.get("authkey") or data.get("authKey")
        if not auth_key:
            raise CrestronAuthenticationError("Login response did not contain an auth key")

        self._auth_key = auth_key
        logger.info("Authenticated with Crestron processor at %s", self._url)
        return auth_key

    async def refresh_auth(self) -> bool:
        """Attempt one re-login with the stored token."""
        self._auth_key = None
        try:
            await self.login()
            return True
        except CrestronAuthenticationError as e:
            logger.warning("Crestron auth refresh failed: %s", e)
            self.invalidate_auth()
            return False

    def invalidate_auth(self) -> None:
        """Drop the session key; the token is kept for a later re-login."""
        self._auth_key = None

    def _headers(self) -> dict[str, str]:
        if not self._auth_key:
            return {}
        return {AUTH_KEY_HEADER: self._auth_key}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _fetch(self, path: str, key: str) -> tuple[bool, list[Any], str | None]:
        if not self._client:
            return False, [], "Client not connected"
        try:
            response = await self._client.get(f"{API_PREFIX}/{path}", headers=self._headers())
            if response.status_code in (401, 403):
                logger.warning("Crestron rejected session key for %s", path)
                return False, [], f"Unauthorized ({response.status_code})"
            response.raise_for_status()
            return True, _extract(response.json(), key), None
        except httpx.HTTPStatusError as e:
            logger.error("Fetch %s failed with status %d", path, e.response.status_code)
            return False, [], f"HTTP error: {e.response.status_code}"
        except httpx.RequestError as e:
            logger.error("Fetch %s failed: %s", path, e)
            return False, [], f"Connection error: {e}"

    async def get_areas(self) -> FetchResult:
        ok, raw, error = await self._fetch("areas", "areas")
        return FetchResult(ok, [self._parse_area(a) for a in raw], error)

    async def get_rooms(self) -> FetchResult:
        ok, raw, error = await self._fetch("rooms", "rooms")
        return FetchResult(ok, [self._parse_room(r) for r in raw], error)

    async def get_lights(self) -> FetchResult:
        ok, raw, error = await self._fetch("lights", "lights")
        return FetchResult(ok, [self._parse_light(light) for light in raw], error)

    async def get_shades(self) -> FetchResult:
        ok, raw, error = await self._fetch("shades", "shades")
        return FetchResult(ok, [self._parse_shade(s) for s in raw], error)

    async def get_thermostats(self) -> FetchResult:
        ok, raw, error = await self._fetch("thermostats", "thermostats")
        return FetchResult(ok, [self._parse_thermostat(t) for t in raw], error)

    async def get_media_rooms(self) -> FetchResult:
        ok, raw, error = await self._fetch("mediarooms", "mediaRooms")
        return FetchResult(ok, [self._parse_media_room(m) for m in raw], error)

    async def get_scenes(self) -> FetchResult:
        ok, raw, error = await self._fetch("scenes", "scenes")
        return FetchResult(ok, [self._parse_scene(s) for s in raw], error)

    async def get_door_locks(self) -> FetchResult:
        ok, raw, error = await self._fetch("doorlocks", "doorLocks")
        return FetchResult(ok, [self._parse_door_lock(d) for d in raw], error)

    async def get_sensors(self) -> FetchResult:
        ok, raw, error = await self._fetch("sensors", "sensors")
        return FetchResult(ok, [self._parse_sensor(s) for s in raw], error)

    async def get_security_devices(self) -> FetchResult:
        ok, raw, error = await self._fetch("securitydevices", "securityDevices")
        return FetchResult(ok, [self._parse_security_device(d) for d in raw], error)

    def _parse_area(self, data: dict[str, Any]) -> Area:
        room_ids = data.get("roomIds") or data.get("rooms") or []
        return Area(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_ids={str(r) for r in room_ids},
        )

    def _parse_room(self, data: dict[str, Any]) -> Room:
        return Room(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            area_id=_optional_id(data.get("areaId")),
            area_name=data.get("areaName"),
        )

    def _parse_light(self, data: dict[str, Any]) -> Light:
        level = int(data.get("level", 0))
        return Light(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            level=level,
            is_on=level > 0,
            sub_type="switch" if str(data.get("subType", "")).lower() == "switch" else "dimmer",
        )

    def _parse_shade(self, data: dict[str, Any]) -> Shade:
        return Shade(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            position=int(data.get("position") or 0),
        )

    def _parse_thermostat(self, data: dict[str, Any]) -> Thermostat:
        # DeciFahrenheit: 730 -> 73
        divisor = 10 if data.get("temperatureUnits") == "DeciFahrenheit" else 1
        current = round(data.get("currentTemperature", 0) / divisor)

        heat = cool = None
        for set_point in data.get("currentSetPoint") or []:
            kind = str(set_point.get("type", "")).lower()
            temperature = set_point.get("temperature")
            if not temperature:
                continue
            if kind in ("heat", "auxheat") and heat is None:
                heat = round(temperature / divisor)
            elif kind == "cool" and cool is None:
                cool = round(temperature / divisor)

        return Thermostat(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            current_temp=current,
            heat_set_point=heat if heat is not None else current,
            cool_set_point=cool if cool is not None else current + 5,
            mode=_MODE_FROM_CRESTRON.get(data.get("currentMode", "Off"), ThermostatMode.OFF),
            fan_mode=_FAN_FROM_CRESTRON.get(data.get("currentFanMode") or "Auto", FanMode.AUTO),
            sub_type=data.get("subType"),
        )

    def _parse_media_room(self, data: dict[str, Any]) -> MediaRoom:
        providers = [
            MediaProvider(id=int(p.get("id", 0)), name=p.get("name", ""))
            for p in data.get("availableProviders") or []
        ]
        provider_id = data.get("currentProviderId")
        return MediaRoom(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            is_powered_on=str(data.get("currentPowerState", "Off")).lower() == "on",
            volume_percent=int(data.get("currentVolumeLevel", 0)),
            is_muted=str(data.get("currentMuteState", "Unmuted")).lower() == "muted",
            current_provider_id=int(provider_id) if provider_id is not None else None,
            available_providers=providers,
        )

    def _parse_scene(self, data: dict[str, Any]) -> Scene:
        return Scene(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
        )

    def _parse_door_lock(self, data: dict[str, Any]) -> DoorLock:
        locked = data.get("isLocked")
        if locked is None:
            locked = data.get("locked", True)
        return DoorLock(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            is_locked=bool(locked),
        )

    def _parse_sensor(self, data: dict[str, Any]) -> Sensor:
        return Sensor(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            sub_type=_SENSOR_SUBTYPES.get(data.get("subType", ""), "contact"),
            value=_SENSOR_PRESENCE.get(data.get("presence", ""), False),
        )

    def _parse_security_device(self, data: dict[str, Any]) -> SecurityDevice:
        return SecurityDevice(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            room_id=_optional_id(data.get("roomId")),
            state=data.get("currentState") or "Unknown",
        )

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    async def _post(
        self, path: str, device_id: str, payload: dict[str, Any] | None = None
    ) -> SetterResult:
        if not self._client:
            return SetterResult(success=False, device_id=device_id, message="Client not connected")

        try:
            response = await self._client.post(
                f"{API_PREFIX}/{path}", json=payload or {}, headers=self._headers()
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
            status = str(body.get("status", "success")).lower() if isinstance(body, dict) else ""
            if status == "failure":
                logger.warning("Crestron reported failure for %s on %s", path, device_id)
                return SetterResult(
                    success=False, device_id=device_id, message="Processor reported failure"
                )
            logger.debug("Setter %s on %s successful", path, device_id)
            return SetterResult(
                success=True,
                device_id=device_id,
                message="OK",
                response_data=body if isinstance(body, dict) else None,
            )
        except httpx.HTTPStatusError as e:
            logger.error("Setter %s failed with status %d", path, e.response.status_code)
            if e.response.status_code in (401, 403):
                self.invalidate_auth()
            return SetterResult(
                success=False, device_id=device_id, message=f"HTTP error: {e.response.status_code}"
            )
        except httpx.RequestError as e:
            logger.error("Setter %s failed (connection): %s", path, e)
            return SetterResult(success=False, device_id=device_id, message=f"Connection error: {e}")

    async def set_light(self, device_id: str, level: int, is_on: bool) -> SetterResult:
        effective = level if is_on else 0
        payload = {"lights": [{"id": _crestron_id(device_id), "level": effective, "time": 0}]}
        return await self._post("lights/SetState", device_id, payload)

    async def set_shade_position(self, device_id: str, position: int) -> SetterResult:
        payload = {"shades": [{"id": _crestron_id(device_id), "position": position}]}
        return await self._post("shades/SetState", device_id, payload)

    async def set_thermostat_set_point(
        self, device_id: str, heat: int | None = None, cool: int | None = None
    ) -> SetterResult:
        set_points = []
        if heat is not None:
            set_points.append({"type": "Heat", "temperature": heat * 10})
        if cool is not None:
            set_points.append({"type": "Cool", "temperature": cool * 10})
        payload = {"id": _crestron_id(device_id), "setpoints": set_points}
        return await self._post("thermostats/SetPoint", device_id, payload)

    async def set_thermostat_mode(self, device_id: str, mode: ThermostatMode) -> SetterResult:
        payload = {"thermostats": [{"id": _crestron_id(device_id), "mode": _MODE_TO_CRESTRON[mode]}]}
        return await self._post("thermostats/mode", device_id, payload)

    async def set_thermostat_fan_mode(self, device_id: str, fan_mode: FanMode) -> SetterResult:
        crestron_mode = "On" if fan_mode == FanMode.ON else "Auto"
        payload = {"thermostats": [{"id": _crestron_id(device_id), "mode": crestron_mode}]}
        return await self._post("thermostats/fanmode", device_id, payload)

    async def set_media_room_power(self, device_id: str, on: bool) -> SetterResult:
        state = "on" if on else "off"
        return await self._post(f"mediarooms/{device_id}/power/{state}", device_id)

    async def set_media_room_volume(self, device_id: str, volume_percent: int) -> SetterResult:
        return await self._post(f"mediarooms/{device_id}/volume/{volume_percent}", device_id)

    async def set_media_room_mute(self, device_id: str, muted: bool) -> SetterResult:
        action = "mute" if muted else "unmute"
        return await self._post(f"mediarooms/{device_id}/{action}", device_id)

    async def set_media_room_source(self, device_id: str, provider_id: int) -> SetterResult:
        return await self._post(f"mediarooms/{device_id}/selectsource/{provider_id}", device_id)

    async def recall_scene(self, device_id: str) -> SetterResult:
        return await self._post(f"scenes/recall/{device_id}", device_id)

    async def set_door_lock(self, device_id: str, locked: bool) -> SetterResult:
        action = "lock" if locked else "unlock"
        return await self._post(f"doorlocks/{action}/{device_id}", device_id)
