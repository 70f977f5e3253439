"""Tests for the Crestron Home REST client.

Tests cover:
- Login and auth refresh
- Collection parsing (DeciFahrenheit, light levels, media providers)
- Setter payloads and failure reporting
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tutera.exceptions import CrestronAuthenticationError
from tutera.services.crestron.client import AUTH_KEY_HEADER, AUTH_TOKEN_HEADER, CrestronClient
from tutera.services.crestron.models import FanMode, ThermostatMode


def _response(status_code: int = 200, json_data=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    response.content = b"{}"
    response.raise_for_status = MagicMock()
    return response


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    return httpx.HTTPStatusError(
        "error", request=MagicMock(), response=MagicMock(status_code=status_code)
    )


@pytest.fixture
def client() -> CrestronClient:
    """Create a CrestronClient instance."""
    return CrestronClient(url="https://crestron.local/", auth_token="token-123")


@pytest.fixture
def mock_http(client: CrestronClient) -> AsyncMock:
    """Attach a mock httpx.AsyncClient holding a session key."""
    mock = AsyncMock()
    mock.get = AsyncMock()
    mock.post = AsyncMock(return_value=_response(json_data={"status": "success"}))
    mock.aclose = AsyncMock()
    client._client = mock
    client._auth_key = "key-abc"
    return mock


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    """Tests for login and refresh."""

    def test_url_is_normalized(self, client: CrestronClient) -> None:
        assert client.url == "https://crestron.local"
        assert client.authenticated is False

    async def test_login_stores_auth_key(self, client: CrestronClient) -> None:
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=_response(json_data={"authkey": "key-xyz"}))
        client._client = mock

        assert await client.login() == "key-xyz"

        assert client.authenticated is True
        _, kwargs = mock.get.call_args
        assert kwargs["headers"] == {AUTH_TOKEN_HEADER: "token-123"}

    async def test_login_rejected(self, client: CrestronClient) -> None:
        client._client = AsyncMock(get=AsyncMock(return_value=_response(401)))

        with pytest.raises(CrestronAuthenticationError, match="rejected"):
            await client.login()

    async def test_login_without_token(self) -> None:
        client = CrestronClient(url="https://crestron.local", auth_token=None)
        client._client = AsyncMock()

        with pytest.raises(CrestronAuthenticationError, match="No auth token"):
            await client.login()

    async def test_refresh_failure_returns_false(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(403)

        assert await client.refresh_auth() is False
        assert client.authenticated is False

    async def test_refresh_success(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(json_data={"authKey": "key-new"})

        assert await client.refresh_auth() is True
        assert client._auth_key == "key-new"

    async def test_close(self, client: CrestronClient, mock_http) -> None:
        await client.close()

        mock_http.aclose.assert_awaited_once()
        assert client._client is None


# =============================================================================
# Reads
# =============================================================================


class TestReads:
    """Tests for collection fetches and parsing."""

    async def test_thermostat_deci_fahrenheit(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(
            json_data={
                "thermostats": [
                    {
                        "id": 5,
                        "name": "Kitchen Thermostat",
                        "roomId": 2,
                        "currentTemperature": 730,
                        "temperatureUnits": "DeciFahrenheit",
                        "currentSetPoint": [
                            {"type": "Heat", "temperature": 680},
                            {"type": "Cool", "temperature": 740},
                        ],
                        "currentMode": "Cool",
                        "currentFanMode": "On",
                    }
                ]
            }
        )

        result = await client.get_thermostats()

        assert result.success is True
        (thermostat,) = result.data
        assert thermostat.id == "5"
        assert thermostat.room_id == "2"
        assert thermostat.current_temp == 73
        assert thermostat.heat_set_point == 68
        assert thermostat.cool_set_point == 74
        assert thermostat.mode == ThermostatMode.COOL
        assert thermostat.fan_mode == FanMode.ON

    async def test_lights(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(
            json_data={"lights": [{"id": 1, "name": "Pendant", "roomId": 3, "level": 32768}]}
        )

        (light,) = (await client.get_lights()).data

        assert light.is_on is True
        assert light.brightness_percent == 50
        _, kwargs = mock_http.get.call_args
        assert kwargs["headers"] == {AUTH_KEY_HEADER: "key-abc"}

    async def test_media_rooms(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(
            json_data={
                "mediaRooms": [
                    {
                        "id": 7,
                        "name": "Den",
                        "currentPowerState": "On",
                        "currentVolumeLevel": 35,
                        "currentMuteState": "Muted",
                        "currentProviderId": 2,
                        "availableProviders": [{"id": 2, "name": "Sonos"}],
                    }
                ]
            }
        )

        (room,) = (await client.get_media_rooms()).data

        assert room.is_powered_on is True
        assert room.is_muted is True
        assert room.volume_percent == 35
        assert room.current_source_name == "Sonos"
        assert room.room_id is None

    async def test_shades(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(
            json_data={"shades": [{"id": 4, "name": "Den Shade", "roomId": 3, "position": 65535}]}
        )

        (shade,) = (await client.get_shades()).data

        assert shade.id == "4"
        assert shade.room_id == "3"
        assert shade.position_percent == 100
        args, _ = mock_http.get.call_args
        assert args[0] == "/cws/api/shades"

    async def test_security_devices(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(
            json_data={"securityDevices": [{"id": 1, "name": "Alarm", "currentState": "ArmStay"}]}
        )

        (device,) = (await client.get_security_devices()).data

        assert device.state == "ArmStay"
        assert device.room_id is None
        args, _ = mock_http.get.call_args
        assert args[0] == "/cws/api/securitydevices"

    async def test_unauthorized_fetch(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.return_value = _response(401)

        result = await client.get_lights()

        assert result.success is False
        assert result.data == []
        assert result.error == "Unauthorized (401)"

    async def test_http_error(self, client: CrestronClient, mock_http) -> None:
        response = _response(500)
        response.raise_for_status.side_effect = _status_error(500)
        mock_http.get.return_value = response

        result = await client.get_scenes()

        assert result.success is False
        assert result.error == "HTTP error: 500"

    async def test_connection_error(self, client: CrestronClient, mock_http) -> None:
        mock_http.get.side_effect = httpx.ConnectError("refused")

        result = await client.get_door_locks()

        assert result.success is False
        assert result.error.startswith("Connection error")

    async def test_fetch_without_client(self, client: CrestronClient) -> None:
        result = await client.get_areas()
        assert result.error == "Client not connected"


# =============================================================================
# Setters
# =============================================================================


class TestSetters:
    """Tests for setter payloads and results."""

    async def test_set_light(self, client: CrestronClient, mock_http) -> None:
        result = await client.set_light("1042", level=65535, is_on=True)

        assert result.success is True
        mock_http.post.assert_awaited_once_with(
            "/cws/api/lights/SetState",
            json={"lights": [{"id": 1042, "level": 65535, "time": 0}]},
            headers={AUTH_KEY_HEADER: "key-abc"},
        )

    async def test_set_light_off_sends_zero(self, client: CrestronClient, mock_http) -> None:
        await client.set_light("1042", level=40000, is_on=False)

        _, kwargs = mock_http.post.call_args
        assert kwargs["json"]["lights"][0]["level"] == 0

    async def test_set_point_is_deci_fahrenheit(self, client: CrestronClient, mock_http) -> None:
        await client.set_thermostat_set_point("5", heat=70)

        args, kwargs = mock_http.post.call_args
        assert args[0] == "/cws/api/thermostats/SetPoint"
        assert kwargs["json"] == {"id": 5, "setpoints": [{"type": "Heat", "temperature": 700}]}

    async def test_set_shade_position(self, client: CrestronClient, mock_http) -> None:
        await client.set_shade_position("4", 32768)

        args, kwargs = mock_http.post.call_args
        assert args[0] == "/cws/api/shades/SetState"
        assert kwargs["json"] == {"shades": [{"id": 4, "position": 32768}]}

    async def test_set_mode(self, client: CrestronClient, mock_http) -> None:
        await client.set_thermostat_mode("5", ThermostatMode.AUTO)

        _, kwargs = mock_http.post.call_args
        assert kwargs["json"] == {"thermostats": [{"id": 5, "mode": "Auto"}]}

    @pytest.mark.parametrize(
        ("call", "path"),
        [
            (lambda c: c.set_media_room_power("7", True), "/cws/api/mediarooms/7/power/on"),
            (lambda c: c.set_media_room_volume("7", 40), "/cws/api/mediarooms/7/volume/40"),
            (lambda c: c.set_media_room_mute("7", False), "/cws/api/mediarooms/7/unmute"),
            (
                lambda c: c.set_media_room_source("7", 2),
                "/cws/api/mediarooms/7/selectsource/2",
            ),
            (lambda c: c.recall_scene("9"), "/cws/api/scenes/recall/9"),
            (lambda c: c.set_door_lock("3", True), "/cws/api/doorlocks/lock/3"),
        ],
    )
    async def test_paths(self, client: CrestronClient, mock_http, call, path: str) -> None:
        await call(client)

        args, _ = mock_http.post.call_args
        assert args[0] == path

    async def test_processor_reported_failure(self, client: CrestronClient, mock_http) -> None:
        mock_http.post.return_value = _response(json_data={"status": "failure"})

        result = await client.recall_scene("9")

        assert result.success is False
        assert result.message == "Processor reported failure"

    async def test_unauthorized_setter_drops_session(
        self, client: CrestronClient, mock_http
    ) -> None:
        response = _response(401)
        response.raise_for_status.side_effect = _status_error(401)
        mock_http.post.return_value = response

        result = await client.set_door_lock("3", False)

        assert result.success is False
        assert result.message == "HTTP error: 401"
        assert client.authenticated is False

    async def test_setter_without_client(self, client: CrestronClient) -> None:
        result = await client.set_light("1", 0, False)
        assert result.success is False
