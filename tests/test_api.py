"""Tests for the HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tutera.main import create_app
from tutera.services.crestron.client import FetchResult
from tutera.services.session import ControlSession

from .conftest import FakeAuth, FakeController, sample_house


@pytest.fixture
def control_session() -> ControlSession:
    """Session whose cache already holds the sample house."""
    controller = FakeController(sample_house())
    session = ControlSession(controller, FakeAuth())
    fetched = {name: FetchResult(True, data) for name, data in sample_house().items()}
    session.cache.apply_poll(fetched)
    return session


@pytest.fixture
def client(control_session: ControlSession) -> TestClient:
    """Create test client with the session installed."""
    app = create_app()
    app.state.session = control_session
    return TestClient(app)


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    """Tests for health endpoints."""

    def test_healthy(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["devices"]["lights"] == 7

    def test_degraded_on_poll_error(
        self, client: TestClient, control_session: ControlSession
    ) -> None:
        control_session.cache.error = "Session expired. Please log in again."

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["error"] == "Session expired. Please log in again."

    def test_unhealthy_without_session(self) -> None:
        client = TestClient(create_app())

        assert client.get("/health").json()["status"] == "unhealthy"
        assert client.get("/api/devices").status_code == 503

    def test_liveness(self, client: TestClient) -> None:
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_timing_header(self, client: TestClient) -> None:
        assert "X-Process-Time-Ms" in client.get("/health/live").headers


# =============================================================================
# Commands
# =============================================================================


class TestCommands:
    """Tests for command submission, history and undo."""

    def test_submit_command(self, client: TestClient) -> None:
        response = client.post(
            "/api/commands", json={"action": "set_brightness", "room": "Kitchen", "brightness": 50}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["response_text"] == "Set 1 lights in Kitchen to 50% brightness."
        assert data["changed_device_ids"] == ["l1"]
        assert data["can_undo"] is True
        assert data["snapshots"][0]["previous_state"] == {"level": 0, "is_on": False}

    def test_missing_parameter_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/commands", json={"action": "set_brightness", "room": "Kitchen"})
        assert response.status_code == 422

    def test_out_of_range_brightness_is_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/commands", json={"action": "set_brightness", "brightness": 101}
        )
        assert response.status_code == 422

    def test_shade_command(self, client: TestClient) -> None:
        response = client.post(
            "/api/commands", json={"action": "set_position", "room": "Kitchen", "position": 25}
        )

        assert response.status_code == 200
        assert response.json()["response_text"] == "Set Kitchen Shade to 25% open."

    def test_out_of_range_position_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/commands", json={"action": "set_position", "position": 101})
        assert response.status_code == 422

    def test_unknown_action_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/commands", json={"action": "explode"})
        assert response.status_code == 422

    def test_history_newest_first(self, client: TestClient) -> None:
        client.post("/api/commands", json={"action": "on", "room": "Office"})
        client.post("/api/commands", json={"action": "off", "room": "Office"})

        data = client.get("/api/commands").json()

        assert data["total"] == 2
        assert data["max_commands"] == 50
        assert [c["action"] for c in data["commands"]] == ["off", "on"]

    def test_get_command(self, client: TestClient) -> None:
        command_id = client.post("/api/commands", json={"action": "lock"}).json()["id"]

        assert client.get(f"/api/commands/{command_id}").json()["id"] == command_id

    def test_get_unknown_command(self, client: TestClient) -> None:
        response = client.get("/api/commands/nope")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNKNOWN_COMMAND"

    def test_undo_round_trip(self, client: TestClient, control_session: ControlSession) -> None:
        command_id = client.post(
            "/api/commands", json={"action": "off", "room": "Living Room"}
        ).json()["id"]

        first = client.post(f"/api/commands/{command_id}/undo").json()
        second = client.post(f"/api/commands/{command_id}/undo").json()

        assert first["success"] is True
        assert first["message"] == "Undone successfully."
        assert second["message"] == "Nothing to undo."
        assert control_session.cache.get_light("l4").level == 65535

    def test_undo_unknown_command(self, client: TestClient) -> None:
        response = client.post("/api/commands/nope/undo")

        assert response.status_code == 200
        assert response.json()["message"] == "No undo data available for this command."


# =============================================================================
# Devices
# =============================================================================


class TestDevices:
    """Tests for device, topology and poll endpoints."""

    def test_devices(self, client: TestClient) -> None:
        data = client.get("/api/devices").json()

        assert len(data["lights"]) == 7
        assert data["thermostats"][0]["mode"] == "cool"
        assert data["lights"][0]["type"] == "light"
        assert data["areas"][0]["room_ids"] == ["r1", "r2"]
        assert data["shades"][1]["position"] == 65535
        assert data["security_devices"][0]["state"] == "Disarmed"

    def test_topology(self, client: TestClient) -> None:
        areas = {a["id"]: a for a in client.get("/api/topology").json()["areas"]}

        assert set(areas) == {"a1", "a2", "unassigned"}
        kitchen = next(r for r in areas["a1"]["rooms"] if r["id"] == "r1")
        assert {d["id"] for d in kitchen["devices"]} >= {"l1", "l2", "l3", "t1", "t2"}

    def test_thermostat_pairs(self, client: TestClient) -> None:
        pairs = client.get("/api/thermostats/pairs").json()["pairs"]

        kitchen = next(p for p in pairs if p["room_id"] == "r1")
        assert kitchen["main"]["id"] == "t1"
        assert kitchen["floor_heat"]["id"] == "t2"
        assert kitchen["satisfied"] is True

    def test_manual_poll(self, client: TestClient) -> None:
        data = client.post("/api/poll").json()

        assert data["success"] is True
        assert data["counts"]["lights"] == 7


def test_metrics_endpoint(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "tutera_commands_total" in response.text
