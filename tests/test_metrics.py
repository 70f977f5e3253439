"""Tests for Prometheus metrics."""

from __future__ import annotations

from tutera.services.metrics import (
    REGISTRY,
    get_metrics,
    init_metrics,
    record_auth_refresh,
    record_command,
    record_floor_heat_shutoff,
    record_poll,
    record_setter_call,
    record_undo,
    update_cached_devices,
)


def _value(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestCommandMetrics:
    """Tests for command and undo counters."""

    def test_record_command_success(self):
        """Successful commands are labelled success."""
        labels = {"family": "light", "action": "on", "status": "success"}
        before = _value("tutera_commands_total", labels)

        record_command("light", "on", success=True)

        assert _value("tutera_commands_total", labels) == before + 1

    def test_record_command_failure(self):
        labels = {"family": "climate", "action": "set_mode", "status": "error"}
        before = _value("tutera_commands_total", labels)

        record_command("climate", "set_mode", success=False)

        assert _value("tutera_commands_total", labels) == before + 1

    def test_record_undo(self):
        before = _value("tutera_undo_total", {"status": "restored"})
        record_undo("restored")
        assert _value("tutera_undo_total", {"status": "restored"}) == before + 1

    def test_record_setter_call(self):
        labels = {"device_type": "light", "status": "error"}
        before = _value("tutera_setter_calls_total", labels)
        record_setter_call("light", success=False)
        assert _value("tutera_setter_calls_total", labels) == before + 1


class TestReconciliationMetrics:
    """Tests for poll and auth metrics."""

    def test_record_poll(self):
        before = _value("tutera_polls_total", {"outcome": "skipped"})
        record_poll("skipped")
        assert _value("tutera_polls_total", {"outcome": "skipped"}) == before + 1

    def test_record_auth_refresh(self):
        before = _value("tutera_auth_refresh_total", {"status": "success"})
        record_auth_refresh(True)
        assert _value("tutera_auth_refresh_total", {"status": "success"}) == before + 1

    def test_floor_heat_shutoff(self):
        before = _value("tutera_floor_heat_shutoffs_total")
        record_floor_heat_shutoff()
        assert _value("tutera_floor_heat_shutoffs_total") == before + 1

    def test_cached_devices_gauge(self):
        update_cached_devices({"lights": 12, "thermostats": 3})
        assert _value("tutera_cached_devices", {"collection": "lights"}) == 12


class TestExposition:
    """Tests for the text output."""

    def test_info_and_counters_present(self):
        init_metrics(version="0.1.0", env="development")
        record_command("scene", "recall", success=True)

        content = get_metrics().decode()

        assert "tutera_info" in content
        assert 'tutera_commands_total{family="scene",action="recall",status="success"}' in content
