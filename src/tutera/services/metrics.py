"""Prometheus metrics for Tutera.

Exposes metrics for dashboards:
- Command and undo counts
- Per-device setter outcomes
- Poll cycles and auth refreshes
- Cache size
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Info, generate_latest
from prometheus_client.core import CollectorRegistry

# =============================================================================
# Custom Registry (avoids conflicts in tests)
# =============================================================================

REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# Application Metrics
# =============================================================================

tutera_info = Info(
    "tutera",
    "Tutera version and environment info",
    registry=REGISTRY,
)

# =============================================================================
# Command Metrics
# =============================================================================

commands_total = Counter(
    "tutera_commands_total",
    "Total commands executed",
    ["family", "action", "status"],
    registry=REGISTRY,
)

undo_total = Counter(
    "tutera_undo_total",
    "Total undo requests",
    ["status"],  # restored/partial/no_data/nothing_to_undo
    registry=REGISTRY,
)

setter_calls_total = Counter(
    "tutera_setter_calls_total",
    "Total remote setter calls",
    ["device_type", "status"],
    registry=REGISTRY,
)

# =============================================================================
# Reconciliation Metrics
# =============================================================================

polls_total = Counter(
    "tutera_polls_total",
    "Total poll cycles",
    ["outcome"],  # success/skipped/error/auth_expired
    registry=REGISTRY,
)

auth_refresh_total = Counter(
    "tutera_auth_refresh_total",
    "Total auth refresh attempts",
    ["status"],
    registry=REGISTRY,
)

cached_devices = Gauge(
    "tutera_cached_devices",
    "Devices held in the cache",
    ["collection"],
    registry=REGISTRY,
)

floor_heat_shutoffs_total = Counter(
    "tutera_floor_heat_shutoffs_total",
    "Floor heat turned off because the room reached its setpoint",
    registry=REGISTRY,
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_command(family: str, action: str, success: bool) -> None:
    """Record metrics for an executed command."""
    status = "success" if success else "error"
    commands_total.labels(family=family, action=action, status=status).inc()


def record_undo(status: str) -> None:
    """Record metrics for an undo request."""
    undo_total.labels(status=status).inc()


def record_setter_call(device_type: str, success: bool) -> None:
    """Record metrics for a remote setter call."""
    status = "success" if success else "error"
    setter_calls_total.labels(device_type=device_type, status=status).inc()


def record_poll(outcome: str) -> None:
    """Record a poll cycle outcome."""
    polls_total.labels(outcome=outcome).inc()


def record_auth_refresh(success: bool) -> None:
    """Record an auth refresh attempt."""
    status = "success" if success else "error"
    auth_refresh_total.labels(status=status).inc()


def record_floor_heat_shutoff() -> None:
    floor_heat_shutoffs_total.inc()


def update_cached_devices(counts: dict[str, int]) -> None:
    """Update cache size gauges."""
    for collection, count in counts.items():
        cached_devices.labels(collection=collection).set(count)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def init_metrics(version: str, env: str) -> None:
    """Initialize static metrics."""
    tutera_info.info({"version": version, "environment": env})
