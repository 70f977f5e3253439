"""Pydantic models for Tutera API requests and responses."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from tutera.services.commands.history import ExecutedCommand, UndoResult
from tutera.services.commands.intents import REQUIRED_PARAMETERS, Action, CommandIntent
from tutera.services.crestron.models import (
    Area,
    Device,
    FanMode,
    Thermostat,
    ThermostatMode,
    ThermostatPair,
    is_temperature_satisfied,
)

# =============================================================================
# Health & Status
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="healthy, degraded, or unhealthy")
    version: str
    timestamp: datetime = Field(default_factory=datetime.now)
    last_poll: datetime | None = None
    error: str | None = None
    devices: dict[str, int] = Field(default_factory=dict)


# =============================================================================
# Commands
# =============================================================================


class CommandRequest(BaseModel):
    """Structured command submitted by the presentation layer."""

    action: Action
    area: str | None = None
    room: str | None = None
    device_name: str | None = None
    brightness: int | None = Field(default=None, ge=0, le=100)
    position: int | None = Field(default=None, ge=0, le=100, description="Percent open")
    temperature: int | None = Field(default=None, description="Degrees Fahrenheit")
    mode: ThermostatMode | None = None
    fan_mode: FanMode | None = None
    volume: int | None = Field(default=None, ge=0, le=100)
    source: str | None = None
    scene_name: str | None = None
    device_type: Literal["lights", "climate", "media", "all"] = "all"
    text: str = Field(default="", description="Original user phrasing, for history")

    @model_validator(mode="after")
    def check_required_parameter(self) -> CommandRequest:
        """Reject actions missing the parameter they need."""
        required = REQUIRED_PARAMETERS.get(self.action)
        if required and getattr(self, required) in (None, ""):
            raise ValueError(f"Action '{self.action.value}' requires '{required}'")
        return self

    def to_intent(self) -> CommandIntent:
        return CommandIntent(**self.model_dump())


class DeviceResultSummary(BaseModel):
    device_id: str
    device_name: str
    success: bool
    message: str = ""


class SnapshotSummary(BaseModel):
    type: str
    id: str
    previous_state: dict[str, Any]


class CommandResponse(BaseModel):
    """An executed command."""

    id: str
    input_text: str
    response_text: str
    action: str
    success: bool
    all_succeeded: bool
    matched_device_ids: list[str]
    changed_device_ids: list[str]
    failed_device_ids: list[str]
    results: list[DeviceResultSummary] = Field(default_factory=list)
    snapshots: list[SnapshotSummary] = Field(default_factory=list)
    undoable: bool
    undone: bool
    can_undo: bool
    timestamp: datetime

    @classmethod
    def from_command(cls, command: ExecutedCommand) -> CommandResponse:
        data = command.to_dict()
        data["results"] = [asdict(r) for r in command.results]
        return cls(**data)


class CommandHistoryResponse(BaseModel):
    commands: list[CommandResponse]
    total: int
    max_commands: int


class UndoResponse(BaseModel):
    """Outcome of an undo request."""

    success: bool
    message: str
    command_id: str
    restored_device_ids: list[str] = Field(default_factory=list)
    failed_device_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: UndoResult) -> UndoResponse:
        return cls(**asdict(result))


# =============================================================================
# Devices & Topology
# =============================================================================


def device_to_dict(device: Device) -> dict[str, Any]:
    """Serialize any cached device, tagged with its type."""
    data = asdict(device)
    data["type"] = device.type.value
    for key, value in data.items():
        if hasattr(value, "value"):
            data[key] = value.value
    return data


def area_to_dict(area: Area) -> dict[str, Any]:
    return {"id": area.id, "name": area.name, "room_ids": sorted(area.room_ids)}


class PollResponse(BaseModel):
    success: bool
    error: str | None = None
    last_updated: datetime | None = None
    counts: dict[str, Any] = Field(default_factory=dict)


class DevicesResponse(BaseModel):
    """Every cached collection."""

    areas: list[dict[str, Any]]
    rooms: list[dict[str, Any]]
    lights: list[dict[str, Any]]
    shades: list[dict[str, Any]]
    thermostats: list[dict[str, Any]]
    media_rooms: list[dict[str, Any]]
    scenes: list[dict[str, Any]]
    door_locks: list[dict[str, Any]]
    sensors: list[dict[str, Any]]
    security_devices: list[dict[str, Any]]
    last_updated: datetime | None = None
    error: str | None = None


class RoomNodeSummary(BaseModel):
    id: str
    name: str
    devices: list[dict[str, Any]] = Field(default_factory=list)


class AreaNodeSummary(BaseModel):
    id: str
    name: str
    rooms: list[RoomNodeSummary] = Field(default_factory=list)


class TopologyResponse(BaseModel):
    areas: list[AreaNodeSummary]


class ThermostatSummary(BaseModel):
    id: str
    name: str
    current_temp: int
    heat_set_point: int
    cool_set_point: int
    mode: ThermostatMode
    fan_mode: FanMode

    @classmethod
    def from_thermostat(cls, t: Thermostat) -> ThermostatSummary:
        return cls(
            id=t.id,
            name=t.name,
            current_temp=t.current_temp,
            heat_set_point=t.heat_set_point,
            cool_set_point=t.cool_set_point,
            mode=t.mode,
            fan_mode=t.fan_mode,
        )


class ThermostatPairSummary(BaseModel):
    room_id: str
    room_name: str
    main: ThermostatSummary
    floor_heat: ThermostatSummary | None = None
    satisfied: bool

    @classmethod
    def from_pair(cls, pair: ThermostatPair) -> ThermostatPairSummary:
        return cls(
            room_id=pair.room_id,
            room_name=pair.room_name,
            main=ThermostatSummary.from_thermostat(pair.main),
            floor_heat=ThermostatSummary.from_thermostat(pair.floor_heat)
            if pair.floor_heat
            else None,
            satisfied=is_temperature_satisfied(pair.main),
        )


class ThermostatPairsResponse(BaseModel):
    pairs: list[ThermostatPairSummary]


# =============================================================================
# Errors
# =============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional details")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail
    timestamp: datetime = Field(default_factory=datetime.now)
