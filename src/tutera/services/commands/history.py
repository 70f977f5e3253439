"""Command history and undo snapshots.

Before a command mutates a device, the fields that command can change are
captured into a DeviceStateSnapshot. Snapshots are stored on the
ExecutedCommand and replayed once to undo it.

Captured fields per device type:
- light: level, is_on
- shade: position
- thermostat: mode, heat_set_point, cool_set_point, fan_mode
- mediaRoom: is_powered_on, volume_percent, is_muted, current_provider_id
- doorLock: is_locked
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tutera.services.crestron.models import (
    Device,
    DeviceType,
    DoorLock,
    Light,
    MediaRoom,
    Shade,
    Thermostat,
)

logger = logging.getLogger(__name__)

NO_UNDO_DATA = "No undo data available for this command."
NOTHING_TO_UNDO = "Nothing to undo."


@dataclass
class DeviceStateSnapshot:
    """Pre-mutation state of one device."""

    device_type: DeviceType
    device_id: str
    previous_state: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        state = {
            key: value.value if hasattr(value, "value") else value
            for key, value in self.previous_state.items()
        }
        return {"type": self.device_type.value, "id": self.device_id, "previous_state": state}


def capture_light_snapshot(light: Light) -> DeviceStateSnapshot:
    return DeviceStateSnapshot(
        DeviceType.LIGHT, light.id, {"level": light.level, "is_on": light.is_on}
    )


def capture_shade_snapshot(shade: Shade) -> DeviceStateSnapshot:
    return DeviceStateSnapshot(DeviceType.SHADE, shade.id, {"position": shade.position})


def capture_thermostat_snapshot(thermostat: Thermostat) -> DeviceStateSnapshot:
    return DeviceStateSnapshot(
        DeviceType.THERMOSTAT,
        thermostat.id,
        {
            "mode": thermostat.mode,
            "heat_set_point": thermostat.heat_set_point,
            "cool_set_point": thermostat.cool_set_point,
            "fan_mode": thermostat.fan_mode,
        },
    )


def capture_media_room_snapshot(media_room: MediaRoom) -> DeviceStateSnapshot:
    return DeviceStateSnapshot(
        DeviceType.MEDIA_ROOM,
        media_room.id,
        {
            "is_powered_on": media_room.is_powered_on,
            "volume_percent": media_room.volume_percent,
            "is_muted": media_room.is_muted,
            "current_provider_id": media_room.current_provider_id,
        },
    )


def capture_door_lock_snapshot(lock: DoorLock) -> DeviceStateSnapshot:
    return DeviceStateSnapshot(DeviceType.DOOR_LOCK, lock.id, {"is_locked": lock.is_locked})


def capture_snapshot(device: Device) -> DeviceStateSnapshot | None:
    """Capture the mutable fields of any device. Scenes, sensors and security devices have none."""
    if isinstance(device, Light):
        return capture_light_snapshot(device)
    if isinstance(device, Shade):
        return capture_shade_snapshot(device)
    if isinstance(device, Thermostat):
        return capture_thermostat_snapshot(device)
    if isinstance(device, MediaRoom):
        return capture_media_room_snapshot(device)
    if isinstance(device, DoorLock):
        return capture_door_lock_snapshot(device)
    return None


@dataclass
class DeviceResult:
    """Outcome of the setter call(s) for one device."""

    device_id: str
    device_name: str
    success: bool
    message: str = ""


@dataclass
class ExecutedCommand:
    """A command after execution, with what it changed and how to revert it."""

    input_text: str
    response_text: str
    action: str
    success: bool = True
    matched_device_ids: list[str] = field(default_factory=list)
    changed_device_ids: list[str] = field(default_factory=list)
    snapshots: list[DeviceStateSnapshot] = field(default_factory=list)
    results: list[DeviceResult] = field(default_factory=list)
    undoable: bool = True
    undone: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def failed_device_ids(self) -> list[str]:
        return [r.device_id for r in self.results if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def can_undo(self) -> bool:
        return self.undoable and not self.undone and bool(self.snapshots)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "input_text": self.input_text,
            "response_text": self.response_text,
            "action": self.action,
            "success": self.success,
            "all_succeeded": self.all_succeeded,
            "matched_device_ids": self.matched_device_ids,
            "changed_device_ids": self.changed_device_ids,
            "failed_device_ids": self.failed_device_ids,
            "snapshots": [s.to_dict() for s in self.snapshots],
            "undoable": self.undoable,
            "undone": self.undone,
            "can_undo": self.can_undo,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UndoResult:
    """Outcome of an undo request."""

    success: bool
    message: str
    command_id: str
    restored_device_ids: list[str] = field(default_factory=list)
    failed_device_ids: list[str] = field(default_factory=list)


class CommandHistory:
    """Bounded, newest-last window of executed commands.

    The oldest command is evicted once max_commands is reached; its
    snapshots go with it.
    """

    def __init__(self, max_commands: int = 50) -> None:
        self._commands: deque[ExecutedCommand] = deque(maxlen=max_commands)

    @property
    def max_commands(self) -> int:
        return self._commands.maxlen or 0

    def __len__(self) -> int:
        return len(self._commands)

    def record(self, command: ExecutedCommand) -> ExecutedCommand:
        if len(self._commands) == self.max_commands:
            logger.debug("History full, evicting command %s", self._commands[0].id)
        self._commands.append(command)
        return command

    def get(self, command_id: str) -> ExecutedCommand | None:
        for command in self._commands:
            if command.id == command_id:
                return command
        return None

    def recent(self, limit: int | None = None) -> list[ExecutedCommand]:
        """Commands newest first."""
        commands = list(reversed(self._commands))
        return commands[:limit] if limit else commands

    def clear(self) -> None:
        self._commands.clear()
