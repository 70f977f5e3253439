"""Structured command intents.

Intents arrive already parsed: an action verb, target hints, and the
parameters that action needs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tutera.exceptions import InvalidIntentError
from tutera.services.crestron.matcher import MatchHints
from tutera.services.crestron.models import FanMode, ThermostatMode


class ActionFamily(str, Enum):
    """Device family an action applies to."""

    LIGHT = "light"
    SHADE = "shade"
    CLIMATE = "climate"
    MEDIA = "media"
    SCENE = "scene"
    LOCK = "lock"
    STATUS = "status"


class Action(str, Enum):
    """Action verbs understood by the executor."""

    # Lights
    ON = "on"
    OFF = "off"
    SET_BRIGHTNESS = "set_brightness"

    # Shades
    OPEN = "open"
    CLOSE = "close"
    SET_POSITION = "set_position"

    # Climate
    SET_TEMPERATURE = "set_temperature"
    SET_MODE = "set_mode"
    SET_FAN_MODE = "set_fan_mode"

    # Media
    POWER_ON = "power_on"
    POWER_OFF = "power_off"
    SET_VOLUME = "set_volume"
    MUTE = "mute"
    UNMUTE = "unmute"
    SELECT_SOURCE = "select_source"

    # Scenes
    RECALL = "recall"

    # Locks
    LOCK = "lock"
    UNLOCK = "unlock"

    # Read-only
    STATUS = "status"


ACTION_FAMILIES: dict[Action, ActionFamily] = {
    Action.ON: ActionFamily.LIGHT,
    Action.OFF: ActionFamily.LIGHT,
    Action.SET_BRIGHTNESS: ActionFamily.LIGHT,
    Action.OPEN: ActionFamily.SHADE,
    Action.CLOSE: ActionFamily.SHADE,
    Action.SET_POSITION: ActionFamily.SHADE,
    Action.SET_TEMPERATURE: ActionFamily.CLIMATE,
    Action.SET_MODE: ActionFamily.CLIMATE,
    Action.SET_FAN_MODE: ActionFamily.CLIMATE,
    Action.POWER_ON: ActionFamily.MEDIA,
    Action.POWER_OFF: ActionFamily.MEDIA,
    Action.SET_VOLUME: ActionFamily.MEDIA,
    Action.MUTE: ActionFamily.MEDIA,
    Action.UNMUTE: ActionFamily.MEDIA,
    Action.SELECT_SOURCE: ActionFamily.MEDIA,
    Action.RECALL: ActionFamily.SCENE,
    Action.LOCK: ActionFamily.LOCK,
    Action.UNLOCK: ActionFamily.LOCK,
    Action.STATUS: ActionFamily.STATUS,
}

# Parameter each action cannot run without
REQUIRED_PARAMETERS: dict[Action, str] = {
    Action.SET_BRIGHTNESS: "brightness",
    Action.SET_POSITION: "position",
    Action.SET_TEMPERATURE: "temperature",
    Action.SET_MODE: "mode",
    Action.SET_FAN_MODE: "fan_mode",
    Action.SET_VOLUME: "volume",
    Action.SELECT_SOURCE: "source",
    Action.RECALL: "scene_name",
}

STATUS_DEVICE_TYPES = ("lights", "climate", "media", "all")


@dataclass
class CommandIntent:
    """A structured user command."""

    action: Action
    area: str | None = None
    room: str | None = None
    device_name: str | None = None
    brightness: int | None = None
    position: int | None = None
    temperature: int | None = None
    mode: ThermostatMode | None = None
    fan_mode: FanMode | None = None
    volume: int | None = None
    source: str | None = None
    scene_name: str | None = None
    device_type: str = "all"
    text: str = ""

    def __post_init__(self) -> None:
        self.action = Action(self.action)
        if self.mode is not None:
            self.mode = ThermostatMode(self.mode)
        if self.fan_mode is not None:
            self.fan_mode = FanMode(self.fan_mode)
        self.validate()

    def validate(self) -> None:
        """Check required parameters and ranges.

        Raises:
            InvalidIntentError: If the intent cannot be executed as given.
        """
        required = REQUIRED_PARAMETERS.get(self.action)
        if required and getattr(self, required) in (None, ""):
            raise InvalidIntentError(f"Action '{self.action.value}' requires '{required}'")
        if self.brightness is not None and not 0 <= self.brightness <= 100:
            raise InvalidIntentError("brightness must be between 0 and 100")
        if self.position is not None and not 0 <= self.position <= 100:
            raise InvalidIntentError("position must be between 0 and 100")
        if self.volume is not None and not 0 <= self.volume <= 100:
            raise InvalidIntentError("volume must be between 0 and 100")
        if self.device_type not in STATUS_DEVICE_TYPES:
            raise InvalidIntentError(
                f"device_type must be one of: {', '.join(STATUS_DEVICE_TYPES)}"
            )

    @property
    def family(self) -> ActionFamily:
        return ACTION_FAMILIES[self.action]

    @property
    def hints(self) -> MatchHints:
        return MatchHints(area=self.area, room=self.room, device_name=self.device_name)

    @property
    def target_description(self) -> str:
        """Human phrase for where the command is aimed."""
        return self.room or self.area or "the whole house"
