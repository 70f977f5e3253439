"""Deterministic command responses.

Phrasing rules:
- Singular ("Turned on Kitchen Pendant.") when exactly one device matched and
  it changed
- Counts otherwise ("Turned on 2 of 3 lights in Kitchen.")
- An explicit "couldn't find" when nothing matched
- Numeric parameters are echoed as given
"""

from __future__ import annotations

from collections.abc import Sequence

from tutera.services.commands.intents import Action, CommandIntent
from tutera.services.crestron.matcher import DeviceMatcher
from tutera.services.crestron.models import (
    DoorLock,
    Light,
    MediaRoom,
    Scene,
    Shade,
    Thermostat,
    ThermostatMode,
)

# Max individual lights listed in a status report
STATUS_LIGHT_LIMIT = 10


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _single(matched: Sequence[object], changed: Sequence[object]) -> bool:
    return len(matched) == 1 and len(changed) == 1


def generate_light_response(
    intent: CommandIntent, matched: Sequence[Light], changed: Sequence[Light]
) -> str:
    """Describe a light command."""
    if intent.device_name and intent.room:
        target = f"{intent.device_name} in {intent.room}"
    else:
        target = intent.device_name or intent.target_description

    if not matched:
        return f'I couldn\'t find any lights matching "{intent.device_name or target}".'

    total = len(matched)
    count = len(changed)

    if _single(matched, changed):
        name = changed[0].name
        if intent.action == Action.ON:
            return f"Turned on {name}."
        if intent.action == Action.OFF:
            return f"Turned off {name}."
        return f"Set {name} to {intent.brightness}%."

    if intent.action == Action.ON:
        if count == 0:
            return f"All {total} lights in {target} were already on."
        return f"Turned on {count} of {total} lights in {target}."
    if intent.action == Action.OFF:
        if count == 0:
            return f"All {total} lights in {target} were already off."
        return f"Turned off {count} of {total} lights in {target}."
    return f"Set {count} lights in {target} to {intent.brightness}% brightness."


def generate_climate_response(
    intent: CommandIntent, matched: Sequence[Thermostat], changed: Sequence[Thermostat]
) -> str:
    """Describe a climate command."""
    target = intent.target_description
    if not matched:
        return f"I couldn't find any thermostats in {target}."

    total = len(matched)

    if intent.action == Action.SET_TEMPERATURE:
        mode_suffix = f" in {intent.mode.value} mode" if intent.mode else ""
        if _single(matched, changed):
            return f"Set {changed[0].name} to {intent.temperature}°F{mode_suffix}."
        if not changed:
            return (
                f"All {total} thermostats in {target} were already set to "
                f"{intent.temperature}°F{mode_suffix}."
            )
        return (
            f"Set {_plural(len(changed), 'thermostat')} in {target} "
            f"to {intent.temperature}°F{mode_suffix}."
        )

    if intent.action == Action.SET_MODE:
        mode = intent.mode.value if intent.mode else ""
        if _single(matched, changed):
            return f"Set {changed[0].name} to {mode} mode."
        if not changed:
            return f"All {total} thermostats in {target} were already in {mode} mode."
        return f"Set {_plural(len(changed), 'thermostat')} in {target} to {mode} mode."

    fan = intent.fan_mode.value if intent.fan_mode else ""
    if _single(matched, changed):
        return f"Set {changed[0].name} fan to {fan}."
    if not changed:
        return f"All {total} thermostats in {target} were already running the fan on {fan}."
    return f"Set the fan to {fan} on {_plural(len(changed), 'thermostat')} in {target}."


def generate_shade_response(
    intent: CommandIntent, matched: Sequence[Shade], changed: Sequence[Shade]
) -> str:
    """Describe a shade command."""
    target = intent.device_name or intent.target_description
    if not matched:
        return f"I couldn't find any shades in {target}."

    total = len(matched)
    count = len(changed)

    if _single(matched, changed):
        name = changed[0].name
        if intent.action == Action.OPEN:
            return f"Opened {name}."
        if intent.action == Action.CLOSE:
            return f"Closed {name}."
        return f"Set {name} to {intent.position}% open."

    if intent.action in (Action.OPEN, Action.CLOSE):
        verb = "Opened" if intent.action == Action.OPEN else "Closed"
        if count == 0:
            state = "open" if intent.action == Action.OPEN else "closed"
            return f"All {total} shades in {target} were already {state}."
        return f"{verb} {count} of {total} shades in {target}."
    if count == 0:
        return f"All {total} shades in {target} were already {intent.position}% open."
    return f"Set {count} of {total} shades in {target} to {intent.position}% open."


def generate_media_response(
    intent: CommandIntent, matched: Sequence[MediaRoom], changed: Sequence[MediaRoom]
) -> str:
    """Describe a media command."""
    target = intent.target_description
    if not matched:
        return f"I couldn't find any media rooms in {target}."

    if _single(matched, changed):
        name = changed[0].name
        singular = {
            Action.POWER_ON: f"Powered on {name}.",
            Action.POWER_OFF: f"Powered off {name}.",
            Action.SET_VOLUME: f"Set {name} volume to {intent.volume}%.",
            Action.MUTE: f"Muted {name}.",
            Action.UNMUTE: f"Unmuted {name}.",
            Action.SELECT_SOURCE: f"Switched {name} to {intent.source}.",
        }
        return singular[intent.action]

    rooms = _plural(len(changed), "media room")
    counted = {
        Action.POWER_ON: f"Powered on {rooms} in {target}.",
        Action.POWER_OFF: f"Powered off {rooms} in {target}.",
        Action.SET_VOLUME: f"Set volume to {intent.volume}% in {rooms}.",
        Action.MUTE: f"Muted {rooms} in {target}.",
        Action.UNMUTE: f"Unmuted {rooms} in {target}.",
        Action.SELECT_SOURCE: f"Switched {rooms} to {intent.source}.",
    }
    return counted[intent.action]


def generate_lock_response(
    intent: CommandIntent, matched: Sequence[DoorLock], changed: Sequence[DoorLock]
) -> str:
    """Describe a door lock command."""
    target = intent.device_name or intent.target_description
    if not matched:
        return f"I couldn't find any door locks in {target}."

    verb = "Locked" if intent.action == Action.LOCK else "Unlocked"
    if _single(matched, changed):
        return f"{verb} {changed[0].name}."
    if not changed:
        return f"All {len(matched)} locks in {target} were already {verb.lower()}."
    return f"{verb} {len(changed)} of {len(matched)} locks in {target}."


def generate_scene_response(intent: CommandIntent, scene: Scene | None) -> str:
    """Describe a scene recall."""
    if scene is None:
        return f'I couldn\'t find a scene named "{intent.scene_name}".'
    return f"Activated {scene.name}."


def failure_suffix(failed: int) -> str:
    """Trailing note for devices whose setter failed."""
    return f" {failed} device(s) did not respond."


def _set_point_info(thermostat: Thermostat) -> str:
    if thermostat.mode == ThermostatMode.HEAT:
        return f"set to {thermostat.heat_set_point}°F"
    if thermostat.mode == ThermostatMode.COOL:
        return f"set to {thermostat.cool_set_point}°F"
    if thermostat.mode == ThermostatMode.AUTO:
        return f"heat: {thermostat.heat_set_point}°F, cool: {thermostat.cool_set_point}°F"
    return "off"


def _whole_house_lights(lights: list[Light], matcher: DeviceMatcher) -> list[str]:
    topology = matcher.topology
    lit = [light for light in lights if light.is_lit]
    if not lit:
        return [f"All {len(lights)} lights in the house are off."]

    parts = [f"{len(lit)} of {len(lights)} lights are on:"]
    for area in topology.areas:
        rooms: dict[str, list[str]] = {}
        for light in lit:
            if light.room_id and light.room_id in area.room_ids:
                room_name = topology.room_name(light.room_id)
                if room_name:
                    rooms.setdefault(room_name, []).append(light.name)
        count = sum(len(names) for names in rooms.values())
        if count:
            details = ", ".join(f"{name} ({len(names)})" for name, names in rooms.items())
            parts.append(f"• {area.name}: {count} lights - {details}")
    return parts


def _targeted_lights(lights: list[Light], target: str) -> list[str]:
    lit = [light for light in lights if light.is_lit]
    if not lit:
        return [f"All {len(lights)} lights in {target} are off."]

    parts = [f"{len(lit)} of {len(lights)} lights on in {target}:"]
    for light in lit[:STATUS_LIGHT_LIMIT]:
        brightness = light.brightness_percent if light.level > 0 else 100
        parts.append(f"• {light.name} ({brightness}%)")
    if len(lit) > STATUS_LIGHT_LIMIT:
        parts.append(f"• ...and {len(lit) - STATUS_LIGHT_LIMIT} more")
    return parts


def generate_status_report(intent: CommandIntent, matcher: DeviceMatcher) -> str:
    """Read-only status summary of lights, climate and media, one item per line."""
    hints = intent.hints
    wants = intent.device_type
    parts: list[str] = []

    if wants in ("lights", "all"):
        lights = matcher.get_matching_lights(hints)
        if lights:
            if not intent.area and not intent.room and not intent.device_name:
                parts.extend(_whole_house_lights(lights, matcher))
            else:
                parts.extend(_targeted_lights(lights, intent.target_description))

    if wants in ("climate", "all"):
        thermostats = matcher.get_matching_thermostats(hints)
        if len(thermostats) == 1:
            t = thermostats[0]
            parts.append(f"{t.name}: {t.current_temp}°F, {t.mode.value} mode, {_set_point_info(t)}")
        elif thermostats:
            avg = round(sum(t.current_temp for t in thermostats) / len(thermostats))
            target = intent.room or intent.area or "the house"
            parts.append(f"Climate in {target} (avg {avg}°F):")
            parts.extend(f"• {t.name}: {t.current_temp}°F ({t.mode.value})" for t in thermostats)

    if wants in ("media", "all"):
        media_rooms = matcher.get_matching_media_rooms(hints)
        playing = [m for m in media_rooms if m.is_powered_on]
        if media_rooms and not playing:
            parts.append(f"All {len(media_rooms)} media rooms are off.")
        elif playing:
            parts.append(f"{_plural(len(playing), 'media room')} playing:")
            for m in playing:
                source = f" - {m.current_source_name}" if m.current_source_name else ""
                parts.append(f"• {m.name}{source}")

    if not parts:
        return f"I couldn't find any devices in {intent.target_description}."
    return "\n".join(parts)
