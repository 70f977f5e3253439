"""Command executor.

Applies a structured intent to the matched devices:

1. Resolve candidates through the DeviceMatcher
2. Keep only devices whose state would actually change
3. Snapshot each device to be changed
4. Patch the cache optimistically
5. Dispatch one setter sequence per device, all devices concurrently
6. Join and report per-device success

Undo reuses the same pipeline through ``restore()``, which never captures
snapshots.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from tutera.services import metrics
from tutera.services.commands.history import (
    DeviceResult,
    DeviceStateSnapshot,
    ExecutedCommand,
    capture_snapshot,
)
from tutera.services.commands.intents import Action, ActionFamily, CommandIntent
from tutera.services.commands.responses import (
    failure_suffix,
    generate_climate_response,
    generate_light_response,
    generate_lock_response,
    generate_media_response,
    generate_scene_response,
    generate_shade_response,
    generate_status_report,
)
from tutera.services.crestron.cache import DeviceCache
from tutera.services.crestron.client import RemoteController, SetterResult
from tutera.services.crestron.matcher import DeviceMatcher
from tutera.services.crestron.models import (
    LIGHT_LEVEL_MAX,
    SHADE_POSITION_MAX,
    Device,
    DoorLock,
    Light,
    MediaRoom,
    Shade,
    Thermostat,
    ThermostatMode,
)
from tutera.services.crestron.pairing import ThermostatPairingCoordinator
from tutera.services.crestron.topology import fuzzy_match

logger = logging.getLogger(__name__)

SetterCall = Callable[[], Awaitable[SetterResult]]


@dataclass
class Mutation:
    """Planned change to one device: cache patch plus ordered setter calls."""

    device: Device
    patch: dict[str, Any] = field(default_factory=dict)
    calls: list[SetterCall] = field(default_factory=list)

    def add(self, call: SetterCall, **fields: Any) -> None:
        self.calls.append(call)
        self.patch.update(fields)


@dataclass
class _Outcome:
    """What an action family hands back to execute()."""

    response: str
    matched: list[Device]
    changed: list[Device]
    snapshots: list[DeviceStateSnapshot] = field(default_factory=list)
    results: list[DeviceResult] = field(default_factory=list)


def brightness_to_level(brightness: int) -> int:
    """Convert a 0-100 percentage to a 0..65535 light level."""
    return round(brightness * LIGHT_LEVEL_MAX / 100)


def percent_to_position(percent: int) -> int:
    """Convert a 0-100 percentage open to a 0..65535 shade position."""
    return round(percent * SHADE_POSITION_MAX / 100)


class CommandExecutor:
    """Executes intents against the controller and the cache.

    Usage:
        executor = CommandExecutor(client, cache, coordinator)
        command = await executor.execute(CommandIntent(action="on", room="Kitchen"))
        results = await executor.restore(command.snapshots)
    """

    def __init__(
        self,
        controller: RemoteController,
        cache: DeviceCache,
        coordinator: ThermostatPairingCoordinator,
        report_failures: bool = False,
    ) -> None:
        self._controller = controller
        self._cache = cache
        self._coordinator = coordinator
        self._report_failures = report_failures

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def execute(self, intent: CommandIntent) -> ExecutedCommand:
        """Execute one intent and describe the result."""
        matcher = DeviceMatcher(self._cache.topology())

        handlers = {
            ActionFamily.LIGHT: self._execute_lights,
            ActionFamily.SHADE: self._execute_shades,
            ActionFamily.CLIMATE: self._execute_climate,
            ActionFamily.MEDIA: self._execute_media,
            ActionFamily.LOCK: self._execute_locks,
            ActionFamily.SCENE: self._execute_scene,
            ActionFamily.STATUS: self._execute_status,
        }
        outcome = await handlers[intent.family](intent, matcher)

        command = ExecutedCommand(
            input_text=intent.text or f"{intent.action.value} {intent.target_description}",
            response_text=outcome.response,
            action=intent.action.value,
            success=bool(outcome.matched),
            matched_device_ids=[d.id for d in outcome.matched],
            changed_device_ids=[d.id for d in outcome.changed],
            snapshots=outcome.snapshots,
            results=outcome.results,
            undoable=bool(outcome.snapshots),
        )

        failed = command.failed_device_ids
        if failed:
            logger.warning(
                "%d of %d devices failed for %s: %s",
                len(failed),
                len(outcome.results),
                intent.action.value,
                failed,
            )
            if self._report_failures:
                command.response_text += failure_suffix(len(failed))

        metrics.record_command(intent.family.value, intent.action.value, command.success)
        logger.info(
            "Executed %s on %s: matched=%d changed=%d",
            intent.action.value,
            intent.target_description,
            len(outcome.matched),
            len(outcome.changed),
        )
        return command

    async def _apply(
        self, mutations: list[Mutation], capture: bool = True
    ) -> tuple[list[DeviceStateSnapshot], list[DeviceResult]]:
        snapshots: list[DeviceStateSnapshot] = []
        if capture:
            for mutation in mutations:
                snapshot = capture_snapshot(mutation.device)
                if snapshot:
                    snapshots.append(snapshot)

        for mutation in mutations:
            if mutation.patch:
                self._cache.patch(mutation.device.type, mutation.device.id, **mutation.patch)

        results = await asyncio.gather(*(self._dispatch(m) for m in mutations))
        return snapshots, list(results)

    async def _dispatch(self, mutation: Mutation) -> DeviceResult:
        """Run one device's setter calls in order, stopping at the first failure."""
        device = mutation.device
        for call in mutation.calls:
            try:
                result = await call()
            except Exception as e:
                logger.exception("Setter for %s raised", device.name)
                result = SetterResult(success=False, device_id=device.id, message=str(e))
            metrics.record_setter_call(device.type.value, result.success)
            if not result.success:
                return DeviceResult(device.id, device.name, False, result.message)
        return DeviceResult(device.id, device.name, True)

    async def _run(
        self, mutations: list[Mutation]
    ) -> tuple[list[DeviceStateSnapshot], list[DeviceResult]]:
        if not mutations:
            return [], []
        return await self._apply(mutations)

    # =========================================================================
    # Action Families
    # =========================================================================

    async def _execute_lights(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        matched = matcher.get_matching_lights(intent.hints)
        set_light = self._controller.set_light

        mutations: list[Mutation] = []
        for light in matched:
            if intent.action == Action.ON:
                if light.is_lit:
                    continue
                level, is_on = LIGHT_LEVEL_MAX, True
            elif intent.action == Action.OFF:
                if not light.is_lit:
                    continue
                level, is_on = 0, False
            else:
                brightness = intent.brightness or 0
                if light.brightness_percent == brightness:
                    continue
                level, is_on = brightness_to_level(brightness), brightness > 0

            mutation = Mutation(light)
            mutation.add(partial(set_light, light.id, level, is_on), level=level, is_on=is_on)
            mutations.append(mutation)

        snapshots, results = await self._run(mutations)
        changed = [m.device for m in mutations]
        return _Outcome(
            generate_light_response(intent, matched, changed), matched, changed, snapshots, results
        )

    async def _execute_shades(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        matched = matcher.get_matching_shades(intent.hints)

        if intent.action == Action.OPEN:
            position = SHADE_POSITION_MAX
        elif intent.action == Action.CLOSE:
            position = 0
        else:
            position = percent_to_position(intent.position or 0)

        mutations: list[Mutation] = []
        for shade in matched:
            if shade.position == position:
                continue
            mutation = Mutation(shade)
            mutation.add(
                partial(self._controller.set_shade_position, shade.id, position),
                position=position,
            )
            mutations.append(mutation)

        snapshots, results = await self._run(mutations)
        changed = [m.device for m in mutations]
        return _Outcome(
            generate_shade_response(intent, matched, changed), matched, changed, snapshots, results
        )

    async def _execute_climate(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        matched = matcher.get_matching_thermostats(intent.hints)
        c = self._controller

        matched_ids = {t.id for t in matched}
        target_modes: dict[str, ThermostatMode] = {}
        devices: list[Thermostat] = list(matched)
        if intent.mode and intent.action in (Action.SET_MODE, Action.SET_TEMPERATURE):
            # Partners changed as a side effect are snapshotted like the rest.
            for change in self._coordinator.plan_mode_change(matched, intent.mode):
                target_modes[change.thermostat.id] = change.mode
                if change.thermostat.id not in matched_ids:
                    devices.append(change.thermostat)

        mutations: list[Mutation] = []
        for thermostat in devices:
            mutation = Mutation(thermostat)

            mode = target_modes.get(thermostat.id)
            if mode and mode != thermostat.mode:
                mutation.add(partial(c.set_thermostat_mode, thermostat.id, mode), mode=mode)

            if intent.action == Action.SET_TEMPERATURE and thermostat.id in matched_ids:
                heat, cool = self._set_points_for(
                    thermostat, mode or thermostat.mode, intent.temperature or 0
                )
                if heat is not None or cool is not None:
                    fields: dict[str, Any] = {}
                    if heat is not None:
                        fields["heat_set_point"] = heat
                    if cool is not None:
                        fields["cool_set_point"] = cool
                    mutation.add(
                        partial(c.set_thermostat_set_point, thermostat.id, heat=heat, cool=cool),
                        **fields,
                    )

            if intent.action == Action.SET_FAN_MODE and intent.fan_mode:
                if thermostat.fan_mode != intent.fan_mode:
                    mutation.add(
                        partial(c.set_thermostat_fan_mode, thermostat.id, intent.fan_mode),
                        fan_mode=intent.fan_mode,
                    )

            if mutation.calls:
                mutations.append(mutation)

        snapshots, results = await self._run(mutations)
        changed = [m.device for m in mutations if m.device.id in matched_ids]
        return _Outcome(
            generate_climate_response(intent, matched, changed), matched, changed, snapshots, results
        )

    @staticmethod
    def _set_points_for(
        thermostat: Thermostat, mode: ThermostatMode, temperature: int
    ) -> tuple[int | None, int | None]:
        """Setpoints a temperature request changes, given the effective mode.

        Heat touches only the heat setpoint, cool only the cool setpoint,
        auto/off both. Values already in place are omitted.
        """
        heat = cool = None
        if mode in (ThermostatMode.HEAT, ThermostatMode.AUTO, ThermostatMode.OFF):
            heat = temperature
        if mode in (ThermostatMode.COOL, ThermostatMode.AUTO, ThermostatMode.OFF):
            cool = temperature
        if heat == thermostat.heat_set_point:
            heat = None
        if cool == thermostat.cool_set_point:
            cool = None
        return heat, cool

    async def _execute_media(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        matched = matcher.get_matching_media_rooms(intent.hints)
        c = self._controller

        mutations: list[Mutation] = []
        for room in matched:
            mutation = Mutation(room)
            if intent.action == Action.POWER_ON and not room.is_powered_on:
                mutation.add(partial(c.set_media_room_power, room.id, True), is_powered_on=True)
            elif intent.action == Action.POWER_OFF and room.is_powered_on:
                mutation.add(partial(c.set_media_room_power, room.id, False), is_powered_on=False)
            elif (
                intent.action == Action.SET_VOLUME
                and intent.volume is not None
                and room.volume_percent != intent.volume
            ):
                mutation.add(
                    partial(c.set_media_room_volume, room.id, intent.volume),
                    volume_percent=intent.volume,
                )
            elif intent.action == Action.MUTE and not room.is_muted:
                mutation.add(partial(c.set_media_room_mute, room.id, True), is_muted=True)
            elif intent.action == Action.UNMUTE and room.is_muted:
                mutation.add(partial(c.set_media_room_mute, room.id, False), is_muted=False)
            elif intent.action == Action.SELECT_SOURCE:
                provider = self._find_provider(room, intent.source or "")
                if provider is None:
                    logger.debug("Media room %s has no source matching %r", room.name, intent.source)
                elif room.current_provider_id != provider:
                    mutation.add(
                        partial(c.set_media_room_source, room.id, provider),
                        current_provider_id=provider,
                    )
            if mutation.calls:
                mutations.append(mutation)

        snapshots, results = await self._run(mutations)
        changed = [m.device for m in mutations]
        return _Outcome(
            generate_media_response(intent, matched, changed), matched, changed, snapshots, results
        )

    @staticmethod
    def _find_provider(room: MediaRoom, source: str) -> int | None:
        for provider in room.available_providers:
            if fuzzy_match(source, provider.name):
                return provider.id
        return None

    async def _execute_locks(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        matched = matcher.get_matching_door_locks(intent.hints)
        locked = intent.action == Action.LOCK

        mutations: list[Mutation] = []
        for lock in matched:
            if lock.is_locked == locked:
                continue
            mutation = Mutation(lock)
            mutation.add(partial(self._controller.set_door_lock, lock.id, locked), is_locked=locked)
            mutations.append(mutation)

        snapshots, results = await self._run(mutations)
        changed = [m.device for m in mutations]
        return _Outcome(
            generate_lock_response(intent, matched, changed), matched, changed, snapshots, results
        )

    async def _execute_scene(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        scene = matcher.find_scene(intent.scene_name or "", intent.room)
        response = generate_scene_response(intent, scene)
        if scene is None:
            return _Outcome(response, [], [])

        recall = Mutation(scene, calls=[partial(self._controller.recall_scene, scene.id)])
        _, results = await self._apply([recall], capture=False)
        return _Outcome(response, [scene], [scene], [], results)

    async def _execute_status(self, intent: CommandIntent, matcher: DeviceMatcher) -> _Outcome:
        hints = intent.hints
        wants = intent.device_type
        matched: list[Device] = []
        if wants in ("lights", "all"):
            matched.extend(matcher.get_matching_lights(hints))
        if wants in ("climate", "all"):
            matched.extend(matcher.get_matching_thermostats(hints))
        if wants in ("media", "all"):
            matched.extend(matcher.get_matching_media_rooms(hints))
        return _Outcome(generate_status_report(intent, matcher), matched, [])

    # =========================================================================
    # Restore (undo)
    # =========================================================================

    async def restore(self, snapshots: list[DeviceStateSnapshot]) -> list[DeviceResult]:
        """Replay previous state for each snapshot without capturing new ones.

        Snapshots whose device is gone, or whose type no longer matches the
        live device, are skipped and reported as failed.
        """
        skipped: list[DeviceResult] = []
        mutations: list[Mutation] = []
        for snapshot in snapshots:
            device = self._cache.find(snapshot.device_id)
            if device is None:
                logger.warning("Cannot restore %s: device no longer cached", snapshot.device_id)
                skipped.append(
                    DeviceResult(snapshot.device_id, snapshot.device_id, False, "Device not found")
                )
                continue
            if device.type != snapshot.device_type:
                logger.warning(
                    "Snapshot type %s does not match %s device %s, skipping",
                    snapshot.device_type.value,
                    device.type.value,
                    device.id,
                )
                skipped.append(DeviceResult(device.id, device.name, False, "Device type mismatch"))
                continue
            mutations.append(self._restore_mutation(device, snapshot.previous_state))

        if not mutations:
            return skipped
        _, results = await self._apply(mutations, capture=False)
        return skipped + results

    def _restore_mutation(self, device: Device, state: dict[str, Any]) -> Mutation:
        c = self._controller
        mutation = Mutation(device)

        if isinstance(device, Light):
            mutation.add(
                partial(c.set_light, device.id, state["level"], state["is_on"]),
                level=state["level"],
                is_on=state["is_on"],
            )
        elif isinstance(device, Shade):
            mutation.add(
                partial(c.set_shade_position, device.id, state["position"]),
                position=state["position"],
            )
        elif isinstance(device, Thermostat):
            mutation.add(partial(c.set_thermostat_mode, device.id, state["mode"]), mode=state["mode"])
            mutation.add(
                partial(
                    c.set_thermostat_set_point,
                    device.id,
                    heat=state["heat_set_point"],
                    cool=state["cool_set_point"],
                ),
                heat_set_point=state["heat_set_point"],
                cool_set_point=state["cool_set_point"],
            )
            mutation.add(
                partial(c.set_thermostat_fan_mode, device.id, state["fan_mode"]),
                fan_mode=state["fan_mode"],
            )
        elif isinstance(device, MediaRoom):
            mutation.add(
                partial(c.set_media_room_power, device.id, state["is_powered_on"]),
                is_powered_on=state["is_powered_on"],
            )
            mutation.add(
                partial(c.set_media_room_volume, device.id, state["volume_percent"]),
                volume_percent=state["volume_percent"],
            )
            mutation.add(
                partial(c.set_media_room_mute, device.id, state["is_muted"]),
                is_muted=state["is_muted"],
            )
            provider = state["current_provider_id"]
            if provider is not None:
                mutation.add(
                    partial(c.set_media_room_source, device.id, provider),
                    current_provider_id=provider,
                )
            else:
                mutation.patch["current_provider_id"] = None
        elif isinstance(device, DoorLock):
            mutation.add(
                partial(c.set_door_lock, device.id, state["is_locked"]),
                is_locked=state["is_locked"],
            )
        return mutation
