"""Thermostat pairing coordinator.

A room may hold a main thermostat and an auxiliary floor-heat thermostat.
The pair is treated as one small state machine keyed by room id:

    main -> heat          floor heat -> heat
    main -> cool/auto/off floor heat -> off
    floor heat -> heat    main -> heat
    floor heat -> other   clamped to off, main untouched

After every poll, a floor heat still running in a room whose main thermostat
has reached its heat setpoint is switched off.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from tutera.services import metrics
from tutera.services.crestron.cache import DeviceCache
from tutera.services.crestron.client import RemoteController
from tutera.services.crestron.models import (
    DeviceType,
    Thermostat,
    ThermostatMode,
    ThermostatPair,
    is_floor_heat,
    is_temperature_satisfied,
)

logger = logging.getLogger(__name__)

FLOOR_HEAT_MODES = (ThermostatMode.HEAT, ThermostatMode.OFF)


def clamp_floor_heat_mode(mode: ThermostatMode) -> ThermostatMode:
    """Floor heat only supports heat and off."""
    return mode if mode in FLOOR_HEAT_MODES else ThermostatMode.OFF


def derive_floor_heat_mode(main_mode: ThermostatMode) -> ThermostatMode:
    """Floor heat follows the main thermostat only when it calls for heat."""
    return ThermostatMode.HEAT if main_mode == ThermostatMode.HEAT else ThermostatMode.OFF


@dataclass
class ModeChange:
    """One planned thermostat mode transition."""

    thermostat: Thermostat
    mode: ThermostatMode
    requested: bool = True

    @property
    def changes(self) -> bool:
        return self.thermostat.mode != self.mode


def build_pairs(thermostats: list[Thermostat], room_names: dict[str, str]) -> list[ThermostatPair]:
    """Group thermostats into per-room pairs.

    The first non-floor-heat thermostat in a room is the main; a room with
    only floor heat uses it as its main. Additional thermostats in the same
    room form their own trivial pairs.
    """
    by_room: dict[str, list[Thermostat]] = {}
    for thermostat in thermostats:
        if thermostat.room_id:
            by_room.setdefault(thermostat.room_id, []).append(thermostat)

    pairs: list[ThermostatPair] = []
    for room_id, members in by_room.items():
        room_name = room_names.get(room_id, room_id)
        mains = [t for t in members if not is_floor_heat(t)]
        floors = [t for t in members if is_floor_heat(t)]

        if not mains:
            pairs.extend(ThermostatPair(room_id, room_name, main=f) for f in floors)
            continue

        pairs.append(
            ThermostatPair(room_id, room_name, main=mains[0], floor_heat=floors[0] if floors else None)
        )
        pairs.extend(ThermostatPair(room_id, room_name, main=m) for m in mains[1:])
        pairs.extend(ThermostatPair(room_id, room_name, main=f) for f in floors[1:])
    return pairs


class ThermostatPairingCoordinator:
    """Coordinates main/floor-heat mode changes and the satisfaction shutoff.

    Usage:
        coordinator = ThermostatPairingCoordinator(controller, cache)
        plan = coordinator.plan_mode_change([main], ThermostatMode.COOL)
        await coordinator.enforce_satisfaction()
    """

    def __init__(self, controller: RemoteController, cache: DeviceCache) -> None:
        self._controller = controller
        self._cache = cache

    def get_pairs(self) -> list[ThermostatPair]:
        """Current pairs built from the cache."""
        collections = self._cache.collections
        room_names = {room.id: room.name for room in collections.rooms}
        return build_pairs(collections.thermostats, room_names)

    def pair_for(self, thermostat_id: str) -> ThermostatPair | None:
        for pair in self.get_pairs():
            if pair.main.id == thermostat_id:
                return pair
            if pair.floor_heat and pair.floor_heat.id == thermostat_id:
                return pair
        return None

    def plan_mode_change(
        self, targets: list[Thermostat], mode: ThermostatMode
    ) -> list[ModeChange]:
        """Compute every mode transition a request implies.

        Args:
            targets: Thermostats the user asked to change
            mode: Requested mode

        Returns:
            Requested changes first, then partner side effects. Each
            thermostat appears once; the first plan for it wins.
        """
        planned: dict[str, ModeChange] = {}
        side_effects: list[ModeChange] = []

        for thermostat in targets:
            if thermostat.id in planned:
                continue
            pair = self.pair_for(thermostat.id)
            partner: ModeChange | None = None

            if pair and pair.floor_heat and pair.floor_heat.id == thermostat.id:
                own = ModeChange(thermostat, clamp_floor_heat_mode(mode))
                if own.mode == ThermostatMode.HEAT:
                    partner = ModeChange(pair.main, ThermostatMode.HEAT, requested=False)
            elif is_floor_heat(thermostat):
                own = ModeChange(thermostat, clamp_floor_heat_mode(mode))
            else:
                own = ModeChange(thermostat, mode)
                if pair and pair.floor_heat:
                    partner = ModeChange(
                        pair.floor_heat, derive_floor_heat_mode(mode), requested=False
                    )

            planned[thermostat.id] = own
            if partner:
                side_effects.append(partner)

        plan = list(planned.values())
        for change in side_effects:
            if change.thermostat.id not in planned:
                planned[change.thermostat.id] = change
                plan.append(change)
        return plan

    async def enforce_satisfaction(self) -> list[str]:
        """Turn off floor heat in rooms whose main thermostat is satisfied.

        Returns:
            Ids of floor-heat thermostats switched off.
        """
        to_shut_off = [
            pair.floor_heat
            for pair in self.get_pairs()
            if pair.floor_heat
            and pair.main.mode == ThermostatMode.HEAT
            and pair.floor_heat.mode == ThermostatMode.HEAT
            and is_temperature_satisfied(pair.main)
        ]
        if not to_shut_off:
            return []

        results = await asyncio.gather(
            *(self._controller.set_thermostat_mode(t.id, ThermostatMode.OFF) for t in to_shut_off)
        )

        switched: list[str] = []
        for thermostat, result in zip(to_shut_off, results, strict=True):
            metrics.record_setter_call(DeviceType.THERMOSTAT.value, result.success)
            if result.success:
                self._cache.patch(DeviceType.THERMOSTAT, thermostat.id, mode=ThermostatMode.OFF)
                metrics.record_floor_heat_shutoff()
                switched.append(thermostat.id)
                logger.info("Room satisfied, turned off floor heat %s", thermostat.name)
            else:
                logger.warning(
                    "Failed to turn off floor heat %s: %s", thermostat.name, result.message
                )
        return switched
