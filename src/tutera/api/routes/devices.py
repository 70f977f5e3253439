"""Device and topology API routes.

Read access to the reconciliation cache, plus a manual poll trigger.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from tutera.api.deps import get_session
from tutera.models.schemas import (
    AreaNodeSummary,
    DevicesResponse,
    PollResponse,
    RoomNodeSummary,
    ThermostatPairsResponse,
    ThermostatPairSummary,
    TopologyResponse,
    area_to_dict,
    device_to_dict,
)
from tutera.services.session import ControlSession

router = APIRouter(tags=["Devices"])
logger = structlog.get_logger()


@router.post("/poll", response_model=PollResponse)
async def poll(session: ControlSession = Depends(get_session)) -> PollResponse:
    """Run one reconciliation poll now.

    Returns success=false if a poll was already running or the poll failed.
    """
    merged = await session.poll_once()
    snapshot = session.snapshot()
    if not merged:
        logger.warning("Manual poll did not merge", error=snapshot.error)
    return PollResponse(
        success=merged,
        error=snapshot.error,
        last_updated=snapshot.last_updated,
        counts=snapshot.collections.to_dict(),
    )


@router.get("/devices", response_model=DevicesResponse)
async def get_devices(session: ControlSession = Depends(get_session)) -> DevicesResponse:
    """Every cached collection."""
    snapshot = session.snapshot()
    c = snapshot.collections
    return DevicesResponse(
        areas=[area_to_dict(a) for a in c.areas],
        rooms=[
            {"id": r.id, "name": r.name, "area_id": r.area_id, "area_name": r.area_name}
            for r in c.rooms
        ],
        lights=[device_to_dict(d) for d in c.lights],
        shades=[device_to_dict(d) for d in c.shades],
        thermostats=[device_to_dict(d) for d in c.thermostats],
        media_rooms=[device_to_dict(d) for d in c.media_rooms],
        scenes=[device_to_dict(d) for d in c.scenes],
        door_locks=[device_to_dict(d) for d in c.door_locks],
        sensors=[device_to_dict(d) for d in c.sensors],
        security_devices=[device_to_dict(d) for d in c.security_devices],
        last_updated=snapshot.last_updated,
        error=snapshot.error,
    )


@router.get("/topology", response_model=TopologyResponse)
async def get_topology(session: ControlSession = Depends(get_session)) -> TopologyResponse:
    """Area -> room -> device hierarchy."""
    tree = session.snapshot().topology.hierarchy()
    return TopologyResponse(
        areas=[
            AreaNodeSummary(
                id=node.area.id,
                name=node.area.name,
                rooms=[
                    RoomNodeSummary(
                        id=room.room.id,
                        name=room.room.name,
                        devices=[
                            {"id": d.id, "name": d.name, "type": d.type.value}
                            for d in room.devices
                        ],
                    )
                    for room in node.rooms
                ],
            )
            for node in tree.values()
        ]
    )


@router.get("/thermostats/pairs", response_model=ThermostatPairsResponse)
async def get_thermostat_pairs(
    session: ControlSession = Depends(get_session),
) -> ThermostatPairsResponse:
    """Main/floor-heat pairs per room."""
    return ThermostatPairsResponse(
        pairs=[ThermostatPairSummary.from_pair(p) for p in session.thermostat_pairs()]
    )
