"""Reconciliation cache.

Holds the last-known device state and reconciles it against periodic
authoritative polls of the processor.

Rules:
- Commands patch single fields optimistically and tag the device dirty
- The next poll replaces whole collections and always wins
- A collection is replaced only when the fetched version is non-empty, so one
  failing endpoint cannot blank out otherwise-good data
- A poll where every collection comes back empty is treated as likely auth
  expiry: one single-flight refresh, one re-poll, then give up
- Once a refresh fails the session is expired: the periodic loop stops
  polling until an explicit poll merges data again
- A poll already in flight makes a new poll call return immediately
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

from tutera.services import metrics
from tutera.services.crestron.client import AuthProvider, FetchResult, RemoteController
from tutera.services.crestron.models import (
    Device,
    DeviceCollections,
    DeviceType,
    DoorLock,
    Light,
    MediaRoom,
    Shade,
    Thermostat,
)
from tutera.services.crestron.topology import TopologyIndex, build_areas

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Session expired. Please log in again."

# Collection attribute per patchable device type
_COLLECTION_FOR_TYPE: dict[DeviceType, str] = {
    DeviceType.LIGHT: "lights",
    DeviceType.SHADE: "shades",
    DeviceType.THERMOSTAT: "thermostats",
    DeviceType.MEDIA_ROOM: "media_rooms",
    DeviceType.SCENE: "scenes",
    DeviceType.DOOR_LOCK: "door_locks",
    DeviceType.SENSOR: "sensors",
    DeviceType.SECURITY_DEVICE: "security_devices",
}

# Fetch order used by the poll cycle
COLLECTION_NAMES = (
    "areas",
    "rooms",
    "lights",
    "shades",
    "thermostats",
    "media_rooms",
    "scenes",
    "door_locks",
    "sensors",
    "security_devices",
)

PostPollHook = Callable[[], Awaitable[Any]]


class DeviceCache:
    """Write-through cache of device collections."""

    def __init__(self, collections: DeviceCollections | None = None) -> None:
        self._collections = collections or DeviceCollections()
        self._dirty: set[tuple[DeviceType, str]] = set()
        self.error: str | None = None

    @property
    def collections(self) -> DeviceCollections:
        return self._collections

    @property
    def last_updated(self) -> datetime | None:
        return self._collections.last_updated

    def topology(self) -> TopologyIndex:
        """Index over the current collections."""
        return TopologyIndex(self._collections)

    def get(self, device_type: DeviceType, device_id: str) -> Device | None:
        collection = getattr(self._collections, _COLLECTION_FOR_TYPE[device_type])
        for device in collection:
            if device.id == device_id:
                return device
        return None

    def find(self, device_id: str) -> Device | None:
        """Look a device up by id across every collection."""
        for attr in _COLLECTION_FOR_TYPE.values():
            for device in getattr(self._collections, attr):
                if device.id == device_id:
                    return device
        return None

    def get_light(self, device_id: str) -> Light | None:
        return self.get(DeviceType.LIGHT, device_id)

    def get_thermostat(self, device_id: str) -> Thermostat | None:
        return self.get(DeviceType.THERMOSTAT, device_id)

    def get_media_room(self, device_id: str) -> MediaRoom | None:
        return self.get(DeviceType.MEDIA_ROOM, device_id)

    def get_door_lock(self, device_id: str) -> DoorLock | None:
        return self.get(DeviceType.DOOR_LOCK, device_id)

    def get_shade(self, device_id: str) -> Shade | None:
        return self.get(DeviceType.SHADE, device_id)

    def patch(self, device_type: DeviceType, device_id: str, **fields: Any) -> bool:
        """Apply an optimistic field patch and tag the device dirty.

        Returns:
            True if the device was found.
        """
        collection = getattr(self._collections, _COLLECTION_FOR_TYPE[device_type])
        for index, device in enumerate(collection):
            if device.id == device_id:
                collection[index] = replace(device, **fields)
                self._dirty.add((device_type, device_id))
                return True
        logger.debug("Patch skipped: %s %s not in cache", device_type.value, device_id)
        return False

    def is_dirty(self, device_type: DeviceType, device_id: str) -> bool:
        return (device_type, device_id) in self._dirty

    @property
    def dirty_count(self) -> int:
        return len(self._dirty)

    def apply_poll(self, fetched: dict[str, FetchResult]) -> list[str]:
        """Merge one poll cycle into the cache.

        Each collection is replaced wholesale only if its fetched version is
        non-empty. Replaced collections drop their dirty tags.

        Returns:
            Names of the collections that were replaced.
        """
        current = self._collections
        rooms = fetched["rooms"].data or current.rooms
        areas = build_areas(fetched["areas"].data, rooms)

        replaced: list[str] = []
        updates: dict[str, Any] = {}
        if areas:
            updates["areas"] = areas
            replaced.append("areas")
        for name in COLLECTION_NAMES[1:]:
            data = fetched[name].data
            if data:
                updates[name] = list(data)
                replaced.append(name)

        self._collections = replace(current, **updates, last_updated=datetime.now())

        replaced_types = {
            device_type
            for device_type, attr in _COLLECTION_FOR_TYPE.items()
            if attr in replaced
        }
        self._dirty = {key for key in self._dirty if key[0] not in replaced_types}
        return replaced


class CacheReconciler:
    """Runs poll cycles against the processor and merges them into the cache.

    Usage:
        reconciler = CacheReconciler(client, client, cache)
        await reconciler.poll_once()
        await reconciler.start_periodic_refresh(lambda: 10.0)
    """

    def __init__(
        self,
        controller: RemoteController,
        auth: AuthProvider,
        cache: DeviceCache,
    ) -> None:
        self._controller = controller
        self._auth = auth
        self._cache = cache
        self._poll_in_flight = False
        self._refresh_task: asyncio.Task[bool] | None = None
        self._session_expired = False
        self._post_poll_hooks: list[PostPollHook] = []
        self._periodic_task: asyncio.Task[None] | None = None
        self.refresh_attempts = 0

    @property
    def cache(self) -> DeviceCache:
        return self._cache

    @property
    def poll_in_flight(self) -> bool:
        return self._poll_in_flight

    @property
    def session_expired(self) -> bool:
        """True after a failed auth refresh, until a poll merges data again."""
        return self._session_expired

    def add_post_poll_hook(self, hook: PostPollHook) -> None:
        """Register a coroutine run after every successful merge."""
        self._post_poll_hooks.append(hook)

    async def poll_once(self) -> bool:
        """Run one poll cycle.

        Returns:
            True if fresh data was merged, False if skipped or failed.
        """
        # No await between the check and the set: atomic on the event loop.
        if self._poll_in_flight:
            logger.debug("Poll already in flight, skipping")
            metrics.record_poll("skipped")
            return False

        self._poll_in_flight = True
        try:
            return await self._poll(is_retry=False)
        finally:
            self._poll_in_flight = False

    async def _fetch_all(self) -> dict[str, FetchResult]:
        c = self._controller
        results = await asyncio.gather(
            c.get_areas(),
            c.get_rooms(),
            c.get_lights(),
            c.get_shades(),
            c.get_thermostats(),
            c.get_media_rooms(),
            c.get_scenes(),
            c.get_door_locks(),
            c.get_sensors(),
            c.get_security_devices(),
            return_exceptions=True,
        )
        fetched: dict[str, FetchResult] = {}
        for name, result in zip(COLLECTION_NAMES, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Fetching %s raised: %s", name, result)
                raise result
            fetched[name] = result
        return fetched

    async def _poll(self, is_retry: bool) -> bool:
        self._cache.error = None
        try:
            fetched = await self._fetch_all()
        except Exception as e:
            self._cache.error = str(e) or "Failed to fetch data"
            logger.error("Poll failed, keeping cached data: %s", self._cache.error)
            metrics.record_poll("error")
            return False

        if all(not result.data for result in fetched.values()):
            if is_retry:
                logger.warning("Poll still empty after auth refresh")
            else:
                logger.warning("Every collection came back empty, likely auth expiry")
                if await self.refresh_auth_once():
                    return await self._poll(is_retry=True)
                self._cache.error = SESSION_EXPIRED
                self._session_expired = True
                logger.warning("Session expired, automatic polling paused")
                metrics.record_poll("auth_expired")
                return False

        replaced = self._cache.apply_poll(fetched)
        self._session_expired = False
        errors = [
            f"{name}: {result.error}"
            for name, result in fetched.items()
            if not result.success and result.error
        ]
        if errors:
            self._cache.error = "; ".join(errors)
            logger.warning("Poll completed with errors: %s", self._cache.error)

        logger.debug("Poll merged collections: %s", ", ".join(replaced) or "none")
        metrics.record_poll("success")

        for hook in self._post_poll_hooks:
            try:
                await hook()
            except Exception as e:
                logger.error("Post-poll hook failed: %s", e)
        return True

    async def refresh_auth_once(self) -> bool:
        """Refresh the session, sharing one in-flight attempt among callers."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh())
        return await self._refresh_task

    async def _refresh(self) -> bool:
        self.refresh_attempts += 1
        logger.info("Attempting auth refresh")
        try:
            ok = await self._auth.refresh_auth()
        except Exception as e:
            logger.error("Auth refresh raised: %s", e)
            ok = False
        if not ok:
            self._auth.invalidate_auth()
            logger.warning("Auth refresh failed, session invalidated")
        metrics.record_auth_refresh(ok)
        return ok

    async def start_periodic_refresh(self, interval: Callable[[], float]) -> None:
        """Start the background poll loop.

        Args:
            interval: Called before each sleep to pick the next interval (seconds)
        """
        if self._periodic_task is None or self._periodic_task.done():
            self._periodic_task = asyncio.create_task(self._periodic_loop(interval))
            logger.info("Started periodic polling")

    async def stop_periodic_refresh(self) -> None:
        """Stop the background poll loop."""
        if self._periodic_task and not self._periodic_task.done():
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None
            logger.info("Stopped periodic polling")

    async def _periodic_loop(self, interval: Callable[[], float]) -> None:
        while True:
            try:
                if self._session_expired:
                    logger.debug("Session expired, periodic poll paused")
                else:
                    await self.poll_once()
                await asyncio.sleep(interval())
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Periodic poll failed: %s", e)
                await asyncio.sleep(interval())
