"""Control session.

One explicit context object per processor connection. It owns the cache,
reconciler, pairing coordinator, executor and history, and exposes the
operations the API layer calls:

- submit_command(intent) -> ExecutedCommand
- undo_command(command_id) -> UndoResult
- poll_once() -> bool
- snapshot() -> SessionSnapshot
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from tutera.config import PollSettings, Settings
from tutera.services import metrics
from tutera.services.commands.executor import CommandExecutor
from tutera.services.commands.history import (
    NO_UNDO_DATA,
    NOTHING_TO_UNDO,
    CommandHistory,
    ExecutedCommand,
    UndoResult,
)
from tutera.services.commands.intents import CommandIntent
from tutera.services.crestron.cache import CacheReconciler, DeviceCache
from tutera.services.crestron.client import AuthProvider, CrestronClient, RemoteController
from tutera.services.crestron.models import DeviceCollections, ThermostatPair
from tutera.services.crestron.pairing import ThermostatPairingCoordinator
from tutera.services.crestron.topology import TopologyIndex

logger = logging.getLogger(__name__)

UNDO_SUCCEEDED = "Undone successfully."
UNDO_FAILED = "Failed to undo command."


@dataclass
class SessionSnapshot:
    """Read-only view of the current cache state."""

    collections: DeviceCollections
    topology: TopologyIndex
    error: str | None
    last_updated: datetime | None
    poll_in_flight: bool
    dirty_devices: int
    session_expired: bool = False


class ControlSession:
    """Owns every piece of per-connection state.

    Usage:
        session = ControlSession(client, client)
        await session.poll_once()
        command = await session.submit_command(CommandIntent(action="off", room="Kitchen"))
        await session.undo_command(command.id)
    """

    def __init__(
        self,
        controller: RemoteController,
        auth: AuthProvider,
        history_max: int = 50,
        report_failures: bool = False,
        poll_settings: PollSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cache = DeviceCache()
        self.reconciler = CacheReconciler(controller, auth, self.cache)
        self.coordinator = ThermostatPairingCoordinator(controller, self.cache)
        self.executor = CommandExecutor(
            controller, self.cache, self.coordinator, report_failures=report_failures
        )
        self.history = CommandHistory(history_max)
        self._poll_settings = poll_settings or PollSettings()
        self._clock = clock
        self._last_activity = clock()
        self.client: CrestronClient | None = None
        self._undoing: set[str] = set()

        self.reconciler.add_post_poll_hook(self.coordinator.enforce_satisfaction)

    @classmethod
    def from_settings(cls, settings: Settings) -> ControlSession:
        """Build a session backed by a CrestronClient."""
        client = CrestronClient(
            url=settings.crestron.url,
            auth_token=settings.crestron.auth_token,
            timeout=settings.crestron.timeout,
            verify_ssl=settings.crestron.verify_ssl,
        )
        session = cls(
            client,
            client,
            history_max=settings.history.max_commands,
            report_failures=settings.execution.report_failures,
            poll_settings=settings.poll,
        )
        session.client = client
        return session

    # =========================================================================
    # Commands
    # =========================================================================

    async def submit_command(self, intent: CommandIntent) -> ExecutedCommand:
        """Execute an intent and record it in history."""
        self._last_activity = self._clock()
        command = await self.executor.execute(intent)
        return self.history.record(command)

    async def undo_command(self, command_id: str) -> UndoResult:
        """Revert a command once.

        The command is marked undone only if every restore succeeded. The
        undo itself is recorded in history but cannot be undone. A second
        undo arriving while the first is still replaying gets "Nothing to
        undo."
        """
        self._last_activity = self._clock()
        command = self.history.get(command_id)

        if command is None or not command.snapshots:
            metrics.record_undo("no_data")
            return UndoResult(False, NO_UNDO_DATA, command_id)
        # No await between the check and the claim.
        if command.undone or command.id in self._undoing:
            metrics.record_undo("nothing_to_undo")
            return UndoResult(False, NOTHING_TO_UNDO, command_id)

        self._undoing.add(command.id)
        try:
            results = await self.executor.restore(command.snapshots)
        finally:
            self._undoing.discard(command.id)
        restored = [r.device_id for r in results if r.success]
        failed = [r.device_id for r in results if not r.success]

        if failed:
            message = f"{UNDO_FAILED} {len(failed)} device(s) did not respond."
            logger.warning("Undo of %s incomplete: failed=%s", command_id, failed)
            metrics.record_undo("partial")
        else:
            command.undone = True
            message = UNDO_SUCCEEDED
            logger.info("Undid command %s (%d devices)", command_id, len(restored))
            metrics.record_undo("restored")

        self.history.record(
            ExecutedCommand(
                input_text=f"undo {command.input_text}",
                response_text=message,
                action="undo",
                success=not failed,
                matched_device_ids=[s.device_id for s in command.snapshots],
                changed_device_ids=restored,
                results=results,
                undoable=False,
            )
        )
        return UndoResult(not failed, message, command_id, restored, failed)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def poll_once(self) -> bool:
        """Run one reconciliation poll."""
        merged = await self.reconciler.poll_once()
        if merged:
            counts = self.cache.collections.to_dict()
            counts.pop("last_updated")
            metrics.update_cached_devices(counts)
        return merged

    def idle_seconds(self) -> float:
        return self._clock() - self._last_activity

    def next_poll_interval(self) -> float:
        """Interval before the next periodic poll."""
        return self._poll_settings.interval_for_idle(self.idle_seconds())

    async def start(self) -> None:
        """Start background polling."""
        if self._poll_settings.enabled:
            await self.reconciler.start_periodic_refresh(self.next_poll_interval)

    async def stop(self) -> None:
        """Stop background polling and close the client."""
        await self.reconciler.stop_periodic_refresh()
        if self.client:
            await self.client.close()

    # =========================================================================
    # Read Access
    # =========================================================================

    def snapshot(self) -> SessionSnapshot:
        """Current device and topology state."""
        return SessionSnapshot(
            collections=self.cache.collections,
            topology=self.cache.topology(),
            error=self.cache.error,
            last_updated=self.cache.last_updated,
            poll_in_flight=self.reconciler.poll_in_flight,
            dirty_devices=self.cache.dirty_count,
            session_expired=self.reconciler.session_expired,
        )

    def thermostat_pairs(self) -> list[ThermostatPair]:
        return self.coordinator.get_pairs()
