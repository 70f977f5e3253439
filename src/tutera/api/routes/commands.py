"""Command API routes.

- Submit a structured command
- Browse command history
- Undo a command
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query

from tutera.api.deps import get_session
from tutera.exceptions import UnknownCommandError
from tutera.models.schemas import (
    CommandHistoryResponse,
    CommandRequest,
    CommandResponse,
    UndoResponse,
)
from tutera.services.session import ControlSession

router = APIRouter(prefix="/commands", tags=["Commands"])
logger = structlog.get_logger()


@router.post("", response_model=CommandResponse)
async def submit_command(
    request: CommandRequest,
    session: ControlSession = Depends(get_session),
) -> CommandResponse:
    """Execute a command against the matched devices."""
    command = await session.submit_command(request.to_intent())
    logger.info(
        "Command executed",
        command_id=command.id,
        action=command.action,
        changed=len(command.changed_device_ids),
        success=command.success,
    )
    return CommandResponse.from_command(command)


@router.get("", response_model=CommandHistoryResponse)
async def list_commands(
    limit: int | None = Query(default=None, ge=1),
    session: ControlSession = Depends(get_session),
) -> CommandHistoryResponse:
    """Recent commands, newest first."""
    commands = session.history.recent(limit)
    return CommandHistoryResponse(
        commands=[CommandResponse.from_command(c) for c in commands],
        total=len(session.history),
        max_commands=session.history.max_commands,
    )


@router.get("/{command_id}", response_model=CommandResponse)
async def get_command(
    command_id: str,
    session: ControlSession = Depends(get_session),
) -> CommandResponse:
    """A single command from history."""
    command = session.history.get(command_id)
    if command is None:
        raise UnknownCommandError(command_id)
    return CommandResponse.from_command(command)


@router.post("/{command_id}/undo", response_model=UndoResponse)
async def undo_command(
    command_id: str,
    session: ControlSession = Depends(get_session),
) -> UndoResponse:
    """Revert a command. Repeating the request is a no-op."""
    result = await session.undo_command(command_id)
    logger.info("Undo requested", command_id=command_id, success=result.success)
    return UndoResponse.from_result(result)
