"""Command execution, responses and undo history."""

from tutera.services.commands.executor import CommandExecutor
from tutera.services.commands.history import (
    CommandHistory,
    DeviceStateSnapshot,
    ExecutedCommand,
    UndoResult,
)
from tutera.services.commands.intents import Action, ActionFamily, CommandIntent

__all__ = [
    "Action",
    "ActionFamily",
    "CommandExecutor",
    "CommandHistory",
    "CommandIntent",
    "DeviceStateSnapshot",
    "ExecutedCommand",
    "UndoResult",
]
