"""Tutera exception hierarchy."""

from __future__ import annotations


class TuteraError(Exception):
    """Base class for Tutera errors."""

    pass


class CrestronAuthenticationError(TuteraError):
    """Raised when the processor rejects the auth token."""

    pass


class InvalidIntentError(TuteraError, ValueError):
    """Raised when an intent is missing a parameter its action needs."""

    pass


class UnknownCommandError(TuteraError, KeyError):
    """Raised when a command id is not in history."""

    def __init__(self, command_id: str) -> None:
        super().__init__(command_id)
        self.command_id = command_id

    def __str__(self) -> str:
        return f"Unknown command: {self.command_id}"
