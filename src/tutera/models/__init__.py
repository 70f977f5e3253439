"""Tutera API schemas."""

from tutera.models.schemas import (
    CommandRequest,
    CommandResponse,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    UndoResponse,
)

__all__ = [
    "CommandRequest",
    "CommandResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "UndoResponse",
]
