"""Shared route dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request

from tutera.services.session import ControlSession


def get_session(request: Request) -> ControlSession:
    """Control session from app state."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Control session not initialized")
    return session
