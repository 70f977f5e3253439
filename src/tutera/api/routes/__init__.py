"""API route modules."""

from tutera.api.routes import commands, devices, health, metrics

__all__ = ["commands", "devices", "health", "metrics"]
