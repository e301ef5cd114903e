"""Core module exports."""

from __future__ import annotations

from .enums import AccessMode, HealthCheckStatus, RoutingRole, SessionState

__all__ = [
    "AccessMode",
    "HealthCheckStatus",
    "RoutingRole",
    "SessionState",
]
