from __future__ import annotations

from enum import StrEnum


class HealthCheckStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    INITIALIZING = "initializing"


class RoutingRole(StrEnum):
    """Server roles reported by the routing discovery procedure."""

    LEADER = "LEADER"
    FOLLOWER = "FOLLOWER"
    ROUTE = "ROUTE"
    READ_REPLICA = "READ_REPLICA"


class AccessMode(StrEnum):
    READ = "read"
    WRITE = "write"


class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    STALE_REFRESH_FAILED = "stale_refresh_failed"
