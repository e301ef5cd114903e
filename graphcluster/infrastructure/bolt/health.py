from __future__ import annotations

from datetime import datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from ...core.enums import HealthCheckStatus, SessionState


class TopologyHealthResult(BaseModel):
    """Health of the cached routing topology, computed without network access."""

    model_config = ConfigDict(frozen=True)

    status: HealthCheckStatus
    state: SessionState
    leader_count: int = 0
    follower_count: int = 0
    expires_in_s: float | None = None
    message: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)

    def is_healthy(self) -> bool:
        return self.status == HealthCheckStatus.HEALTHY

    @classmethod
    def initializing(cls: type[Self]) -> Self:
        return cls(
            status=HealthCheckStatus.INITIALIZING,
            state=SessionState.UNINITIALIZED,
            message="Routing table not fetched yet",
        )

    @classmethod
    def from_counts(
        cls: type[Self],
        state: SessionState,
        leader_count: int,
        follower_count: int,
        expires_in_s: float,
    ) -> Self:
        """Grade a published topology.

        Parameters
        ----------
        state
            Current session state; a failed refresh degrades the result.
        leader_count, follower_count
            Servers per role in the published routing table.
        expires_in_s
            Seconds until the table expires; zero or less means expired.

        Returns
        -------
        Self
            HEALTHY when fresh with both roles present, DEGRADED otherwise.
        """
        problems: list[str] = []
        if state is SessionState.STALE_REFRESH_FAILED:
            problems.append("last refresh failed")
        if expires_in_s <= 0:
            problems.append("routing table expired")
        if leader_count == 0:
            problems.append("no leader available")
        if follower_count == 0:
            problems.append("no follower available")

        return cls(
            status=HealthCheckStatus.DEGRADED if problems else HealthCheckStatus.HEALTHY,
            state=state,
            leader_count=leader_count,
            follower_count=follower_count,
            expires_in_s=expires_in_s,
            message="; ".join(problems) if problems else "Routing table is fresh",
        )
