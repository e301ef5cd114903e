"""Configuration models for auto-routed graph sessions.

- `BoltConfig`: per-connection settings handed to every connection the pool builds
- `RoutingConfig`: how the routing table is discovered
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from ...resilience.config import RetryConfig

DEFAULT_DISCOVERY_QUERY = "CALL dbms.routing.getRoutingTable({context: $context, database: $database})"


class BoltConfig(BaseModel):
    """Settings shared by the routed session and the leaf connections it creates.

    Examples
    --------
    >>> config = BoltConfig(database="movies", auto_routing=True)
    >>> leaf = config.with_auto_routing(False)
    >>> leaf.database
    'movies'
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    database: str = Field(default="neo4j", min_length=1, description="Target database name")
    auto_routing: bool = Field(default=False, description="Route statements across the cluster")

    def with_auto_routing(self, enabled: bool) -> Self:
        """Return a copy of this config with auto-routing switched on or off.

        Parameters
        ----------
        enabled
            Whether connections created from the copy route on their own.

        Returns
        -------
        Self
            A new config; this instance is left unchanged.
        """
        return self.model_copy(update={"auto_routing": enabled})


class RoutingConfig(BaseModel):
    """Settings for routing table discovery."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    discovery_query: str = Field(
        default=DEFAULT_DISCOVERY_QUERY,
        min_length=1,
        description="Procedure call that returns the routing table",
    )
    discovery_retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Retry policy for the discovery call (single attempt by default)",
    )
