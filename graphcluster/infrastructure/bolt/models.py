"""Typed records exchanged by the routing layer.

- `Statement`: query text plus named parameters, owned by the caller
- `IndexedStatement`: a statement tagged with its position in the caller's batch
- `RoutingServer` / `DiscoveryResponse`: the validated shape of a discovery record
- `RoutingTable`: immutable snapshot of servers grouped by role, with expiry
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

from ...core.enums import RoutingRole

ROUTED_ROLES: tuple[RoutingRole, ...] = (RoutingRole.LEADER, RoutingRole.FOLLOWER)


class Statement(BaseModel):
    """A query statement with its named parameters.

    Examples
    --------
    >>> Statement.create("MATCH (n:User {id: $id}) RETURN n", id=7).parameters
    {'id': 7}
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    text: str = Field(description="Query text, possibly spanning multiple lines")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Named parameters")

    @classmethod
    def create(cls, text: str, **parameters: Any) -> Self:
        return cls(text=text, parameters=parameters)


class IndexedStatement(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    index: int = Field(ge=0, description="Zero-based position in the original batch")
    statement: Statement


class RoutingServer(BaseModel):
    """One entry of the discovery `servers` field."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    addresses: tuple[str, ...]
    role: str


class DiscoveryResponse(BaseModel):
    """The first record returned by the routing table procedure.

    Records may carry extra fields (for example the database name); only
    `servers` and `ttl` are consumed.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    servers: tuple[RoutingServer, ...]
    ttl: int = Field(ge=0, description="Seconds the table stays valid")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls.model_validate(dict(record))


class RoutingTable(BaseModel):
    """Servers grouped by role, valid until `expires_at`.

    Only LEADER and FOLLOWER servers are kept; other roles reported by
    discovery are dropped. Addresses keep the order in which discovery
    reported them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    servers_by_role: dict[RoutingRole, tuple[str, ...]] = Field(default_factory=dict)
    expires_at: float = Field(description="Absolute expiry on the manager's clock, in seconds")

    @classmethod
    def from_servers(cls, servers: Iterable[RoutingServer], expires_at: float) -> Self:
        grouped: dict[RoutingRole, list[str]] = {role: [] for role in ROUTED_ROLES}
        for server in servers:
            if server.role not in grouped:
                continue
            grouped[RoutingRole(server.role)].extend(server.addresses)

        return cls(
            servers_by_role={role: tuple(addresses) for role, addresses in grouped.items()},
            expires_at=expires_at,
        )

    def with_role(self, role: RoutingRole) -> tuple[str, ...]:
        return self.servers_by_role.get(role, ())

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    @property
    def leader_count(self) -> int:
        return len(self.with_role(RoutingRole.LEADER))

    @property
    def follower_count(self) -> int:
        return len(self.with_role(RoutingRole.FOLLOWER))
