"""Error hierarchy for cluster routing.

Errors raised by the session or transaction collaborators are never wrapped
in these types; they propagate unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...core.enums import RoutingRole


class GraphClusterError(Exception):
    """Base class for every error raised by the routing layer."""


class RoutingDiscoveryError(GraphClusterError):
    """The routing table could not be fetched or was malformed.

    The previously published routing table (if any) is left untouched and
    discovery is attempted again on the next call.
    """


class NoAvailableRoleError(GraphClusterError):
    """The last discovery returned no server for the requested role."""

    def __init__(self, role: RoutingRole) -> None:
        self.role = role
        super().__init__(f"No {role.value} server available in the current routing table")


class TopologyNotInitializedError(GraphClusterError):
    """The topology was accessed before any successful refresh."""


class ResultCountMismatchError(GraphClusterError):
    """A connection returned a different number of results than statements sent."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"Expected {expected} results but received {received}")


class UnknownConnectionAliasError(GraphClusterError, KeyError):
    """The client holds no connection under the requested alias."""

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(alias)

    def __str__(self) -> str:
        return f"No connection registered under alias {self.alias!r}"
