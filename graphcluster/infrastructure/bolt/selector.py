from __future__ import annotations

import random
from typing import TYPE_CHECKING, Self

from ...core.enums import RoutingRole
from .exceptions import NoAvailableRoleError

if TYPE_CHECKING:
    from .models import RoutingTable

LEADER_ALIAS_PREFIX = "leader"
FOLLOWER_ALIAS_PREFIX = "follower"


def connection_alias(role: RoutingRole, index: int) -> str:
    """Name a pool connection after its role and its index in that role.

    Examples
    --------
    >>> connection_alias(RoutingRole.FOLLOWER, 2)
    'follower-2'
    """
    prefix = LEADER_ALIAS_PREFIX if role is RoutingRole.LEADER else FOLLOWER_ALIAS_PREFIX
    return f"{prefix}-{index}"


class ConnectionSelector:
    """Uniform random choice of a connection alias within one role.

    Selection is stateless (no round-robin counter), so one selector can be
    shared by concurrent callers without a lock.
    """

    __slots__ = ("_max_follower_index", "_max_leader_index", "_rng")

    def __init__(
        self,
        max_leader_index: int | None,
        max_follower_index: int | None,
        rng: random.Random | None = None,
    ) -> None:
        self._max_leader_index = max_leader_index
        self._max_follower_index = max_follower_index
        self._rng = rng or random.Random()

    @classmethod
    def for_table(cls, table: RoutingTable, rng: random.Random | None = None) -> Self:
        """Bound the selector by the role counts of ``table``; an empty role has no bound."""
        return cls(
            max_leader_index=table.leader_count - 1 if table.leader_count else None,
            max_follower_index=table.follower_count - 1 if table.follower_count else None,
            rng=rng,
        )

    @property
    def max_leader_index(self) -> int | None:
        return self._max_leader_index

    @property
    def max_follower_index(self) -> int | None:
        return self._max_follower_index

    def pick_write_alias(self) -> str:
        """Return ``leader-{k}`` for a uniformly drawn ``k``.

        Raises
        ------
        NoAvailableRoleError
            If the routing table holds no leader.
        """
        return self._pick(RoutingRole.LEADER, self._max_leader_index)

    def pick_read_alias(self) -> str:
        """Return ``follower-{k}`` for a uniformly drawn ``k``.

        Raises
        ------
        NoAvailableRoleError
            If the routing table holds no follower.
        """
        return self._pick(RoutingRole.FOLLOWER, self._max_follower_index)

    def _pick(self, role: RoutingRole, max_index: int | None) -> str:
        if max_index is None:
            raise NoAvailableRoleError(role)
        return connection_alias(role, self._rng.randint(0, max_index))
