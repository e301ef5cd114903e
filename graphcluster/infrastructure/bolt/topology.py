"""Routing table cache and connection pool rebuild.

`TopologyManager` owns the only mutable state of the routing layer: the
published `TopologySnapshot`. A snapshot bundles the routing table, the pool
built from that same table, and the selector bounded by it. Refresh builds a
complete new snapshot off to the side and publishes it with one assignment,
so no caller can observe a table without its matching pool.

State
-----
- ``UNINITIALIZED``: nothing published yet (or closed)
- ``READY``: a snapshot is published and the last refresh succeeded
- ``STALE_REFRESH_FAILED``: a snapshot is published but the last refresh
  failed; the next `aensure_fresh` retries discovery
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ...core.enums import RoutingRole, SessionState
from ...logger import get_logger
from ...resilience import retry
from .config import BoltConfig, RoutingConfig
from .exceptions import RoutingDiscoveryError, TopologyNotInitializedError
from .health import TopologyHealthResult
from .models import ROUTED_ROLES, DiscoveryResponse, RoutingTable, Statement
from .selector import ConnectionSelector, connection_alias
from .urls import UrlParts, rebuild_url

if TYPE_CHECKING:
    import random
    from collections.abc import Callable, Sequence

    from .contracts import Client, ClientBuilderFactory, Session, StatementResult

logger = get_logger(__name__)


class ConnectionPool:
    """A built client plus the aliases registered on it, per role."""

    __slots__ = ("client", "follower_aliases", "leader_aliases")

    def __init__(self, client: Client, leader_aliases: tuple[str, ...], follower_aliases: tuple[str, ...]) -> None:
        self.client = client
        self.leader_aliases = leader_aliases
        self.follower_aliases = follower_aliases

    def aliases(self, role: RoutingRole) -> tuple[str, ...]:
        return self.leader_aliases if role is RoutingRole.LEADER else self.follower_aliases


class TopologySnapshot:
    """Routing table, pool and selector from one discovery response.

    Callers hold on to the snapshot for the whole dispatch, so a concurrent
    refresh never swaps the pool out from under a single call.
    """

    __slots__ = ("pool", "selector", "table")

    def __init__(self, table: RoutingTable, pool: ConnectionPool, selector: ConnectionSelector) -> None:
        self.table = table
        self.pool = pool
        self.selector = selector


class TopologyManager:
    """Lazily discovers the cluster topology and keeps it fresh.

    Examples
    --------
    >>> manager = TopologyManager(reference_session, lambda: SessionClientBuilder(factory), "bolt://u:p@core-1")
    >>> snapshot = await manager.aensure_fresh()
    >>> await snapshot.pool.client.arun_statements(statements, snapshot.selector.pick_read_alias())
    """

    __slots__ = (
        "_base_url",
        "_client_builder_factory",
        "_clock",
        "_config",
        "_discovery_count",
        "_fetch_discovery_results",
        "_refresh_failed",
        "_refresh_lock",
        "_reference_session",
        "_rng",
        "_routing_config",
        "_snapshot",
    )

    def __init__(
        self,
        reference_session: Session,
        client_builder_factory: ClientBuilderFactory,
        base_url: UrlParts | str,
        config: BoltConfig | None = None,
        routing_config: RoutingConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        """Create a manager; nothing is fetched until first use.

        Parameters
        ----------
        reference_session
            A session that does not route on its own, used only to run the
            discovery call against any reachable cluster member.
        client_builder_factory
            Returns a fresh, empty client builder for every pool rebuild.
        base_url
            URL the caller configured; its scheme and credentials carry over
            to every discovered member.
        config
            Connection settings; leaf connections get a copy with
            auto-routing disabled.
        routing_config
            Discovery query and discovery retry policy.
        clock
            Seconds on a monotonic scale; routing table expiry is measured on it.
        rng
            Random source for alias selection.
        """
        self._reference_session = reference_session
        self._client_builder_factory = client_builder_factory
        self._base_url = UrlParts.parse(base_url) if isinstance(base_url, str) else base_url
        self._config = config or BoltConfig()
        self._routing_config = routing_config or RoutingConfig()
        self._clock = clock
        self._rng = rng

        self._snapshot: TopologySnapshot | None = None
        self._refresh_failed = False
        self._discovery_count = 0
        self._refresh_lock = asyncio.Lock()
        self._fetch_discovery_results = retry(self._routing_config.discovery_retry)(self._arun_discovery)

    @property
    def snapshot(self) -> TopologySnapshot | None:
        return self._snapshot

    def require_snapshot(self) -> TopologySnapshot:
        """Return the published snapshot, fresh or not.

        Raises
        ------
        TopologyNotInitializedError
            If no refresh has succeeded yet.
        """
        snapshot = self._snapshot
        if snapshot is None:
            msg = "Topology not initialized. Call aensure_fresh() first."
            raise TopologyNotInitializedError(msg)
        return snapshot

    @property
    def state(self) -> SessionState:
        if self._snapshot is None:
            return SessionState.UNINITIALIZED
        if self._refresh_failed:
            return SessionState.STALE_REFRESH_FAILED
        return SessionState.READY

    @property
    def discovery_count(self) -> int:
        """Number of discovery calls issued, successful or not."""
        return self._discovery_count

    @property
    def config(self) -> BoltConfig:
        return self._config

    async def ainitialize(self) -> None:
        """Fetch the routing table now instead of on first use. Idempotent."""
        await self.aensure_fresh()

    async def aensure_fresh(self) -> TopologySnapshot:
        """Return a snapshot whose routing table has not expired.

        Discovery runs only when nothing is published yet or the published
        table has expired. Concurrent callers that all find the table stale
        wait on one lock and share the single refresh.

        Raises
        ------
        RoutingDiscoveryError
            If a required refresh fails. The previous snapshot, if any,
            stays published.
        """
        # a failure is reported for the failing call only
        self._refresh_failed = False
        snapshot = self._snapshot
        if snapshot is not None and not snapshot.table.is_expired(self._clock()):
            return snapshot

        async with self._refresh_lock:
            snapshot = self._snapshot
            if snapshot is not None and not snapshot.table.is_expired(self._clock()):
                return snapshot
            return await self._arefresh_locked()

    async def arefresh(self) -> TopologySnapshot:
        """Refresh unconditionally, even when the published table is fresh."""
        self._refresh_failed = False
        async with self._refresh_lock:
            return await self._arefresh_locked()

    async def aclose(self) -> None:
        """Drop the published snapshot and close its client if it can be closed."""
        async with self._refresh_lock:
            snapshot, self._snapshot = self._snapshot, None
            self._refresh_failed = False

        if snapshot is None:
            return

        aclose = getattr(snapshot.pool.client, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("Topology closed", leaders=snapshot.table.leader_count, followers=snapshot.table.follower_count)

    async def ahealth_check(self) -> TopologyHealthResult:
        """Grade the published topology without issuing a discovery call."""
        snapshot = self._snapshot
        if snapshot is None:
            return TopologyHealthResult.initializing()

        return TopologyHealthResult.from_counts(
            state=self.state,
            leader_count=snapshot.table.leader_count,
            follower_count=snapshot.table.follower_count,
            expires_in_s=snapshot.table.expires_at - self._clock(),
        )

    async def _arefresh_locked(self) -> TopologySnapshot:
        logger.debug("Refreshing routing table", database=self._config.database)
        try:
            response = await self._adiscover()
            now = self._clock()
            table = RoutingTable.from_servers(response.servers, expires_at=now + response.ttl)
            pool = self._build_pool(table)
        except RoutingDiscoveryError as e:
            self._refresh_failed = self._snapshot is not None
            logger.warning(
                "Routing table refresh failed",
                database=self._config.database,
                state=self.state,
                error=str(e),
            )
            raise

        snapshot = TopologySnapshot(table, pool, ConnectionSelector.for_table(table, rng=self._rng))
        self._snapshot = snapshot
        self._refresh_failed = False

        logger.info(
            "Routing table refreshed",
            database=self._config.database,
            leaders=table.leader_count,
            followers=table.follower_count,
            ttl=response.ttl,
        )
        return snapshot

    async def _arun_discovery(self) -> Sequence[StatementResult]:
        self._discovery_count += 1
        statement = Statement(
            text=self._routing_config.discovery_query,
            parameters={"context": {}, "database": self._config.database},
        )
        return await self._reference_session.arun([statement])

    async def _adiscover(self) -> DiscoveryResponse:
        try:
            results = await self._fetch_discovery_results()
        except Exception as e:
            raise RoutingDiscoveryError(f"Discovery call failed: {e}") from e

        record = _first_record(results)
        try:
            return DiscoveryResponse.from_record(record)
        except ValidationError as e:
            raise RoutingDiscoveryError(f"Malformed routing table: {e}") from e

    def _build_pool(self, table: RoutingTable) -> ConnectionPool:
        leaf_config = self._config.with_auto_routing(False)
        aliases: dict[RoutingRole, list[str]] = {role: [] for role in ROUTED_ROLES}

        try:
            builder = self._client_builder_factory()
            for role in ROUTED_ROLES:
                for index, address in enumerate(table.with_role(role)):
                    alias = connection_alias(role, index)
                    builder = builder.with_connection(alias, rebuild_url(self._base_url, address), leaf_config)
                    aliases[role].append(alias)
            client = builder.build()
        except Exception as e:
            raise RoutingDiscoveryError(f"Failed to build connection pool: {e}") from e

        return ConnectionPool(
            client,
            leader_aliases=tuple(aliases[RoutingRole.LEADER]),
            follower_aliases=tuple(aliases[RoutingRole.FOLLOWER]),
        )


def _first_record(results: Sequence[Any]) -> Mapping[str, Any]:
    if not results:
        raise RoutingDiscoveryError("Discovery call returned no result")

    records = results[0]
    if not records:
        raise RoutingDiscoveryError("Discovery call returned no record")

    record = records[0]
    if not isinstance(record, Mapping):
        raise RoutingDiscoveryError(f"Discovery record is not a mapping: {type(record).__name__}")
    return record
