"""Session that routes each statement to a leader or a follower.

Reads go to a random follower and writes to a random leader; results come
back in the caller's order. Transactions always open on a leader unless the
caller names a connection alias.

Partial failure
---------------
Reads are dispatched before writes, and the two dispatches are not atomic
together. If the write dispatch fails after the reads succeeded, the whole
call raises and the read results are discarded::

    await session.arun([read_a, write_b])  # reads ran, write failed -> raises

Usage
-----
>>> session = AutoRoutedSession.from_session_factory(reference_session, connect, "neo4j://admin:pw@core-1:7687")
>>> async with session:
...     names, _ = await session.arun(
...         [
...             Statement.create("MATCH (u:User) RETURN u.name"),
...             Statement.create("CREATE (u:User {name: $name})", name="Alice"),
...         ]
...     )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from ...logger import get_logger
from .classifier import classify_statements
from .client import SessionClientBuilder
from .topology import TopologyManager
from .weaver import weave_results

if TYPE_CHECKING:
    import types
    from collections.abc import Iterable, Sequence

    from ...core.enums import SessionState
    from .config import BoltConfig, RoutingConfig
    from .contracts import ClientBuilderFactory, Session, SessionFactory, StatementResult, Transaction
    from .health import TopologyHealthResult
    from .models import Statement
    from .urls import UrlParts

logger = get_logger(__name__)


class AutoRoutedSession:
    """Session contract on top of a role-unaware pool of leaf connections.

    Attributes
    ----------
    topology : TopologyManager
        Owner of the cached routing table and connection pool.
    """

    __slots__ = ("_topology",)

    def __init__(self, topology: TopologyManager) -> None:
        self._topology = topology

    async def __aenter__(self) -> Self:
        await self.ainitialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        if exc_type is not None and exc_val is not None:
            logger.error(
                "AutoRoutedSession exiting with exception",
                exc_type=exc_type.__name__,
                exc_val=str(exc_val),
            )
        await self.aclose()

    @classmethod
    def create(
        cls,
        reference_session: Session,
        client_builder_factory: ClientBuilderFactory,
        url: UrlParts | str,
        config: BoltConfig | None = None,
        routing_config: RoutingConfig | None = None,
    ) -> Self:
        """Create a session (not yet initialized) routing through ``reference_session``.

        Parameters
        ----------
        reference_session
            Non-routing session used only for the discovery call.
        client_builder_factory
            Returns an empty client builder; called once per pool rebuild.
        url
            Base URL; its scheme and credentials are reused for every
            discovered member.
        config
            Connection settings shared with the leaf connections.
        routing_config
            Discovery settings.

        Returns
        -------
        Self
            A new AutoRoutedSession; discovery happens on first use.
        """
        topology = TopologyManager(
            reference_session,
            client_builder_factory,
            url,
            config=config,
            routing_config=routing_config,
        )
        return cls(topology)

    @classmethod
    def from_session_factory(
        cls,
        reference_session: Session,
        session_factory: SessionFactory,
        url: UrlParts | str,
        config: BoltConfig | None = None,
        routing_config: RoutingConfig | None = None,
    ) -> Self:
        """Create a session whose pool opens one leaf session per alias via ``session_factory``."""
        return cls.create(
            reference_session,
            lambda: SessionClientBuilder(session_factory),
            url,
            config=config,
            routing_config=routing_config,
        )

    @property
    def topology(self) -> TopologyManager:
        return self._topology

    @property
    def state(self) -> SessionState:
        return self._topology.state

    async def ainitialize(self) -> None:
        await self._topology.ainitialize()

    async def aclose(self) -> None:
        await self._topology.aclose()
        logger.info("AutoRoutedSession closed")

    async def ahealth_check(self) -> TopologyHealthResult:
        return await self._topology.ahealth_check()

    def pick_read_alias(self) -> str:
        """Pick a follower alias from the published topology, without refreshing it."""
        return self._topology.require_snapshot().selector.pick_read_alias()

    def pick_write_alias(self) -> str:
        """Pick a leader alias from the published topology, without refreshing it."""
        return self._topology.require_snapshot().selector.pick_write_alias()

    async def arun(self, statements: Iterable[Statement]) -> list[StatementResult]:
        """Run a batch, reads on a follower and writes on a leader.

        Parameters
        ----------
        statements
            The batch, in the order results should come back.

        Returns
        -------
        list[StatementResult]
            One result per statement, at the statement's original position.

        Raises
        ------
        RoutingDiscoveryError
            If the routing table had to be refreshed and discovery failed.
        NoAvailableRoleError
            If the batch needs a role the cluster currently lacks. Raised
            before anything is dispatched.
        """
        snapshot = await self._topology.aensure_fresh()
        classified = classify_statements(statements)

        # aliases are picked up front so a missing role fails before any dispatch
        read_alias = snapshot.selector.pick_read_alias() if classified.reads else None
        write_alias = snapshot.selector.pick_write_alias() if classified.writes else None

        read_results: Sequence[Any] = ()
        write_results: Sequence[Any] = ()
        if read_alias is not None:
            logger.debug("Dispatching reads", alias=read_alias, statements=len(classified.reads))
            read_results = await snapshot.pool.client.arun_statements(list(classified.reads.values()), read_alias)
        if write_alias is not None:
            logger.debug("Dispatching writes", alias=write_alias, statements=len(classified.writes))
            write_results = await snapshot.pool.client.arun_statements(list(classified.writes.values()), write_alias)

        return weave_results(classified.reads, read_results, classified.writes, write_results)

    async def arun_statement(self, statement: Statement) -> StatementResult:
        results = await self.arun([statement])
        return results[0]

    async def aopen_transaction(
        self,
        statements: Iterable[Statement] | None = None,
        alias: str | None = None,
    ) -> Transaction:
        """Open a transaction on ``alias``, or on a random leader when none is given.

        Statements inside a transaction are not classified, so transactions
        default to a leader.
        """
        snapshot = await self._topology.aensure_fresh()
        target = alias if alias is not None else snapshot.selector.pick_write_alias()
        logger.debug("Opening transaction", alias=target)
        initial = list(statements) if statements is not None else None
        return await snapshot.pool.client.aopen_transaction(initial, target)

    async def arun_over_transaction(
        self,
        transaction: Transaction,
        statements: Iterable[Statement],
    ) -> Sequence[StatementResult]:
        return await transaction.arun_statements(list(statements))

    async def acommit_transaction(
        self,
        transaction: Transaction,
        statements: Iterable[Statement] = (),
    ) -> Sequence[StatementResult]:
        return await transaction.acommit(list(statements))

    async def arollback_transaction(self, transaction: Transaction) -> None:
        await transaction.arollback()
