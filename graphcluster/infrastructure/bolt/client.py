"""Default alias-to-session pool used when no client builder is supplied."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from ...logger import get_logger
from .exceptions import UnknownConnectionAliasError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .config import BoltConfig
    from .contracts import Session, SessionFactory, StatementResult, Transaction
    from .models import Statement

logger = get_logger(__name__)


class SessionClient:
    """Named leaf sessions, one per connection alias.

    Examples
    --------
    >>> client = SessionClientBuilder(session_factory).with_connection("leader-0", url, config).build()
    >>> results = await client.arun_statements(statements, "leader-0")
    """

    __slots__ = ("_sessions",)

    def __init__(self, sessions: Mapping[str, Session]) -> None:
        self._sessions = dict(sessions)

    @property
    def aliases(self) -> tuple[str, ...]:
        return tuple(self._sessions)

    def session(self, alias: str) -> Session:
        try:
            return self._sessions[alias]
        except KeyError:
            raise UnknownConnectionAliasError(alias) from None

    async def arun_statements(self, statements: Sequence[Statement], alias: str) -> Sequence[StatementResult]:
        return await self.session(alias).arun(statements)

    async def aopen_transaction(self, statements: Sequence[Statement] | None, alias: str) -> Transaction:
        return await self.session(alias).aopen_transaction(statements)

    async def aclose(self) -> None:
        """Close every leaf session that supports closing."""
        for alias, session in self._sessions.items():
            aclose = getattr(session, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception as e:
                logger.warning("Leaf session failed to close", alias=alias, error=str(e))


class SessionClientBuilder:
    """Immutable builder; every `with_connection` returns a new builder."""

    __slots__ = ("_connections", "_session_factory")

    def __init__(
        self,
        session_factory: SessionFactory,
        connections: tuple[tuple[str, str, BoltConfig], ...] = (),
    ) -> None:
        self._session_factory = session_factory
        self._connections = connections

    def with_connection(self, alias: str, url: str, config: BoltConfig) -> Self:
        return type(self)(self._session_factory, (*self._connections, (alias, url, config)))

    def build(self) -> SessionClient:
        sessions = {alias: self._session_factory(url, config) for alias, url, config in self._connections}
        logger.debug("Session client built", aliases=list(sessions))
        return SessionClient(sessions)
