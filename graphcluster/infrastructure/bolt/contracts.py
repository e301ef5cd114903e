"""Collaborator contracts consumed by the routing layer.

The routing layer never talks to the wire itself. It drives a `Session`
(one statement batch to one node), a `Transaction` opened on such a session,
and a `Client` built by a `ClientBuilder` that maps connection aliases to
leaf sessions.

A result is a sequence of records and a record is a ``Mapping[str, Any]``;
`Session.arun` returns one result per statement.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from .config import BoltConfig
    from .models import Statement

type StatementResult = Sequence[Any]


@runtime_checkable
class Transaction(Protocol):
    async def arun_statements(self, statements: Sequence[Statement]) -> Sequence[StatementResult]: ...

    async def acommit(self, statements: Sequence[Statement] = ()) -> Sequence[StatementResult]: ...

    async def arollback(self) -> None: ...


@runtime_checkable
class Session(Protocol):
    async def arun(self, statements: Sequence[Statement]) -> Sequence[StatementResult]: ...

    async def aopen_transaction(
        self,
        statements: Sequence[Statement] | None = None,
        alias: str | None = None,
    ) -> Transaction: ...


class Client(Protocol):
    async def arun_statements(self, statements: Sequence[Statement], alias: str) -> Sequence[StatementResult]: ...

    async def aopen_transaction(self, statements: Sequence[Statement] | None, alias: str) -> Transaction: ...


class ClientBuilder(Protocol):
    def with_connection(self, alias: str, url: str, config: BoltConfig) -> Self: ...

    def build(self) -> Client: ...


type SessionFactory = Callable[[str, BoltConfig], Session]
type ClientBuilderFactory = Callable[[], ClientBuilder]
