"""Read/write partitioning of statement batches.

A statement is a write when its text contains any of the write keywords as a
plain substring anywhere in the (possibly multi-line) text. Matching is
case-sensitive, so ``Dataset`` or ``createdAt`` stay reads while ``OFFSET``
or ``CREATED_AT`` count as writes and go to a leader. This is a cheap check,
not a parse.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ...core.enums import AccessMode
from .models import IndexedStatement, Statement

if TYPE_CHECKING:
    from collections.abc import Iterable

WRITE_KEYWORDS: tuple[str, ...] = ("CREATE", "SET", "MERGE", "DELETE", "CALL")

_WRITE_PATTERN = re.compile("|".join(WRITE_KEYWORDS), re.MULTILINE)


def is_write_statement(statement: Statement) -> bool:
    return _WRITE_PATTERN.search(statement.text) is not None


def access_mode(statement: Statement) -> AccessMode:
    return AccessMode.WRITE if is_write_statement(statement) else AccessMode.READ


class ClassifiedStatements(BaseModel):
    """A batch split into reads and writes, keyed by original position.

    Every input statement lives in exactly one of the two mappings, and each
    mapping keeps input order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    reads: dict[int, Statement] = Field(default_factory=dict)
    writes: dict[int, Statement] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.reads) + len(self.writes)

    def indexed_reads(self) -> tuple[IndexedStatement, ...]:
        return tuple(IndexedStatement(index=i, statement=s) for i, s in self.reads.items())

    def indexed_writes(self) -> tuple[IndexedStatement, ...]:
        return tuple(IndexedStatement(index=i, statement=s) for i, s in self.writes.items())


def classify_statements(statements: Iterable[Statement]) -> ClassifiedStatements:
    """Partition ``statements`` into reads and writes.

    Parameters
    ----------
    statements
        The caller's batch, in order. May be empty.

    Returns
    -------
    ClassifiedStatements
        Two insertion-ordered mappings from original index to statement.

    Examples
    --------
    >>> batch = [Statement(text="MATCH (n) RETURN n"), Statement(text="MERGE (n:X) RETURN n")]
    >>> classified = classify_statements(batch)
    >>> list(classified.reads), list(classified.writes)
    ([0], [1])
    """
    reads: dict[int, Statement] = {}
    writes: dict[int, Statement] = {}
    for index, statement in enumerate(statements):
        if access_mode(statement) is AccessMode.WRITE:
            writes[index] = statement
        else:
            reads[index] = statement

    return ClassifiedStatements(reads=reads, writes=writes)
