from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .exceptions import ResultCountMismatchError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .models import Statement

_ABSENT = object()


def weave_results(
    reads: Mapping[int, Statement],
    read_results: Sequence[Any],
    writes: Mapping[int, Statement],
    write_results: Sequence[Any],
) -> list[Any]:
    """Merge per-role results back into the caller's statement order.

    ``read_results`` pairs with ``reads`` in the mapping's stored order, and
    likewise for writes. Position ``p`` of the returned list holds the result
    of the statement that was at position ``p`` in the original batch.

    Raises
    ------
    ResultCountMismatchError
        If a result sequence does not have one entry per dispatched statement.
    """
    for reference, results in ((reads, read_results), (writes, write_results)):
        if len(reference) != len(results):
            raise ResultCountMismatchError(expected=len(reference), received=len(results))

    woven: list[Any] = [_ABSENT] * (len(reads) + len(writes))
    for reference, results in ((reads, read_results), (writes, write_results)):
        for position, result in zip(reference, results, strict=True):
            woven[position] = result

    # an index present in both mappings leaves another slot unfilled
    if any(slot is _ABSENT for slot in woven):
        raise ResultCountMismatchError(expected=len(woven), received=sum(slot is not _ABSENT for slot in woven))

    return woven
