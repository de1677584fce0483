"""Propagation scheduler — recomputes dirty expressions in rank order.

Ranks strictly increase from source to sink, so draining the dirty set
lowest-rank-first means no expression recomputes before every source it
depends on has settled within the same pass. That keeps updates glitch-free
and each expression runs at most once per wave of changes.
"""

from __future__ import annotations

import heapq
import logging
from typing import TYPE_CHECKING, Iterable

from cellflow._tracking import current_frame

if TYPE_CHECKING:
    from cellflow.expression import Expression

logger = logging.getLogger("cellflow.scheduler")


class DirtyQueue:
    """Priority set of expressions ordered by (rank, uid), without duplicates.

    The rank is read when an expression is pushed. Pushing a queued
    expression again after its rank changed moves it to the new rank; the
    entry left behind at the old rank is skipped when popped.
    """

    __slots__ = ("_heap", "_members")

    def __init__(self, items: Iterable[Expression] = ()) -> None:
        self._heap: list[tuple[int, int, Expression]] = []
        self._members: dict[Expression, int] = {}
        self.update(items)

    def push(self, node: Expression) -> None:
        if self._members.get(node) == node.rank:
            return
        self._members[node] = node.rank
        heapq.heappush(self._heap, (node.rank, node.uid, node))

    def update(self, nodes: Iterable[Expression]) -> None:
        for node in nodes:
            self.push(node)

    def pop(self) -> Expression:
        """Remove and return the lowest-ranked expression."""
        while True:
            rank, _, node = heapq.heappop(self._heap)
            if self._members.get(node) == rank:
                del self._members[node]
                return node

    def __contains__(self, node: object) -> bool:
        return node in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __bool__(self) -> bool:
        return bool(self._members)

    def __repr__(self) -> str:
        return f"DirtyQueue({sorted(self._members, key=lambda n: (self._members[n], n.uid))!r})"


def propagate(queue: DirtyQueue) -> list[Expression]:
    """Recompute every dirty expression in `queue`; return all visited expressions.

    An expression whose value changed pushes its sinks onto the queue; an
    unchanged one stops the cascade (cutoff). The queue may also grow while
    draining, from writes made by watchers or getters. The visited list seeds
    the collector.
    """
    visited: list[Expression] = []
    # Recomputes are never dependencies of whatever happens to be running.
    token = current_frame.set(None)
    try:
        while queue:
            node = queue.pop()
            old = node._state
            node._compute()
            visited.append(node)
            if node._state is not old:
                queue.update(node._sinks)
    finally:
        current_frame.reset(token)
    if visited:
        logger.debug("Propagated %d expression(s)", len(visited))
    return visited
