"""Garbage collector — reclaims expressions nothing observes any more.

An expression with no sinks and no watchers is disconnected from its
sources, reset to UNREALIZED and its drop callbacks fire. Reclaiming it can
leave its own sources unobserved, so collection cascades upstream.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from cellflow.expression import Expression

logger = logging.getLogger("cellflow.collector")


def collect(candidates: Iterable[Expression]) -> None:
    """Collect every unobserved expression among `candidates`.

    Candidates are visited highest rank first, the reverse of propagation
    order, so downstream dead expressions are freed before the upstream
    expressions they were keeping alive are reconsidered.
    """
    for node in sorted(candidates, key=lambda n: (n.rank, n.uid), reverse=True):
        node._collect()


def reclaim(node: Expression) -> None:
    """Disconnect and reset `node`, cascading to sources it was the last reader of."""
    from cellflow.expression import UNREALIZED, Expression

    sources = list(node._sources)
    node._sources = set()
    for source in sources:
        source._remove_sink(node)
        if isinstance(source, Expression):
            source._collect()
    node._state = UNREALIZED
    logger.debug("Reclaimed %r", node)
    node._notify_drops()
