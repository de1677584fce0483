"""Dependency tracking engine — the heart of cellflow.

Uses contextvars to track which expression is currently computing, so that
every source read during a getter registers a dependency edge automatically.

Transactions: writes inside `run_transaction` (or `with transaction()`)
accumulate dirty sinks and reclamation candidates, which the outermost scope
settles once at the end. See cellflow.action.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING

from cellflow import config
from cellflow.errors import CycleError

if TYPE_CHECKING:
    from cellflow.expression import Expression
    from cellflow.scheduler import DirtyQueue
    from cellflow.source import Source


class Frame:
    """The expression presently computing and the highest source rank it has read."""

    __slots__ = ("consumer", "max_rank")

    def __init__(self, consumer: Expression) -> None:
        self.consumer = consumer
        self.max_rank = 0


class Transaction:
    """Accumulators of the outermost active transaction."""

    __slots__ = ("dirty_sinks", "dirty_sources")

    def __init__(self, dirty_sinks: DirtyQueue) -> None:
        self.dirty_sinks = dirty_sinks
        self.dirty_sources: set[Expression] = set()


# When set, any Source.get() call registers itself as a dependency.
current_frame: contextvars.ContextVar[Frame | None] = contextvars.ContextVar(
    "current_frame", default=None
)

# Expressions currently inside their getter, outermost first. Debug mode only.
provenance: contextvars.ContextVar[tuple[Expression, ...]] = contextvars.ContextVar(
    "provenance", default=()
)

current_transaction: contextvars.ContextVar[Transaction | None] = contextvars.ContextVar(
    "current_transaction", default=None
)


def register(source: Source) -> None:
    """Record that the current consumer (if any) read `source`."""
    frame = current_frame.get()
    if frame is None:
        return
    if config.is_debug():
        stack = provenance.get()
        if source in stack:
            raise CycleError(f"cellflow: detected a cycle in computation graph: {chain(stack + (source,))}")
    source._add_sink(frame.consumer)
    frame.consumer._add_source(source)
    if source.rank > frame.max_rank:
        frame.max_rank = source.rank


def chain(nodes) -> str:
    return " -> ".join(node.name for node in nodes)


@contextmanager
def untracked():
    """Run a block with no active consumer. Reads inside register nothing.

    Usage:
        with untracked():
            value = some_cell.get()  # plain read, even inside a getter
    """
    token = current_frame.set(None)
    try:
        yield
    finally:
        current_frame.reset(token)
