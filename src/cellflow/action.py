"""Actions and transactions — batched state mutations.

Every write enqueues the sinks it invalidates into the active transaction
instead of recomputing them on the spot. When the outermost transaction
exits, one propagation pass recomputes everything that is dirty, then one
collection pass reclaims whatever that left unobserved. Dependents never see
a state where some writes of the batch have landed and others haven't.

If the body (or a getter during propagation) raises, the transaction is
abandoned without settling and without rollback: expressions already
recomputed keep their new values.
"""

from __future__ import annotations

import functools
from typing import TypeVar, Callable, ParamSpec
from contextlib import contextmanager
from cellflow._tracking import Transaction, current_transaction
from cellflow.scheduler import DirtyQueue, propagate
from cellflow.collector import collect

P = ParamSpec("P")
R = TypeVar("R")


def in_transaction() -> bool:
    return current_transaction.get() is not None


@contextmanager
def transaction():
    """Context manager for batching mutations.

    Nested transactions join the outermost one; only it settles.

    Usage:
        with transaction():
            counter_a.set(1)
            counter_b.set(2)
            # expressions recompute here, after both are set
    """
    if current_transaction.get() is not None:
        yield
        return

    txn = Transaction(DirtyQueue())
    token = current_transaction.set(txn)
    try:
        yield
        # Still inside the transaction: writes and reclamation requests made
        # by watchers or getters during the pass join it.
        txn.dirty_sources.update(propagate(txn.dirty_sinks))
    finally:
        current_transaction.reset(token)
    collect(txn.dirty_sources)


def run_transaction(fn: Callable[P, R], *args: P.args, **kwargs: P.kwargs) -> R:
    """Call fn inside a transaction and return its result."""
    with transaction():
        return fn(*args, **kwargs)


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all writes inside fn into one transaction.

    Usage:
        a = Cell(0)
        b = Cell(0)

        @action
        def swap_cells():
            old_a, old_b = a.get(), b.get()
            a.set(old_b)
            b.set(old_a)
            # dependents see both changes at once, not one at a time
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return run_transaction(fn, *args, **kwargs)

    return wrapper
