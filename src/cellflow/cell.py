"""Cells — root mutable state that tracks its readers.

When a Cell is read inside an Expression's getter, the dependency is
registered automatically. When the Cell changes, its watchers fire and all
dependent expressions are enqueued in the active transaction, which
recomputes them when it settles. A write outside any transaction opens (and
settles) its own.

Thread safety: call set_scheduler() once from the owner thread. After that,
any .set() from another thread is auto-marshaled. Owner-thread .set()
remains synchronous.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, TypeVar
from cellflow._tracking import current_transaction, register
from cellflow.action import run_transaction
from cellflow.source import Source

T = TypeVar("T")

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread Cell writes.

    Call once from the thread that owns the graph:
        cellflow.set_scheduler(loop.call_soon_threadsafe)

    After this, any Cell.set() from another thread is automatically
    marshaled. Owner-thread writes remain synchronous. Pass None to remove it.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


class Cell(Source[T]):
    """A single mutable value with automatic dependency tracking. Rank is always 0."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    @property
    def rank(self) -> int:
        return 0

    def get(self) -> T:
        """Read the value. If inside a getter, registers the dependency."""
        register(self)
        return self._value

    def peek(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Auto-marshals from foreign threads."""
        if _scheduler is not None and threading.current_thread() != _scheduler_thread:
            _scheduler(lambda v=value: self._set_direct(v))
        else:
            self._set_direct(value)

    def swap(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Set the value to fn(current, *args, **kwargs) and return it."""
        value = fn(self._value, *args, **kwargs)
        self.set(value)
        return value

    def _set_direct(self, value: T) -> None:
        """Set value and notify. Always runs on the scheduler thread."""
        run_transaction(self._write, value)

    def _write(self, value: T) -> None:
        old = self._value
        if old is not value and old != value:
            self._value = value
            current_transaction.get().dirty_sinks.update(self._sinks)
            self._notify_watches(old, value)

    def __repr__(self) -> str:
        return f"Cell({self._value!r})"
