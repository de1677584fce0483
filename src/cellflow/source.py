"""Source — the capability shared by everything a getter can depend on.

Cells and Expressions both implement it. The scheduler orders work by
`(rank, uid)`, so every source carries a stable integer uid.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from cellflow.expression import Expression

T = TypeVar("T")

Watcher = Callable[[Any, "Source", Any, Any], None]

# itertools.count is thread-safe (C-level GIL atomic)
_uid_counter = itertools.count(1)


class Source(ABC, Generic[T]):
    """Anything dependency-trackable: exposes a rank and its dependent sinks."""

    __slots__ = ("uid", "_sinks", "_watchers")

    def __init__(self) -> None:
        self.uid = next(_uid_counter)
        self._sinks: set[Expression] = set()
        self._watchers: dict[Any, Watcher] = {}

    @property
    @abstractmethod
    def rank(self) -> int:
        """Topological depth. Always lower than the rank of every sink."""

    @property
    def sinks(self) -> frozenset[Expression]:
        return frozenset(self._sinks)

    @property
    def watchers(self) -> dict[Any, Watcher]:
        return dict(self._watchers)

    @abstractmethod
    def get(self) -> T:
        """Read the value, registering a dependency if a getter is running."""

    @abstractmethod
    def peek(self) -> T:
        """Read the current value without registering a dependency."""

    @abstractmethod
    def swap(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Write `fn(current, *args, **kwargs)` back into this source."""

    def add_watch(self, key: Any, fn: Watcher) -> Source[T]:
        """Call `fn(key, source, old, new)` whenever the value changes."""
        self._watchers[key] = fn
        return self

    def remove_watch(self, key: Any) -> Source[T]:
        self._watchers.pop(key, None)
        return self

    def _notify_watches(self, old: Any, new: Any) -> None:
        for key, fn in list(self._watchers.items()):
            fn(key, self, old, new)

    def _add_sink(self, sink: Expression) -> None:
        self._sinks.add(sink)

    def _remove_sink(self, sink: Expression) -> None:
        self._sinks.discard(sink)
