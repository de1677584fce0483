"""Expressions — derived state with automatic dependency tracking.

An Expression wraps a getter. When it computes, it tracks which sources the
getter reads, caches the result and takes a rank one above the highest
source it read. When any source changes, the enclosing transaction
recomputes it in rank order; if the new value equals the cached one, nothing
downstream is invalidated and its watchers stay quiet.

Expressions are lazy until first read or watched, and are reclaimed again
(reset to UNREALIZED, drop callbacks fired) once nothing reads or watches
them. An optional setter makes an expression writable, see lens().
"""

from __future__ import annotations

import warnings
from collections.abc import Iterator, Mapping
from typing import Any, Callable, TypeVar
from cellflow import config
from cellflow._tracking import Frame, chain, current_frame, current_transaction, provenance, register
from cellflow.action import run_transaction
from cellflow.collector import reclaim
from cellflow.errors import CycleError, MissingSetterError, ValidationRejectedError, UnrealizedValueWarning
from cellflow.source import Source, Watcher

T = TypeVar("T")

DropCallback = Callable[[Any, "Expression"], None]


class _Unrealized:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNREALIZED"


# State of an expression that was never computed or has just been reclaimed.
UNREALIZED: Any = _Unrealized()


def _fully_realized(value: Any, seen: set[int] | None = None) -> bool:
    if isinstance(value, (str, bytes, bytearray)):
        return True
    if isinstance(value, Iterator):
        return False
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        if seen is None:
            seen = set()
        if id(value) in seen:
            return True
        seen.add(id(value))
        items = value.values() if isinstance(value, Mapping) else value
        return all(_fully_realized(v, seen) for v in items)
    return True


class Expression(Source[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_getter", "_setter", "_validator", "_name", "_state", "_rank", "_sources", "_drops")

    def __init__(
        self,
        getter: Callable[[], T],
        setter: Callable[[T], Any] | None = None,
        validator: Callable[[T], bool] | None = None,
        *,
        name: str | None = None,
    ) -> None:
        super().__init__()
        self._getter = getter
        self._setter = setter
        self._validator = validator
        self._name = name
        self._state: Any = UNREALIZED
        self._rank = 0
        self._sources: set[Source] = set()
        self._drops: dict[Any, DropCallback] = {}

    @property
    def name(self) -> str:
        return self._name or getattr(self._getter, "__name__", "expression")

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def sources(self) -> frozenset[Source]:
        return frozenset(self._sources)

    @property
    def realized(self) -> bool:
        return self._state is not UNREALIZED

    @property
    def writable(self) -> bool:
        return self._setter is not None

    def get(self) -> T:
        """Read the value. Computes it first if unrealized."""
        if self._state is UNREALIZED:
            self._compute()
        register(self)
        return self._state

    def peek(self) -> T:
        """The cached value (or UNREALIZED), without computing or registering."""
        return self._state

    def _compute(self) -> T:
        """Re-run the getter, re-tracking dependencies and rank."""
        txn = current_transaction.get()
        for source in self._sources:
            source._remove_sink(self)
            # Sources this run no longer reads get reviewed at settlement.
            if txn is not None and isinstance(source, Expression):
                txn.dirty_sources.add(source)
        self._sources = set()

        debug = config.is_debug()
        stack = provenance.get()
        if debug and self in stack:
            raise CycleError(f"cellflow: detected a cycle in computation graph: {chain(stack + (self,))}")

        old = self._state
        frame = Frame(self)
        frame_token = current_frame.set(frame)
        stack_token = provenance.set(stack + (self,)) if debug else None
        try:
            new = self._getter()
            if debug and not _fully_realized(new):
                warnings.warn(
                    f"cellflow: {chain(provenance.get())} returned a value that is not fully "
                    f"realized; sources read inside its lazy parts are not tracked: {new!r}",
                    UnrealizedValueWarning,
                    stacklevel=2,
                )
        finally:
            current_frame.reset(frame_token)
            if stack_token is not None:
                provenance.reset(stack_token)

        old_rank = self._rank
        self._rank = frame.max_rank + 1 if self._sources else 0
        if self._rank > old_rank:
            self._raise_sink_ranks()
        if old is UNREALIZED or (old is not new and old != new):
            self._state = new
            self._notify_watches(old, new)
        return self._state

    def _raise_sink_ranks(self) -> None:
        """Lift downstream ranks so every sink stays above its sources.

        Sinks already queued in the active transaction move to their new rank.
        """
        txn = current_transaction.get()
        pending = [self]
        while pending:
            source = pending.pop()
            for sink in source._sinks:
                if sink is self or sink._rank > source._rank:
                    continue
                sink._rank = source._rank + 1
                if txn is not None and sink in txn.dirty_sinks:
                    txn.dirty_sinks.push(sink)
                pending.append(sink)

    def _collect(self) -> None:
        """Reclaim this expression if nothing observes it. Deferred inside a transaction."""
        txn = current_transaction.get()
        if txn is not None:
            txn.dirty_sources.add(self)
            return
        if self._sinks or self._watchers:
            return
        if self._state is UNREALIZED and not self._sources:
            return  # already reclaimed
        reclaim(self)

    def _add_source(self, source: Source) -> None:
        self._sources.add(source)

    # --- Writing ---

    def reset(self, value: T) -> T:
        """Write value back through the setter, inside a transaction."""
        if self._setter is None:
            raise MissingSetterError(f"Can't reset {self!r} without a setter")
        if self._validator is not None and not self._validator(value):
            raise ValidationRejectedError(f"Validator rejected {value!r} for {self!r}")
        run_transaction(self._setter, value)
        return value

    def swap(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """reset() to fn(current, *args, **kwargs)."""
        if self._state is UNREALIZED:
            self._compute()
        return self.reset(fn(self._state, *args, **kwargs))

    # --- Observers ---

    def add_watch(self, key: Any, fn: Watcher) -> Expression[T]:
        """Watch for value changes. Realizes the expression and keeps it alive."""
        if self._state is UNREALIZED:
            self._compute()
        return super().add_watch(key, fn)

    def remove_watch(self, key: Any) -> Expression[T]:
        super().remove_watch(key)
        self._collect()
        return self

    def add_drop(self, key: Any, fn: DropCallback) -> Expression[T]:
        """Call fn(key, expression) when this expression is reclaimed."""
        self._drops[key] = fn
        return self

    def remove_drop(self, key: Any) -> Expression[T]:
        self._drops.pop(key, None)
        return self

    def _notify_drops(self) -> None:
        for key, fn in list(self._drops.items()):
            fn(key, self)

    def __repr__(self) -> str:
        state = "unrealized" if self._state is UNREALIZED else f"cached={self._state!r}"
        return f"Expression({self.name}, {state})"


def expression(fn: Callable[[], T]) -> Expression[T]:
    """Decorator/factory to create a read-only Expression from a getter.

    Usage:
        counter = Cell(0)

        @expression
        def doubled():
            return counter.get() * 2

        doubled.get()  # 0
        counter.set(5)
        doubled.get()  # 10
    """
    return Expression(fn)


def lens(
    getter: Callable[[], T],
    setter: Callable[[T], Any],
    validator: Callable[[T], bool] | None = None,
    *,
    name: str | None = None,
) -> Expression[T]:
    """A writable Expression: reads through getter, writes through setter.

    Usage:
        celsius = Cell(20.0)
        fahrenheit = lens(
            lambda: celsius.get() * 9 / 5 + 32,
            lambda f: celsius.set((f - 32) * 5 / 9),
        )
        fahrenheit.reset(212.0)  # celsius == 100.0
    """
    return Expression(getter, setter, validator, name=name)
