"""Reactions — side effects triggered by reactive state changes.

A Reaction is an Expression kept alive by a watch. Because the watch keeps
it observed, every transaction that changes something it read recomputes it;
disposing removes the watch and lets the collector reclaim it (and any
upstream expressions only it was reading).

Two flavors:
- autorun(fn): runs fn immediately, re-runs when any source it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
"""

from __future__ import annotations

from typing import TypeVar, Callable
from cellflow.expression import Expression

T = TypeVar("T")


def _ignore(key, source, old, new) -> None:
    pass


class Reaction:
    """Handle on a watched expression. Call .dispose() to stop it."""

    __slots__ = ("_expression", "_disposed")

    def __init__(self, expression: Expression) -> None:
        self._expression = expression
        self._disposed = False

    @property
    def expression(self) -> Expression:
        return self._expression

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop this reaction. Its expression becomes collectible."""
        if self._disposed:
            return
        self._disposed = True
        self._expression.remove_watch(self)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Reaction({self._expression.name}, {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then re-run whenever any source it reads changes.

    Usage:
        counter = Cell(0)
        log = []

        r = autorun(lambda: log.append(counter.get()))
        # log == [0] — ran immediately

        counter.set(1)
        # log == [0, 1] — re-ran because counter changed

        r.dispose()
        counter.set(2)
        # log == [0, 1] — stopped
    """

    def run() -> None:
        fn()

    r = Reaction(Expression(run, name=getattr(fn, "__name__", None)))
    r._expression.add_watch(r, _ignore)  # initial run establishes dependencies
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's sources; call effect_fn when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes.

    Usage:
        first = Cell("Alice")
        last = Cell("Smith")

        effects = []
        r = reaction(
            lambda: f"{first.get()} {last.get()}",
            lambda name: effects.append(name),
        )
        # effects == [] — data_fn ran to establish deps, effect didn't fire

        first.set("Bob")
        # effects == ["Bob Smith"]

        r.dispose()
    """
    r = Reaction(Expression(data_fn))
    r._expression.add_watch(r, lambda _key, _source, _old, new: effect_fn(new))
    if fire_immediately:
        effect_fn(r._expression.peek())
    return r
