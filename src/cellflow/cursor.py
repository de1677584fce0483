"""Cursors — cached lenses onto a path inside a parent source's value.

cursor(parent, path) returns a writable Expression that reads the value at
path inside parent and writes back with a path-scoped update of parent.
Equal (parent, path) keys share one instance for as long as it is alive;
the cursor's drop callback evicts it from the registry when the collector
reclaims it, so a later call builds a fresh one.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableSequence, Sequence
from typing import Any, Hashable, Iterable

from cellflow._tracking import untracked
from cellflow.expression import Expression, lens
from cellflow.source import Source

logger = logging.getLogger("cellflow.cursor")

Path = tuple[Hashable, ...]

_DROP_KEY = "cellflow.cursor"


def normalize_path(path: Any) -> Path:
    """Canonical form of a cursor path: a tuple. A bare key is a one-step path."""
    if isinstance(path, (list, tuple)):
        return tuple(path)
    return (path,)


def get_in(value: Any, path: Iterable[Hashable]) -> Any:
    """Walk path through nested mappings and sequences; None where a step is missing."""
    for key in path:
        if isinstance(value, Mapping):
            value = value.get(key)
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and isinstance(key, int):
            try:
                value = value[key]
            except IndexError:
                return None
        else:
            return None
    return value


def _assoc(container: Any, key: Hashable, value: Any) -> Any:
    if container is None:
        return {key: value}
    if isinstance(container, Mapping):
        updated = dict(container)
        updated[key] = value
        return updated
    if isinstance(container, (MutableSequence, tuple)) and isinstance(key, int):
        items = list(container)
        if key == len(items):
            items.append(value)
        else:
            items[key] = value
        return tuple(items) if isinstance(container, tuple) else items
    raise TypeError(f"Can't associate key {key!r} in {type(container).__name__}")


def assoc_in(value: Any, path: Iterable[Hashable], new: Any) -> Any:
    """Return a copy of value with new at path. Missing levels become dicts.

    The original containers are never mutated.
    """
    path = tuple(path)
    if not path:
        return new
    head, rest = path[0], path[1:]
    return _assoc(value, head, assoc_in(get_in(value, (head,)), rest, new))


class CursorCache:
    """Registry of live cursors keyed by parent source, then normalized path.

    An entry leaves the registry when its cursor is reclaimed. A cursor that
    is built but never read or watched is never reclaimed, so its entry stays
    until evict() or clear() removes it.
    """

    def __init__(self) -> None:
        self._entries: dict[Source, dict[Path, Expression]] = {}

    def lookup(self, parent: Source, path: Path) -> Expression | None:
        return self._entries.get(parent, {}).get(path)

    def store(self, parent: Source, path: Path, cursor: Expression) -> None:
        self._entries.setdefault(parent, {})[path] = cursor

    def evict(self, parent: Source, path: Path, cursor: Expression | None = None) -> None:
        """Remove the entry; when cursor is given, only if it is still the one stored."""
        paths = self._entries.get(parent)
        if paths is None or path not in paths:
            return
        if cursor is not None and paths[path] is not cursor:
            return
        del paths[path]
        if not paths:
            del self._entries[parent]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(paths) for paths in self._entries.values())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        parent, path = key
        return self.lookup(parent, normalize_path(path)) is not None

    def cursor(self, parent: Source, path: Any) -> Expression:
        """Get or build the cursor onto path within parent."""
        path = normalize_path(path)
        # Looking up a cursor is not a read of anything.
        with untracked():
            found = self.lookup(parent, path)
            if found is not None:
                return found

            logger.debug("Building cursor %r on %r", path, parent)
            built = lens(
                lambda: get_in(parent.get(), path),
                lambda value: parent.swap(assoc_in, path, value),
                name=f"cursor{list(path)!r}",
            )
            built.add_drop(_DROP_KEY, lambda _key, dropped: self.evict(parent, path, dropped))
            self.store(parent, path, built)
            return built


# Process-wide registry used by cursor().
cursor_cache = CursorCache()


def cursor(parent: Source, path: Any) -> Expression:
    """A writable Expression onto the value at path inside parent.

    Usage:
        state = Cell({"user": {"name": "Ada"}})
        name = cursor(state, ["user", "name"])
        name.get()         # "Ada"
        name.reset("Bob")  # state == {"user": {"name": "Bob"}}
    """
    return cursor_cache.cursor(parent, path)
