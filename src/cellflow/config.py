"""cellflow configuration.

A single debug flag gates the instrumentation on the compute path: the cycle
guard and the unrealized-value diagnostic. It starts from the CELLFLOW_DEBUG
environment variable and is on unless that variable says otherwise.
"""

import os

_FALSY = frozenset({"0", "false", "no", "off"})

_debug: bool = os.environ.get("CELLFLOW_DEBUG", "1").strip().lower() not in _FALSY


def set_debug(enabled: bool) -> None:
    """Enable or disable cycle detection and the unrealized-value warning."""
    global _debug
    _debug = bool(enabled)


def is_debug() -> bool:
    return _debug
