"""cellflow: rank-ordered reactive cells and expressions for Python."""

from importlib.metadata import version as _version

__version__ = _version("cellflow")

from cellflow._tracking import untracked
from cellflow.config import set_debug, is_debug
from cellflow.errors import (
    CellflowError,
    CycleError,
    MissingSetterError,
    ValidationRejectedError,
    UnrealizedValueWarning,
)
from cellflow.source import Source
from cellflow.action import action, transaction, run_transaction, in_transaction
from cellflow.cell import Cell, set_scheduler
from cellflow.expression import Expression, UNREALIZED, expression, lens
from cellflow.cursor import CursorCache, cursor, cursor_cache, get_in, assoc_in
from cellflow.reaction import Reaction, autorun, reaction

__all__ = [
    "Source",
    "Cell",
    "Expression",
    "UNREALIZED",
    "expression",
    "lens",
    "cursor",
    "CursorCache",
    "cursor_cache",
    "get_in",
    "assoc_in",
    "action",
    "transaction",
    "run_transaction",
    "in_transaction",
    "untracked",
    "Reaction",
    "autorun",
    "reaction",
    "set_scheduler",
    "set_debug",
    "is_debug",
    "CellflowError",
    "CycleError",
    "MissingSetterError",
    "ValidationRejectedError",
    "UnrealizedValueWarning",
]
