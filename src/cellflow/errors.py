"""cellflow error hierarchy.

All cellflow-specific errors inherit from CellflowError for easy catching.
"""


class CellflowError(Exception):
    """Base error for all cellflow operations."""


class CycleError(CellflowError):
    """An expression's getter read itself, directly or transitively."""


class MissingSetterError(CellflowError, TypeError):
    """reset()/swap() called on an expression without a setter."""


class ValidationRejectedError(CellflowError, ValueError):
    """The validator rejected a proposed value. The old state is kept."""


class UnrealizedValueWarning(UserWarning):
    """A getter returned a lazy value; reads hidden inside it escape tracking."""
