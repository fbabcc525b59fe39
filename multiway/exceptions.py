"""
Exception taxonomy for multiway algorithms.

Input validation problems are reported as messages returned from ``build``;
the exceptions below are reserved for programmer errors that cannot be
fixed by retrying with the same call site.
"""


class ModelNotBuiltError(RuntimeError):
    """Raised when predict/filter/outputs are requested before a successful build."""


class UnsupportedStoppingCriterionError(ValueError):
    """Raised when a stopping criterion type is not supported by an algorithm."""


class NoTensorBackendFoundError(RuntimeError):
    """Raised when no tensor backend has been registered."""


class DimensionMismatchError(ValueError):
    """Raised when operand shapes are incompatible for a tensor operation."""


class InvalidInputError(ValueError):
    """Raised when a primitive receives an array of the wrong rank or shape."""
