"""
Input validation and canonicalization for multiway data.

Data Conventions
----------------
Samples always run along the first mode:

Predictors X:
    - Two-way: shape (I, J) - I samples, J variables
    - Three-way: shape (I, J, K) - I samples, J x K variables

Targets Y:
    - Single response: shape (I,)
    - Multiple responses: shape (I, M)

Internally all targets are canonicalized to (I, M) with M=1 for a single
response.

The validators raise ValueError with a human-readable message; the build
methods of the algorithms turn that message into their return value.
"""

from typing import Iterable, Optional

import numpy as np


def as_tensor(x, name: str = "X") -> np.ndarray:
    """
    Convert array-like data to a float64 ndarray.

    Raises
    ------
    ValueError
        If ``x`` is None or cannot be converted to a numeric array
    """
    if x is None:
        raise ValueError(f"{name} must not be None")
    try:
        arr = np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} could not be converted to a numeric array: {e}") from e
    if arr.ndim == 0:
        raise ValueError(f"{name} must be an array, got a scalar")
    return arr


def canonicalize_targets(y: np.ndarray) -> np.ndarray:
    """
    Canonicalize targets to shape (I, M).

    Examples
    --------
    >>> canonicalize_targets(np.zeros(10)).shape
    (10, 1)
    """
    if y.ndim == 1:
        return y[:, np.newaxis]
    elif y.ndim == 2:
        return y
    else:
        raise ValueError(f"Y must be 1D (I,) or 2D (I, M), got shape {y.shape}")


def validate_tensor(
    X: np.ndarray,
    name: str = "X",
    ndims: Iterable[int] = (3,),
    min_ndim: Optional[int] = None,
    allow_nan: bool = False,
    nonnegative: bool = False,
    algorithm: str = "This algorithm",
) -> None:
    """
    Check rank, dimension sizes and values of a data tensor.

    Parameters
    ----------
    X : np.ndarray
        Data tensor
    name : str
        Name used in error messages
    ndims : iterable of int, default=(3,)
        Accepted numbers of modes (ignored if ``min_ndim`` is given)
    min_ndim : int, optional
        Minimum number of modes
    allow_nan : bool, default=False
        Whether NaN entries are accepted
    nonnegative : bool, default=False
        Reject negative entries
    algorithm : str
        Algorithm name used in the missing-data message

    Raises
    ------
    ValueError
        If any check fails
    """
    if min_ndim is not None:
        if X.ndim < min_ndim:
            raise ValueError(
                f"{name} must have at least {min_ndim} modes, got shape {X.shape}"
            )
    else:
        ndims = tuple(ndims)
        if X.ndim not in ndims:
            allowed = " or ".join(f"{n}-way" for n in ndims)
            raise ValueError(f"{name} must be {allowed}, got shape {X.shape}")

    if any(s == 0 for s in X.shape):
        raise ValueError(f"{name} has a dimension of size zero, got shape {X.shape}")

    if not allow_nan and np.isnan(X).any():
        raise ValueError(
            f"Input has missing data (NaNs found). {algorithm} currently "
            f"does not support missing data."
        )

    if np.isinf(X).any():
        raise ValueError(f"{name} contains infinite values")

    if nonnegative and (X < 0).any():
        raise ValueError(f"{name} must be non-negative")


def validate_samples(X: np.ndarray, Y: np.ndarray) -> None:
    """
    Check that X and Y have the same number of samples.

    Examples
    --------
    >>> validate_samples(np.zeros((5, 3, 2)), np.zeros((5, 1)))  # OK
    >>> validate_samples(np.zeros((5, 3, 2)), np.zeros((4, 1)))  # Raises ValueError
    """
    if X.shape[0] != Y.shape[0]:
        raise ValueError(
            f"X and Y must have the same number of samples, got X.shape={X.shape}, "
            f"Y.shape={Y.shape}"
        )


def check_variables(X: np.ndarray, expected: tuple, name: str = "X") -> None:
    """Check that new data has the variable dimensions seen during build."""
    if tuple(X.shape[1:]) != tuple(expected):
        raise ValueError(
            f"{name} must have variable dimensions {tuple(expected)}, got shape {X.shape}"
        )
