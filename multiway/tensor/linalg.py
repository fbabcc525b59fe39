"""
Dense linear algebra helpers for multiway algorithms.

Provides inversion (LU and pseudo-inverse), SVD, Gram-Schmidt
orthogonalization and a generalized symmetric eigen-solver. Numerical
failures such as singular matrices are recovered locally where a more
robust route exists (pseudo_invert2 falls back to the SVD pseudo-inverse,
generalized_eigenvectors falls back to the general QZ solver).
"""

import warnings
from typing import NamedTuple

import numpy as np
from scipy import linalg

from multiway.exceptions import DimensionMismatchError, InvalidInputError

# Relative pivot threshold below which an LU factorization counts as singular
_SINGULAR_TOL = 1e-11


class SingularMatrixError(np.linalg.LinAlgError):
    """Raised by :func:`invert` for (numerically) singular matrices."""


class SVDResult(NamedTuple):
    """Thin singular value decomposition X = U @ S @ V.T."""

    U: np.ndarray
    S: np.ndarray
    V: np.ndarray
    singular_values: np.ndarray


def invert(A: np.ndarray) -> np.ndarray:
    """
    Invert a square matrix via LU decomposition.

    Raises
    ------
    ValueError
        If A is not square
    SingularMatrixError
        If A is singular to working precision
    """
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"invalid array: must be square matrix, got shape {A.shape}")

    with warnings.catch_warnings():
        # Singularity is reported through SingularMatrixError below
        warnings.simplefilter("ignore", linalg.LinAlgWarning)
        lu, piv = linalg.lu_factor(A)

    pivots = np.abs(np.diag(lu))
    if pivots.size == 0:
        return np.zeros_like(A)
    if pivots.max() == 0 or pivots.min() <= _SINGULAR_TOL * pivots.max():
        raise SingularMatrixError("Matrix is singular")
    return linalg.lu_solve((lu, piv), np.eye(A.shape[0]))


def pseudo_invert(A: np.ndarray) -> np.ndarray:
    """Moore-Penrose pseudo-inverse computed from the SVD."""
    return linalg.pinv(np.asarray(A, dtype=np.float64))


def pseudo_invert2(A: np.ndarray) -> np.ndarray:
    """
    Left pseudo-inverse (A^T A)^{-1} A^T.

    Falls back to :func:`pseudo_invert` if A^T A is singular.

    Examples
    --------
    >>> pseudo_invert2(np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])) * 12
    array([[-16.,  -4.,   8.],
           [ 13.,   4.,  -5.]])
    """
    A = np.asarray(A, dtype=np.float64)
    try:
        return invert(A.T @ A) @ A.T
    except np.linalg.LinAlgError:
        return pseudo_invert(A)


def svd(X: np.ndarray) -> SVDResult:
    """
    Thin SVD of a matrix.

    Returns
    -------
    SVDResult
        U (m, p), S (p, p) diagonal, V (n, p) and the singular values as a
        column vector (p, 1), where p = min(m, n)
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise InvalidInputError(f"SVD requires a matrix, got shape {X.shape}")
    U, s, Vh = linalg.svd(X, full_matrices=False)
    return SVDResult(U=U, S=np.diag(s), V=Vh.T, singular_values=s[:, np.newaxis])


def project(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Projection of v onto u (zero if u is the zero vector)."""
    u = np.asarray(u, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    if u.shape[0] != v.shape[0]:
        raise DimensionMismatchError(
            f"Size of u and v must be the same but is {u.shape[0]} and {v.shape[0]}"
        )
    uu = float(u @ u)
    if uu == 0.0:
        return np.zeros_like(u)
    return u * (float(u @ v) / uu)


def orth(V: np.ndarray, normalize: bool = False) -> np.ndarray:
    """
    Orthogonalize the columns of a matrix with the Gram-Schmidt process.

    Parameters
    ----------
    V : np.ndarray
        Matrix of shape (n, k)
    normalize : bool, default=False
        Scale each resulting column to unit length (zero columns stay zero)

    Raises
    ------
    InvalidInputError
        If V is not a matrix
    """
    V = np.asarray(V, dtype=np.float64)
    if V.ndim != 2:
        raise InvalidInputError(
            f"Cannot orthogonalize tensors of with order != 2. Order was {V.ndim}."
        )

    U = np.zeros_like(V)
    for i in range(V.shape[1]):
        vi = V[:, i]
        ui = vi.copy()
        for j in range(i):
            ui -= project(U[:, j], vi)
        U[:, i] = ui

    if normalize:
        norms = np.linalg.norm(U, axis=0)
        norms[norms == 0] = 1.0
        U = U / norms
    return U


def generalized_eigenvectors(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """
    Eigenvectors of the generalized problem A v = lambda B v.

    Columns are sorted by descending eigenvalue. The symmetric-definite
    solver is used first; if B is not positive definite the general solver
    is used instead, keeping real parts, moving non-finite eigenvalues to
    the end and scaling every eigenvector to unit length.
    """
    A = np.asarray(A, dtype=np.float64)
    B = np.asarray(B, dtype=np.float64)
    if A.shape != B.shape or A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise DimensionMismatchError(
            f"A and B must be square matrices of the same shape, got {A.shape} and {B.shape}"
        )

    try:
        _, evecs = linalg.eigh(A, B)
    except np.linalg.LinAlgError:
        return _general_eigenvectors(A, B)
    return evecs[:, ::-1]


def _general_eigenvectors(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    evals, evecs = linalg.eig(A, B)
    evals = np.real(evals)
    evecs = np.real(evecs)
    finite = np.isfinite(evals)
    keys = np.where(finite, -evals, np.inf)
    order = np.argsort(keys, kind="stable")
    evecs = evecs[:, order]
    norms = np.linalg.norm(evecs, axis=0)
    norms[norms == 0] = 1.0
    return evecs / norms


def largest_magnitude_signs(M: np.ndarray) -> np.ndarray:
    """
    Sign of the largest-magnitude entry of every column.

    Columns whose largest entry is zero get +1, so the result can always be
    used to flip columns into a canonical orientation.
    """
    M = np.asarray(M, dtype=np.float64)
    if M.shape[0] == 0:
        return np.ones(M.shape[1])
    idx = np.argmax(np.abs(M), axis=0)
    signs = np.sign(M[idx, np.arange(M.shape[1])])
    signs[signs == 0] = 1.0
    return signs


def unit(v: np.ndarray) -> np.ndarray:
    """Scale a vector to unit L2 norm (the zero vector is returned unchanged)."""
    v = np.asarray(v, dtype=np.float64)
    norm = np.linalg.norm(v)
    if norm == 0.0:
        return v.copy()
    return v / norm


def robust_invert(A: np.ndarray) -> np.ndarray:
    """Inverse of a square matrix, or its pseudo-inverse if it is singular."""
    try:
        return invert(A)
    except SingularMatrixError:
        return pseudo_invert(A)
