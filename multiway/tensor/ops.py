"""
Tensor reshaping and product primitives.

This module implements the structural operations shared by every multiway
algorithm:
- Mode-n unfolding (matricization) and its inverse
- Column-stacking vectorization and its inverse
- Column-wise Khatri-Rao product and outer products
- Kruskal (CP) reconstruction from factor matrices
- Centering and standardization along an axis

Unfolding convention
--------------------
``matricize(X, n)`` moves mode ``n`` to the rows and lays out the remaining
modes along the columns with the first remaining mode varying fastest. For an
order-3 tensor of shape (I, J, K) this gives

    X_(0) = A @ khatri_rao(C, B).T
    X_(1) = B @ khatri_rao(C, A).T
    X_(2) = C @ khatri_rao(B, A).T

for a tensor built from CP factors A, B, C.

References:
- Kolda & Bader (2009), "Tensor Decompositions and Applications"
- Bro (1998), "Multi-way Analysis in the Food Industry"
"""

from typing import Sequence, Tuple

import numpy as np

from multiway.exceptions import DimensionMismatchError, InvalidInputError


def _normalize_axis(axis: int, ndim: int) -> int:
    if not -ndim <= axis < ndim:
        raise InvalidInputError(f"axis {axis} is out of bounds for tensor with {ndim} modes")
    return axis % ndim


def _unfold_order(axis: int, ndim: int) -> list[int]:
    # Remaining modes in reverse so the first one varies fastest in C order
    rest = [i for i in range(ndim) if i != axis][::-1]
    return [axis] + rest


def matricize(X: np.ndarray, axis: int) -> np.ndarray:
    """
    Unfold a tensor along a mode.

    Parameters
    ----------
    X : np.ndarray
        Tensor of order N >= 2
    axis : int
        Mode placed along the rows (negative values count from the end)

    Returns
    -------
    X_mat : np.ndarray
        Matrix of shape (X.shape[axis], prod of remaining dimensions)

    Examples
    --------
    >>> X = np.arange(24).reshape(2, 3, 4)
    >>> matricize(X, 1).shape
    (3, 8)
    """
    X = np.asarray(X)
    if X.ndim < 2:
        raise InvalidInputError(f"Tensor must have at least 2 modes, got shape {X.shape}")
    axis = _normalize_axis(axis, X.ndim)
    order = _unfold_order(axis, X.ndim)
    return np.transpose(X, order).reshape(X.shape[axis], -1)


def fold(M: np.ndarray, axis: int, shape: Sequence[int]) -> np.ndarray:
    """
    Inverse of :func:`matricize` for a tensor of arbitrary order.

    Parameters
    ----------
    M : np.ndarray
        Unfolded matrix, shape (shape[axis], prod of remaining dimensions)
    axis : int
        Mode that was unfolded along the rows
    shape : sequence of int
        Shape of the original tensor
    """
    shape = tuple(int(s) for s in shape)
    axis = _normalize_axis(axis, len(shape))
    order = _unfold_order(axis, len(shape))
    expected = (shape[axis], int(np.prod([shape[i] for i in order[1:]])))
    if M.shape != expected:
        raise DimensionMismatchError(
            f"Cannot fold matrix of shape {M.shape} into tensor of shape {shape} "
            f"along axis {axis}, expected matrix shape {expected}"
        )
    permuted = M.reshape([shape[i] for i in order])
    return np.transpose(permuted, np.argsort(order))


def invert_matricize(M: np.ndarray, axis: int, dim1: int, dim2: int) -> np.ndarray:
    """
    Fold a matrix back into an order-3 tensor.

    ``dim1`` and ``dim2`` are the sizes of the two folded modes in their
    natural order, e.g. (J, K) when ``axis=0`` and (I, K) when ``axis=1``.
    """
    axis = _normalize_axis(axis, 3)
    shape = [dim1, dim2]
    shape.insert(axis, M.shape[0])
    return fold(M, axis, shape)


def vectorize(Z: np.ndarray) -> np.ndarray:
    """Stack the columns of a matrix into a single vector."""
    return np.asarray(Z).T.reshape(-1)


def invert_vectorize(v: np.ndarray, dim1: int) -> np.ndarray:
    """
    Inverse of :func:`vectorize`.

    Parameters
    ----------
    v : np.ndarray
        Vector of length dim1 * dim2 (any shape with that many elements)
    dim1 : int
        Number of rows of the resulting matrix

    Returns
    -------
    Z : np.ndarray
        Matrix of shape (dim1, len(v) // dim1)
    """
    v = np.asarray(v).reshape(-1)
    if dim1 < 1 or v.size % dim1 != 0:
        raise DimensionMismatchError(
            f"Cannot reshape vector of length {v.size} into {dim1} rows"
        )
    return v.reshape(-1, dim1).T


def khatri_rao(U: np.ndarray, V: np.ndarray) -> np.ndarray:
    """
    Column-wise Khatri-Rao product.

    Column ``f`` of the result is ``kron(U[:, f], V[:, f])``.

    Parameters
    ----------
    U : np.ndarray
        Matrix of shape (I, F)
    V : np.ndarray
        Matrix of shape (J, F)

    Returns
    -------
    KR : np.ndarray
        Matrix of shape (I * J, F)

    Raises
    ------
    DimensionMismatchError
        If U and V differ in rank or in number of columns

    Examples
    --------
    >>> U = np.array([[1.0, 2.0], [3.0, 4.0]])
    >>> V = np.array([[1.0, 0.0], [0.0, 1.0]])
    >>> khatri_rao(U, V)
    array([[1., 0.],
           [0., 2.],
           [3., 0.],
           [0., 4.]])
    """
    U = np.asarray(U)
    V = np.asarray(V)
    if U.ndim != V.ndim:
        raise DimensionMismatchError(
            f"Khatri-Rao operands must have the same rank, got {U.ndim} and {V.ndim}"
        )
    if U.ndim != 2:
        raise DimensionMismatchError(f"Khatri-Rao operands must be matrices, got rank {U.ndim}")
    if U.shape[1] != V.shape[1]:
        raise DimensionMismatchError(
            f"Khatri-Rao operands must have the same number of columns, "
            f"got {U.shape[1]} and {V.shape[1]}"
        )
    F = U.shape[1]
    return (U[:, np.newaxis, :] * V[np.newaxis, :, :]).reshape(-1, F)


def khatri_rao_many(matrices: Sequence[np.ndarray]) -> np.ndarray:
    """Khatri-Rao product of several matrices, folded left to right."""
    if len(matrices) == 0:
        raise InvalidInputError("At least one matrix is required")
    result = np.asarray(matrices[0])
    for M in matrices[1:]:
        result = khatri_rao(result, M)
    return result


def outer(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Outer (tensor) product.

    Column vectors of shape (n, 1) are treated as plain vectors, so the outer
    product of a (3, 1) and a (2, 1) array is a (3, 2) matrix.
    """
    x = np.asarray(x)
    y = np.asarray(y)
    if x.ndim == 2 and x.shape[1] == 1:
        x = x[:, 0]
    if y.ndim == 2 and y.shape[1] == 1:
        y = y[:, 0]
    return np.multiply.outer(x, y)


def kruskal_to_tensor(factors: Sequence[np.ndarray]) -> np.ndarray:
    """
    Reconstruct a full tensor from CP factor matrices.

    Parameters
    ----------
    factors : sequence of np.ndarray
        Factor matrices U_n of shape (d_n, F), one per mode

    Returns
    -------
    X : np.ndarray
        Tensor of shape (d_0, ..., d_{N-1}) equal to the sum over components
        of the outer products of the factor columns
    """
    factors = [np.asarray(U) for U in factors]
    if len(factors) < 2:
        raise InvalidInputError("At least two factor matrices are required")
    shape = tuple(U.shape[0] for U in factors)
    M = factors[0] @ khatri_rao_many(factors[:0:-1]).T
    return fold(M, 0, shape)


def center(X: np.ndarray, axis: int = 0) -> np.ndarray:
    """Subtract the mean along ``axis``."""
    X = np.asarray(X, dtype=np.float64)
    return X - X.mean(axis=axis, keepdims=True)


def standardize(X: np.ndarray, axis: int) -> np.ndarray:
    """
    Center across samples and scale each slab of a mode to unit norm.

    The tensor is unfolded along ``axis``, centered column-wise, and each
    row is divided by its L2 norm (rows with zero norm are left as is).
    """
    X = np.asarray(X, dtype=np.float64)
    unfolded = matricize(X, axis)
    res = unfolded - unfolded.mean(axis=0, keepdims=True)
    norms = np.linalg.norm(res, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return fold(res / norms, axis, X.shape)


def mean_squared_error(a: np.ndarray, b: np.ndarray) -> float:
    """Squared Frobenius distance divided by the number of rows."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(f"Shapes differ: {a.shape} vs {b.shape}")
    return float(np.sum((a - b) ** 2) / a.shape[0])


def shape_without(shape: Tuple[int, ...], axis: int) -> Tuple[int, ...]:
    """Shape tuple with one mode removed."""
    return tuple(s for i, s in enumerate(shape) if i != axis)
