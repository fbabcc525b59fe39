"""
Delimited-text readers and writers for multiway data.

Sparse files list one entry per line as coordinates followed by a value
(the value column of three-way files is configurable). Coordinates that
never appear are filled with NaN, and the shape of the result is the
largest index + 1 per mode.

Dense three-way data can be stored as one CSV file per slice of the third
mode, named ``{prefix}{k}{suffix}``.
"""

from pathlib import Path
from typing import Union

import numpy as np

from multiway.exceptions import InvalidInputError

PathLike = Union[str, Path]


def _load(path: PathLike, sep: str, has_header: bool) -> np.ndarray:
    try:
        data = np.loadtxt(path, delimiter=sep, skiprows=1 if has_header else 0, ndmin=2)
    except ValueError as e:
        raise InvalidInputError(f"Malformed data in {path}: {e}") from e
    if data.size == 0:
        raise InvalidInputError(f"No data rows found in {path}")
    return data


def _fill_sparse(coords: np.ndarray, values: np.ndarray) -> np.ndarray:
    if (coords < 0).any() or not np.array_equal(coords, np.round(coords)):
        raise InvalidInputError("Coordinates must be non-negative integers")
    coords = coords.astype(np.intp)
    shape = tuple(coords.max(axis=0) + 1)
    out = np.full(shape, np.nan)
    out[tuple(coords.T)] = values
    return out


def read_3way_sparse(
    path: PathLike, sep: str = ",", value_idx: int = 3, has_header: bool = False
) -> np.ndarray:
    """
    Read a three-way tensor from (i, j, k, value) rows.

    Parameters
    ----------
    path : str or Path
        Input file
    sep : str, default=','
        Column separator
    value_idx : int, default=3
        Column holding the value; the remaining three columns are i, j, k
        in order
    has_header : bool, default=False
        Skip the first line

    Returns
    -------
    X : np.ndarray
        Tensor of shape (max i + 1, max j + 1, max k + 1), NaN where no
        entry was given
    """
    if value_idx not in range(4):
        raise InvalidInputError(f"value_idx must be in 0..3, got {value_idx}")
    data = _load(path, sep, has_header)
    if data.shape[1] < 4:
        raise InvalidInputError(f"Expected 4 columns, got {data.shape[1]}")
    coord_cols = [c for c in range(4) if c != value_idx]
    return _fill_sparse(data[:, coord_cols], data[:, value_idx])


def read_sparse_matrix(path: PathLike, sep: str = ",", has_header: bool = False) -> np.ndarray:
    """Read a matrix from (i, j, value) rows; missing entries are NaN."""
    data = _load(path, sep, has_header)
    if data.shape[1] < 3:
        raise InvalidInputError(f"Expected 3 columns, got {data.shape[1]}")
    return _fill_sparse(data[:, :2], data[:, 2])


def read_3way_multi_csv(
    prefix: str,
    suffix: str,
    start_idx: int,
    end_idx: int,
    sep: str = ",",
    has_header: bool = False,
) -> np.ndarray:
    """
    Read a three-way tensor stored as one dense CSV per third-mode slice.

    Files ``{prefix}{k}{suffix}`` for k = start_idx..end_idx (inclusive)
    become slices X[:, :, k - start_idx]. All files must have the same shape.
    """
    if end_idx < start_idx:
        raise InvalidInputError(f"end_idx ({end_idx}) must be >= start_idx ({start_idx})")
    slices = [
        _load(f"{prefix}{k}{suffix}", sep, has_header) for k in range(start_idx, end_idx + 1)
    ]
    shapes = {s.shape for s in slices}
    if len(shapes) > 1:
        raise InvalidInputError(f"Slices have different shapes: {sorted(shapes)}")
    return np.stack(slices, axis=2)


def read_matrix_csv(path: PathLike, sep: str = ",") -> np.ndarray:
    """Read a dense matrix without header."""
    return _load(path, sep, has_header=False)


def write_matrix_csv(data: np.ndarray, path: PathLike, sep: str = ",") -> None:
    """Write a matrix as delimited text, one row per line."""
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise InvalidInputError(f"Expected a matrix, got shape {data.shape}")
    np.savetxt(path, data, delimiter=sep, fmt="%.17g")
