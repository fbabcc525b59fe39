"""
Tests for the delimited-text readers.

These tests verify:
1. Sparse three-way and matrix files with NaN for missing entries
2. Configurable value column and header handling
3. Dense multi-file three-way data
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from multiway.exceptions import InvalidInputError
from multiway.io import (
    read_3way_multi_csv,
    read_3way_sparse,
    read_matrix_csv,
    read_sparse_matrix,
    write_matrix_csv,
)


class TestSparseReaders:
    """Test coordinate-list readers."""

    def test_read_3way_sparse(self, tmp_path):
        """Entries land at their coordinates, everything else is NaN."""
        path = tmp_path / "data.csv"
        path.write_text("0,0,0,1.5\n1,2,1,-2.0\n")

        X = read_3way_sparse(path)
        assert X.shape == (2, 3, 2)
        assert X[0, 0, 0] == 1.5
        assert X[1, 2, 1] == -2.0
        assert np.isnan(X).sum() == X.size - 2

    def test_value_column_and_header(self, tmp_path):
        """The value column can come first and a header can be skipped."""
        path = tmp_path / "data.tsv"
        path.write_text("value\ti\tj\tk\n4.0\t1\t0\t2\n")

        X = read_3way_sparse(path, sep="\t", value_idx=0, has_header=True)
        assert X.shape == (2, 1, 3)
        assert X[1, 0, 2] == 4.0

    def test_invalid_value_column(self, tmp_path):
        """Only the four columns can hold the value."""
        path = tmp_path / "data.csv"
        path.write_text("0,0,0,1.0\n")
        with pytest.raises(InvalidInputError, match="value_idx"):
            read_3way_sparse(path, value_idx=4)

    def test_negative_coordinates(self, tmp_path):
        """Coordinates must be non-negative integers."""
        path = tmp_path / "data.csv"
        path.write_text("0,-1,0,1.0\n")
        with pytest.raises(InvalidInputError, match="non-negative integers"):
            read_3way_sparse(path)

    def test_read_sparse_matrix(self, tmp_path):
        """Matrix entries from (i, j, value) rows."""
        path = tmp_path / "matrix.csv"
        path.write_text("i,j,v\n0,1,3.0\n2,0,5.0\n")

        M = read_sparse_matrix(path, has_header=True)
        assert M.shape == (3, 2)
        assert M[0, 1] == 3.0
        assert M[2, 0] == 5.0
        assert np.isnan(M[1, 1])


class TestDenseReaders:
    """Test dense CSV readers and writers."""

    def test_read_3way_multi_csv(self, tmp_path):
        """Each file becomes one slice of the third mode."""
        for k in (1, 2):
            np.savetxt(tmp_path / f"slice_{k}.csv", np.full((3, 2), float(k)), delimiter=",")

        X = read_3way_multi_csv(str(tmp_path / "slice_"), ".csv", 1, 2)
        assert X.shape == (3, 2, 2)
        assert_array_equal(X[:, :, 0], 1.0)
        assert_array_equal(X[:, :, 1], 2.0)

    def test_multi_csv_shape_mismatch(self, tmp_path):
        """All slices must have the same shape."""
        np.savetxt(tmp_path / "s0.csv", np.ones((3, 2)), delimiter=",")
        np.savetxt(tmp_path / "s1.csv", np.ones((2, 2)), delimiter=",")
        with pytest.raises(InvalidInputError, match="different shapes"):
            read_3way_multi_csv(str(tmp_path / "s"), ".csv", 0, 1)

    def test_write_then_read_matrix(self, tmp_path):
        """Written matrices are read back unchanged."""
        np.random.seed(42)
        M = np.random.randn(4, 3)
        path = tmp_path / "m.csv"
        write_matrix_csv(M, path, sep=";")
        assert_allclose(read_matrix_csv(path, sep=";"), M, rtol=0, atol=0)

    def test_non_numeric_cell(self, tmp_path):
        """Unparseable cells are reported as invalid input."""
        path = tmp_path / "bad.csv"
        path.write_text("1,2\n3,abc\n")
        with pytest.raises(InvalidInputError, match="Malformed data"):
            read_matrix_csv(path)

    def test_malformed_sparse_file(self, tmp_path):
        """Sparse readers share the same check."""
        path = tmp_path / "bad.csv"
        path.write_text("0,0,0,x\n")
        with pytest.raises(InvalidInputError, match="Malformed data"):
            read_3way_sparse(path)

    def test_write_rejects_tensors(self, tmp_path):
        """Only matrices can be written."""
        with pytest.raises(InvalidInputError, match="Expected a matrix"):
            write_matrix_csv(np.zeros((2, 2, 2)), tmp_path / "t.csv")
