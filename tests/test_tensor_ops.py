"""
Tests for tensor algebra primitives.

These tests verify:
1. Unfolding convention and fold/unfold round trips
2. Khatri-Rao, outer and Kruskal products
3. Inversion helpers and their fallbacks
4. Gram-Schmidt and generalized eigenvectors
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from multiway.exceptions import DimensionMismatchError, InvalidInputError
from multiway.tensor import (
    SingularMatrixError,
    fold,
    generalized_eigenvectors,
    invert,
    invert_matricize,
    invert_vectorize,
    khatri_rao,
    khatri_rao_many,
    kruskal_to_tensor,
    largest_magnitude_signs,
    matricize,
    mean_squared_error,
    orth,
    outer,
    pseudo_invert,
    pseudo_invert2,
    robust_invert,
    standardize,
    svd,
    unit,
    vectorize,
)


class TestUnfolding:
    """Test matricize/fold and vectorize."""

    @pytest.mark.parametrize("axis", [0, 1, 2])
    def test_matricize_shape(self, axis):
        """Unfolded matrix has the chosen mode along the rows."""
        X = np.arange(24.0).reshape(2, 3, 4)
        M = matricize(X, axis)
        assert M.shape == (X.shape[axis], 24 // X.shape[axis])

    def test_first_remaining_mode_fastest(self):
        """Columns of X_(0) run over j fastest, then k."""
        X = np.arange(24.0).reshape(2, 3, 4)
        M = matricize(X, 0)
        assert_array_equal(M[:, 1], X[:, 1, 0])
        assert_array_equal(M[:, 3], X[:, 0, 1])

    @pytest.mark.parametrize("axis", [0, 1, 2, -1])
    def test_invert_matricize_round_trip(self, axis):
        """invert_matricize undoes matricize exactly."""
        np.random.seed(42)
        X = np.random.randn(3, 4, 5)
        dims = [s for i, s in enumerate(X.shape) if i != axis % 3]
        assert_array_equal(invert_matricize(matricize(X, axis), axis, *dims), X)

    def test_fold_higher_order(self):
        """fold undoes matricize for order-4 tensors."""
        np.random.seed(42)
        X = np.random.randn(2, 3, 4, 5)
        for axis in range(4):
            assert_array_equal(fold(matricize(X, axis), axis, X.shape), X)

    def test_fold_wrong_shape(self):
        """Folding into an incompatible shape raises."""
        with pytest.raises(DimensionMismatchError, match="Cannot fold"):
            fold(np.zeros((3, 5)), 0, (3, 2, 2))

    def test_matricize_rejects_vectors(self):
        """Vectors cannot be unfolded."""
        with pytest.raises(InvalidInputError, match="at least 2 modes"):
            matricize(np.zeros(5), 0)

    def test_matricize_axis_out_of_bounds(self):
        """Axis beyond the tensor order raises."""
        with pytest.raises(InvalidInputError, match="out of bounds"):
            matricize(np.zeros((2, 3, 4)), 3)

    def test_vectorize_stacks_columns(self):
        """vectorize stacks columns and invert_vectorize restores them."""
        Z = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        v = vectorize(Z)
        assert_array_equal(v, [1.0, 4.0, 2.0, 5.0, 3.0, 6.0])
        assert_array_equal(invert_vectorize(v, 2), Z)

    def test_invert_vectorize_bad_length(self):
        """Length not divisible by the row count raises."""
        with pytest.raises(DimensionMismatchError):
            invert_vectorize(np.arange(5.0), 2)


class TestProducts:
    """Test Khatri-Rao, outer and Kruskal products."""

    def test_khatri_rao_example(self):
        """Small worked example."""
        U = np.array([[1.0, 2.0], [3.0, 4.0]])
        V = np.array([[1.0, 0.0], [0.0, 1.0]])
        expected = np.array([[1.0, 0.0], [0.0, 2.0], [3.0, 0.0], [0.0, 4.0]])
        assert_array_equal(khatri_rao(U, V), expected)

    def test_khatri_rao_columns_are_kronecker(self):
        """Every column is the Kronecker product of the input columns."""
        np.random.seed(0)
        U = np.random.randn(4, 3)
        V = np.random.randn(5, 3)
        KR = khatri_rao(U, V)
        assert KR.shape == (20, 3)
        for f in range(3):
            assert_allclose(KR[:, f], np.kron(U[:, f], V[:, f]))

    def test_khatri_rao_column_mismatch(self):
        """Different column counts raise."""
        with pytest.raises(DimensionMismatchError, match="number of columns"):
            khatri_rao(np.zeros((3, 2)), np.zeros((3, 3)))

    def test_khatri_rao_rank_mismatch(self):
        """Operands of different rank raise."""
        with pytest.raises(DimensionMismatchError, match="same rank"):
            khatri_rao(np.zeros((3, 2)), np.zeros(3))

    def test_khatri_rao_many_is_associative(self):
        """Folding left to right matches nested products."""
        np.random.seed(1)
        A, B, C = (np.random.randn(n, 2) for n in (2, 3, 4))
        assert_allclose(khatri_rao_many([A, B, C]), khatri_rao(A, khatri_rao(B, C)))

    def test_outer_of_column_vectors(self):
        """Column vectors behave like plain vectors."""
        x = np.array([[1.0], [2.0], [3.0]])
        y = np.array([[1.0], [-1.0]])
        result = outer(x, y)
        assert result.shape == (3, 2)
        assert_array_equal(result, [[1.0, -1.0], [2.0, -2.0], [3.0, -3.0]])

    def test_outer_shape_concatenates(self):
        """Outer product of a matrix and a vector has the combined shape."""
        assert outer(np.ones((2, 3)), np.ones(4)).shape == (2, 3, 4)

    def test_kruskal_matches_unfolding_identity(self):
        """X_(n) equals U_n times the Khatri-Rao product of the other factors."""
        np.random.seed(2)
        A, B, C = np.random.randn(4, 2), np.random.randn(3, 2), np.random.randn(5, 2)
        X = kruskal_to_tensor([A, B, C])
        assert_allclose(X, np.einsum("if,jf,kf->ijk", A, B, C))
        assert_allclose(matricize(X, 0), A @ khatri_rao(C, B).T)
        assert_allclose(matricize(X, 1), B @ khatri_rao(C, A).T)
        assert_allclose(matricize(X, 2), C @ khatri_rao(B, A).T)


class TestLinearAlgebra:
    """Test inversion, SVD and orthogonalization helpers."""

    def test_invert(self):
        """invert returns the matrix inverse."""
        A = np.array([[4.0, 1.0], [2.0, 3.0]])
        assert_allclose(invert(A) @ A, np.eye(2), atol=1e-12)

    def test_invert_non_square(self):
        """Only square matrices can be inverted."""
        with pytest.raises(ValueError, match="square"):
            invert(np.zeros((2, 3)))

    def test_invert_singular(self):
        """Singular matrices raise SingularMatrixError."""
        with pytest.raises(SingularMatrixError):
            invert(np.array([[1.0, 2.0], [2.0, 4.0]]))

    def test_singular_error_is_linalg_error(self):
        """SingularMatrixError can be caught as LinAlgError."""
        assert issubclass(SingularMatrixError, np.linalg.LinAlgError)

    def test_pseudo_invert2_example(self):
        """Left pseudo-inverse of a tall full-rank matrix."""
        A = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        expected = np.array([[-16.0, -4.0, 8.0], [13.0, 4.0, -5.0]]) / 12.0
        assert_allclose(pseudo_invert2(A), expected, atol=1e-12)

    def test_pseudo_invert2_falls_back(self):
        """Rank-deficient input uses the SVD pseudo-inverse."""
        A = np.array([[1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
        assert_allclose(pseudo_invert2(A), pseudo_invert(A))

    def test_robust_invert_singular(self):
        """robust_invert returns the pseudo-inverse of singular input."""
        A = np.array([[1.0, 2.0], [2.0, 4.0]])
        assert_allclose(robust_invert(A), np.linalg.pinv(A))

    def test_svd_reconstructs(self):
        """U S V^T equals the input; singular values form a column."""
        np.random.seed(3)
        X = np.random.randn(6, 4)
        result = svd(X)
        assert result.singular_values.shape == (4, 1)
        assert_allclose(result.U @ result.S @ result.V.T, X, atol=1e-12)

    def test_orth_columns_orthogonal(self):
        """Gram-Schmidt output has orthogonal columns."""
        np.random.seed(4)
        U = orth(np.random.randn(6, 3), normalize=True)
        assert_allclose(U.T @ U, np.eye(3), atol=1e-10)

    def test_orth_keeps_dependent_columns_zero(self):
        """A dependent column becomes zero without producing NaN."""
        V = np.array([[1.0, 2.0], [1.0, 2.0], [0.0, 0.0]])
        U = orth(V, normalize=True)
        assert np.all(np.isfinite(U))
        assert_allclose(U[:, 1], 0.0, atol=1e-12)

    def test_orth_rejects_tensors(self):
        """Only matrices can be orthogonalized."""
        with pytest.raises(InvalidInputError, match="Order was 3"):
            orth(np.zeros((2, 2, 2)))

    def test_generalized_eigenvectors_identity_metric(self):
        """With B = I the leading eigenvector is that of A."""
        A = np.diag([1.0, 5.0, 3.0])
        V = generalized_eigenvectors(A, np.eye(3))
        assert_allclose(np.abs(V[:, 0]), [0.0, 1.0, 0.0], atol=1e-12)
        assert_allclose(np.abs(V[:, 1]), [0.0, 0.0, 1.0], atol=1e-12)

    def test_generalized_eigenvectors_indefinite_metric(self):
        """An indefinite B falls back to the general solver with unit columns."""
        A = np.array([[2.0, 1.0], [1.0, 3.0]])
        B = np.array([[1.0, 0.0], [0.0, -1.0]])
        V = generalized_eigenvectors(A, B)
        assert V.shape == (2, 2)
        assert_allclose(np.linalg.norm(V, axis=0), 1.0)

    def test_largest_magnitude_signs(self):
        """Sign of the largest entry per column, zero columns give +1."""
        M = np.array([[1.0, -3.0, 0.0], [-2.0, 1.0, 0.0]])
        assert_array_equal(largest_magnitude_signs(M), [-1.0, -1.0, 1.0])

    def test_unit_zero_vector(self):
        """The zero vector is returned unchanged."""
        assert_array_equal(unit(np.zeros(3)), np.zeros(3))
        assert_allclose(np.linalg.norm(unit(np.array([3.0, 4.0]))), 1.0)


class TestPreprocessing:
    """Test centering, standardization and error measures."""

    def test_standardize_unit_rows(self):
        """Every unfolded row has unit norm after standardization."""
        np.random.seed(5)
        X = np.random.randn(5, 3, 4)
        Z = standardize(X, 1)
        assert Z.shape == X.shape
        assert_allclose(np.linalg.norm(matricize(Z, 1), axis=1), 1.0)

    def test_mean_squared_error(self):
        """Squared distance divided by the number of rows."""
        a = np.zeros((2, 2))
        b = np.ones((2, 2))
        assert mean_squared_error(a, b) == pytest.approx(2.0)

    def test_mean_squared_error_shape_mismatch(self):
        """Different shapes raise."""
        with pytest.raises(DimensionMismatchError):
            mean_squared_error(np.zeros((2, 2)), np.zeros((2, 3)))
