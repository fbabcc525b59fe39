"""
Tests for input validation and canonicalization utilities.

These tests verify:
1. Conversion of array-like input to float64 tensors
2. Target canonicalization to (I, M) format
3. Rank, size and value validation
4. Sample and variable consistency checks
"""

import pytest
import numpy as np
from numpy.testing import assert_array_equal

from multiway.utils.shapes import (
    as_tensor,
    canonicalize_targets,
    check_variables,
    validate_samples,
    validate_tensor,
)


class TestConversion:
    """Test conversion of user input."""

    def test_as_tensor_float64(self):
        """Integer lists become float64 arrays."""
        X = as_tensor([[1, 2], [3, 4]])
        assert X.dtype == np.float64
        assert_array_equal(X, [[1.0, 2.0], [3.0, 4.0]])

    def test_as_tensor_none(self):
        """None is rejected with the argument name."""
        with pytest.raises(ValueError, match="Y must not be None"):
            as_tensor(None, "Y")

    def test_as_tensor_scalar(self):
        """Scalars are not tensors."""
        with pytest.raises(ValueError, match="scalar"):
            as_tensor(3.0)

    def test_as_tensor_ragged(self):
        """Ragged nested lists cannot be converted."""
        with pytest.raises(ValueError, match="could not be converted"):
            as_tensor([[1.0, 2.0], [3.0]])


class TestCanonicalizeTargets:
    """Test target canonicalization to (I, M)."""

    def test_1d_to_2d(self):
        """Single response (I,) becomes (I, 1)."""
        y = np.arange(5.0)
        Y = canonicalize_targets(y)
        assert Y.shape == (5, 1)
        assert_array_equal(Y[:, 0], y)

    def test_2d_unchanged(self):
        """Multiple responses keep their shape."""
        Y = np.zeros((5, 3))
        assert canonicalize_targets(Y).shape == (5, 3)

    def test_3d_rejected(self):
        """Targets of higher order are rejected."""
        with pytest.raises(ValueError, match="Y must be 1D"):
            canonicalize_targets(np.zeros((5, 2, 2)))


class TestValidateTensor:
    """Test rank, size and value checks."""

    @pytest.mark.parametrize("shape", [(4,), (4, 3), (4, 3, 2, 2)])
    def test_wrong_order(self, shape):
        """Only the accepted orders pass."""
        with pytest.raises(ValueError, match="must be 3-way"):
            validate_tensor(np.zeros(shape))

    def test_several_orders(self):
        """Multiple accepted orders are listed in the message."""
        validate_tensor(np.zeros((2, 2)), ndims=(2, 3))
        with pytest.raises(ValueError, match="2-way or 3-way"):
            validate_tensor(np.zeros(2), ndims=(2, 3))

    def test_min_ndim(self):
        """min_ndim accepts any order from the minimum upwards."""
        validate_tensor(np.zeros((2, 2, 2, 2, 2)), min_ndim=2)
        with pytest.raises(ValueError, match="at least 2 modes"):
            validate_tensor(np.zeros(3), min_ndim=2)

    def test_zero_dimension(self):
        """Empty modes are rejected."""
        with pytest.raises(ValueError, match="size zero"):
            validate_tensor(np.zeros((3, 0, 2)))

    def test_nan_message(self):
        """NaNs produce the missing-data message with the algorithm name."""
        X = np.zeros((2, 2, 2))
        X[0, 0, 0] = np.nan
        with pytest.raises(ValueError) as excinfo:
            validate_tensor(X, algorithm="PARAFAC")
        assert str(excinfo.value) == (
            "Input has missing data (NaNs found). PARAFAC currently does not support missing data."
        )

    def test_nan_allowed(self):
        """allow_nan skips the missing-data check."""
        X = np.full((2, 2, 2), np.nan)
        validate_tensor(X, allow_nan=True)

    def test_infinite_values(self):
        """Infinite values are rejected."""
        X = np.zeros((2, 2, 2))
        X[1, 1, 1] = np.inf
        with pytest.raises(ValueError, match="infinite"):
            validate_tensor(X)

    def test_nonnegative(self):
        """Negative entries fail the non-negativity check."""
        with pytest.raises(ValueError, match="non-negative"):
            validate_tensor(-np.ones((2, 2)), ndims=(2,), nonnegative=True)


class TestConsistency:
    """Test sample and variable consistency checks."""

    def test_samples_match(self):
        """Equal sample counts pass."""
        validate_samples(np.zeros((5, 3, 2)), np.zeros((5, 1)))

    def test_samples_mismatch(self):
        """Different sample counts fail."""
        with pytest.raises(ValueError, match="same number of samples"):
            validate_samples(np.zeros((5, 3, 2)), np.zeros((4, 1)))

    def test_variables_mismatch(self):
        """New data must have the fitted variable dimensions."""
        check_variables(np.zeros((2, 3, 4)), (3, 4))
        with pytest.raises(ValueError, match=r"variable dimensions \(3, 4\)"):
            check_variables(np.zeros((2, 4, 3)), (3, 4))
