"""
Tests for SO-N-PLS.

These tests verify:
1. Multi-block fitting with 2-way and 3-way blocks
2. Orthogonalization of later blocks against earlier scores
3. Automatic choice of the number of components
4. Validation messages and cancellation through sub-models
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

import multiway.models.sonpls as sonpls_module
from multiway import FORCE_STOPPED
from multiway.exceptions import ModelNotBuiltError
from multiway.models import SONPLS, MultiLinearPLS, SONPLSConfig
from multiway.models.sonpls import orthogonalize_block
from multiway.tensor import matricize, mean_squared_error


def two_block_data(n_samples=30, seed=0):
    rng = np.random.default_rng(seed)
    X1 = rng.standard_normal((n_samples, 4, 3))
    X2 = rng.standard_normal((n_samples, 5))
    y = matricize(X1, 0) @ rng.standard_normal(12) + X2 @ rng.standard_normal(5)
    return [X1, X2], y


class TestOrthogonalization:
    """Test the block orthogonalization helper."""

    def test_orthogonal_to_scores(self):
        """The orthogonalized block has no component along T."""
        np.random.seed(42)
        X = np.random.randn(10, 3, 2)
        T = np.random.randn(10, 2)
        X_orth, P = orthogonalize_block(X, T)

        assert X_orth.shape == X.shape
        assert P.shape == (2, 6)
        assert_allclose(T.T @ matricize(X_orth, 0), 0.0, atol=1e-10)


class TestSONPLS:
    """Test multi-block regression."""

    def test_build_and_predict(self):
        """Two blocks of different order are fitted and predicted."""
        Xs, y = two_block_data()
        model = SONPLS(num_components=[2, 2])

        assert model.build(Xs, y) is None
        Y_hat = model.predict(Xs)
        assert Y_hat.shape == (30, 1)
        assert model.num_components_ == [2, 2]

    def test_second_block_reduces_error(self):
        """Adding a block never increases the training error."""
        Xs, y = two_block_data()
        single = SONPLS(num_components=[2])
        double = SONPLS(num_components=[2, 2])
        single.build(Xs[:1], y)
        double.build(Xs, y)

        mse_single = mean_squared_error(y[:, None], single.predict(Xs[:1]))
        mse_double = mean_squared_error(y[:, None], double.predict(Xs))
        assert mse_double <= mse_single + 1e-10

    def test_single_block_matches_npls(self):
        """One block is plain N-PLS."""
        Xs, y = two_block_data()
        model = SONPLS(num_components=[3])
        npls = MultiLinearPLS(num_components=3)
        model.build(Xs[:1], y)
        npls.build(Xs[0], y)

        assert_allclose(model.predict(Xs[:1]), npls.predict(Xs[0]), atol=1e-10)

    def test_loading_keys_suffixed(self):
        """Loading matrices carry the block index."""
        Xs, y = two_block_data()
        model = SONPLS(num_components=[1, 2])
        model.build(Xs, y)

        loadings = model.loading_matrices
        assert loadings["T_0"].shape == (30, 1)
        assert loadings["T_1"].shape == (30, 2)
        assert loadings["Wk_1"].shape == (1, 2)

    def test_auto_components(self):
        """Automatic mode picks a component count per block within range."""
        Xs, y = two_block_data()
        model = SONPLS(config=SONPLSConfig(max_auto_components=3))

        assert model.build(Xs, y) is None
        assert len(model.num_components_) == 2
        assert all(1 <= k <= 3 for k in model.num_components_)
        assert repr(model).startswith("SONPLS(num_components=auto")

    def test_predict_wrong_block_count(self):
        """predict needs one array per fitted block."""
        Xs, y = two_block_data()
        model = SONPLS(num_components=[1, 1])
        model.build(Xs, y)
        with pytest.raises(ValueError, match="Expected 2 blocks"):
            model.predict(Xs[:1])

    def test_predict_before_build(self):
        """predict requires a built model."""
        Xs, _ = two_block_data()
        with pytest.raises(ModelNotBuiltError):
            SONPLS(num_components=[1, 1]).predict(Xs)


class TestSONPLSValidation:
    """Test SO-N-PLS input checks."""

    def test_component_list_length(self):
        """The component list must have one entry per block."""
        Xs, y = two_block_data()
        msg = SONPLS(num_components=[2]).build(Xs, y)
        assert msg == (
            "Number of components array does not match number of X-blocks. "
            "Was 1 but should be 2."
        )

    def test_empty_block_list(self):
        """At least one block is required."""
        msg = SONPLS(num_components=[1]).build([], np.zeros(5))
        assert "At least one predictor block" in msg

    def test_sample_mismatch(self):
        """Every block needs the samples of Y."""
        Xs, y = two_block_data()
        msg = SONPLS(num_components=[1, 1]).build([Xs[0], Xs[1][:-1]], y)
        assert "same number of samples" in msg

    def test_missing_data(self):
        """NaN in a block is reported."""
        Xs, y = two_block_data()
        Xs[1] = Xs[1].copy()
        Xs[1][0, 0] = np.nan
        msg = SONPLS(num_components=[1, 1]).build(Xs, y)
        assert "SONPLS currently does not support missing data" in msg

    def test_invalid_component_count(self):
        """Every block needs at least one component."""
        with pytest.raises(ValueError, match="block 1"):
            SONPLS(num_components=[2, 0])

    def test_invalid_auto_limit(self):
        """The automatic search needs a positive upper bound."""
        with pytest.raises(ValueError, match="max_auto_components"):
            SONPLSConfig(max_auto_components=0)


class TestSONPLSCancellation:
    """Test that a kill reaches the block models."""

    def test_kill_during_second_block(self, monkeypatch):
        """Stopping the parent stops the running block model."""
        Xs, y = two_block_data()
        model = SONPLS(num_components=[1, 1])
        original = sonpls_module.orthogonalize_block

        def orthogonalize_then_kill(X, T):
            model.stop_execution()
            return original(X, T)

        monkeypatch.setattr(sonpls_module, "orthogonalize_block", orthogonalize_then_kill)

        assert model.build(Xs, y) == FORCE_STOPPED
        assert model.is_force_stopped
        assert not model.is_finished

    def test_rebuild_after_kill(self):
        """A new build clears the previous kill request."""
        Xs, y = two_block_data()
        model = SONPLS(num_components=[1, 1])
        model.stop_execution()

        assert model.build(Xs, y) is None
        assert model.is_finished
