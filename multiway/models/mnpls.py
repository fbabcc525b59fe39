"""
MNPLS: mixed-norm penalized PLS2.

Replaces the PLS2 weight step by a weight matrix W (J x F) that maximizes
the X/Y covariance under an L2,1-type penalty on the rows of W, which
drives whole variables towards zero. W is found by a fixed-point iteration
over a generalized eigenproblem:

    D     = diag(1 / (2 * max(||W[j, :]||, eps)))
    alpha = 2 / tr(W^T D W)
    beta  = 2 * tr(W^T X^T Y Y^T X W) / tr(W^T D W)^2
    W     = leading F eigenvectors of (alpha X^T Y Y^T X - beta D, X^T X)

W is computed once per latent component on the current residuals; column
``a`` is the weight vector of component ``a``.
"""

from typing import Optional

import numpy as np

from multiway.core import run_until_converged
from multiway.models.pls2 import PLS2, PLSConfig
from multiway.stopping import CriterionType, IterationCriterion
from multiway.tensor import generalized_eigenvectors, largest_magnitude_signs
from multiway.tensor.backend import TensorBackend

# Floor on the row norms of W in the penalty matrix
_ROW_NORM_FLOOR = 1e-6


def penalty_matrix(W: np.ndarray) -> np.ndarray:
    """Diagonal penalty matrix D from the row norms of W."""
    row_norms = np.maximum(np.linalg.norm(W, axis=1), _ROW_NORM_FLOOR)
    return np.diag(1.0 / (2.0 * row_norms))


def _normalize_columns(W: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(W, axis=0)
    norms[norms == 0] = 1.0
    return W / norms


class MNPLS(PLS2):
    """
    Mixed-norm PLS2 regression.

    Same outputs as PLS2. The default improvement tolerance is 1e-4 and is
    also used for the inner weight iteration. ``num_components`` may not
    exceed the number of (unfolded) X variables.

    Supported stopping criteria: ITERATION, TIME, IMPROVEMENT.
    """

    w_step_in_inner_loop = False

    def __init__(
        self,
        num_components: int = 5,
        config: Optional[PLSConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        super().__init__(num_components, config or PLSConfig(tol=1e-4), backend)

    def _check(self, X: np.ndarray, Y: np.ndarray) -> None:
        super()._check(X, Y)
        num_variables = int(np.prod(X.shape[1:]))
        if self.num_components > num_variables:
            raise ValueError(
                f"num_components={self.num_components} exceeds the number of "
                f"X variables ({num_variables})"
            )

    def _weights(self, Xres: np.ndarray, Yres: np.ndarray, u: np.ndarray, a: int) -> np.ndarray:
        return self.mixed_norm_weights(Xres, Yres)[:, a]

    def mixed_norm_weights(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        """
        Penalized weight matrix W (J x F) for centered X and Y.

        Iterates on copies of the ITERATION and IMPROVEMENT criteria; the
        improvement criterion is fed with ||W_old - W||_F.
        """
        F = self.num_components
        XtY = X.T @ Y
        M = XtY @ XtY.T
        B = X.T @ X

        criteria = self._criteria.copy(
            supported={CriterionType.ITERATION, CriterionType.IMPROVEMENT}
        )
        if CriterionType.ITERATION not in criteria:
            criteria.add(IterationCriterion())

        W = _normalize_columns(self.backend.randn((X.shape[1], F), 0))
        D = penalty_matrix(W)
        state = {"W": W, "D": D, "change": np.inf}
        state["alpha"], state["beta"] = self._multipliers(W, D, M)

        def step():
            W_old = state["W"]
            A = state["alpha"] * M - state["beta"] * state["D"]
            W = generalized_eigenvectors(A, B)[:, :F]
            W = W * largest_magnitude_signs(W)
            state["alpha"], state["beta"] = self._multipliers(W, state["D"], M)
            state["D"] = penalty_matrix(W)
            state["W"] = W
            state["change"] = float(np.linalg.norm(W_old - W))

        run_until_converged(step, lambda: state["change"], criteria)
        return state["W"]

    @staticmethod
    def _multipliers(W: np.ndarray, D: np.ndarray, M: np.ndarray):
        penalty = float(np.trace(W.T @ D @ W))
        alpha = 2.0 / penalty
        beta = 2.0 * float(np.trace(W.T @ M @ W)) / penalty ** 2
        return alpha, beta
