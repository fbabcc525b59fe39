"""
N-PLS: multilinear partial least squares regression for three-way X.

Every latent component has a trilinear weight structure w = w^K (x) w^J.
For a Y-score u the weights are the first singular vectors of the J x K
matrix Z with vec(Z) = X_res^T u, which maximizes the covariance between
the X-scores t = X_res w and u.

Per component:
1. u is initialized with the first principal component score of Y_res
2. NIPALS inner loop: (w^J, w^K) from SVD of Z, t = X_res w,
   q = unit(Y_res^T t), u = Y_res q
3. X_res is deflated by t w^T, the inner regression column
   b_a = (T^T T)^-1 T^T u is solved and Y_res = Y - T B Q^T

Typical usage:
--------------
    from multiway.models import MultiLinearPLS

    npls = MultiLinearPLS(num_components=3)
    msg = npls.build(X_train, Y_train)      # X: (I, J, K), Y: (I, M)
    Y_hat = npls.predict(X_test)

References:
- Bro (1996), "Multiway calibration. Multilinear PLS"
- Smilde, Bro & Geladi (2004), "Multi-way Analysis with Applications in
  the Chemical Sciences"
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from multiway.core import SupervisedAlgorithm, run_until_converged
from multiway.core.loop import LoopResult
from multiway.models.pca import TwoWayPCA
from multiway.models.pls2 import target_scaling
from multiway.stopping import CriterionType
from multiway.tensor import invert_vectorize, matricize, outer, pseudo_invert2, svd, unit
from multiway.tensor.backend import TensorBackend
from multiway.utils.shapes import as_tensor, check_variables, validate_samples, validate_tensor


@dataclass
class NPLSConfig:
    """
    Configuration for MultiLinearPLS.

    Parameters
    ----------
    standardize_y : bool, default=True
        Scale centered Y columns to unit standard deviation
    max_iter : int, optional, default=250
        Maximum number of NIPALS iterations per component
    tol : float, optional, default=1e-7
        Relative improvement tolerance on ||u||
    verbose : bool, default=False
        Print iteration progress
    """

    standardize_y: bool = True
    max_iter: Optional[int] = 250
    tol: Optional[float] = 1e-7
    verbose: bool = False


def mode_weights(Xres: np.ndarray, u: np.ndarray, num_columns: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Unit weight vectors (w^J, w^K) for a Y-score u.

    Parameters
    ----------
    Xres : np.ndarray
        Unfolded X residual, shape (I, J * K)
    u : np.ndarray
        Y-score vector, shape (I,)
    num_columns : int
        Size J of the second mode
    """
    Z = invert_vectorize(Xres.T @ u, num_columns)
    decomposition = svd(Z)
    return unit(decomposition.U[:, 0]), unit(decomposition.V[:, 0])


def trilinear_weights(wj: np.ndarray, wk: np.ndarray) -> np.ndarray:
    """Weight vector matching the mode-0 unfolding of an (I, J, K) tensor."""
    return outer(wk, wj).reshape(-1)


class MultiLinearPLS(SupervisedAlgorithm):
    """
    N-PLS regression of Y on three-way X.

    Attributes
    ----------
    num_components : int
        Number of latent components F
    config : NPLSConfig
        Algorithm configuration

    Loading matrices: 'T' (I, F), 'U' (I, F), 'W' (J*K, F), 'Wj' (J, F),
    'Wk' (K, F), 'Q' (M, F), 'B' (F, F).

    Supported stopping criteria: ITERATION, IMPROVEMENT.
    """

    supported_criteria = frozenset({CriterionType.ITERATION, CriterionType.IMPROVEMENT})

    def __init__(
        self,
        num_components: int = 10,
        config: Optional[NPLSConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        if num_components < 1:
            raise ValueError(f"num_components must be >= 1, got {num_components}")
        super().__init__(backend)
        self.num_components = num_components
        self.config = config or NPLSConfig()
        self._init_criteria(self.config.max_iter, self.config.tol)
        self._clear_outputs()

    def _clear_outputs(self) -> None:
        self.T_: Optional[np.ndarray] = None
        self.U_: Optional[np.ndarray] = None
        self.W_: Optional[np.ndarray] = None
        self.Wj_: Optional[np.ndarray] = None
        self.Wk_: Optional[np.ndarray] = None
        self.Q_: Optional[np.ndarray] = None
        self.B_: Optional[np.ndarray] = None
        self.x_mean_: Optional[np.ndarray] = None
        self.y_mean_: Optional[np.ndarray] = None
        self.y_std_: Optional[np.ndarray] = None
        self._x_shape: Optional[tuple] = None

    def _check(self, X: np.ndarray, Y: np.ndarray) -> None:
        validate_tensor(X, "X", ndims=(3,), algorithm="MultiLinearPLS")
        validate_tensor(Y, "Y", ndims=(2,), algorithm="MultiLinearPLS")
        validate_samples(X, Y)
        if X.shape[0] < 2:
            raise ValueError(f"MultiLinearPLS needs at least 2 samples, got {X.shape[0]}")

    def _nipals(
        self, Xres: np.ndarray, Yres: np.ndarray, u: np.ndarray, num_columns: int, a: int
    ) -> Tuple[Dict[str, np.ndarray], LoopResult]:
        state = {"u": u, "wj": None, "wk": None, "w": None, "t": None, "q": None}

        def step():
            wj, wk = mode_weights(Xres, state["u"], num_columns)
            w = trilinear_weights(wj, wk)
            t = Xres @ w
            q = unit(Yres.T @ t)
            state.update(wj=wj, wk=wk, w=w, t=t, q=q, u=Yres @ q)

        result = run_until_converged(
            step,
            # Converges on the relative change of ||u||, not on ||u_old - u||
            lambda: np.linalg.norm(state["u"]),
            self._criteria,
            verbose=self.config.verbose,
            label=f"[N-PLS component {a}]",
        )
        return state, result

    def _do_build(self, X: np.ndarray, Y: np.ndarray) -> Optional[str]:
        _, J, K = X.shape
        F = self.num_components
        self._x_shape = (J, K)

        Xa = matricize(X, 0)
        self.x_mean_ = Xa.mean(axis=0)
        Xa = Xa - self.x_mean_
        self.y_mean_, self.y_std_ = target_scaling(Y, self.config.standardize_y)
        Y = (Y - self.y_mean_) / self.y_std_

        Xres = Xa.copy()
        Yres = Y.copy()
        B = np.zeros((F, F))
        columns = {key: [] for key in ("T", "U", "W", "Wj", "Wk", "Q")}
        pca = TwoWayPCA(num_components=1, backend=self.backend)

        for a in range(F):
            msg = pca.build(Yres)
            if msg is not None:
                return msg
            u0 = pca.loading_matrices["T"][:, 0].copy()

            state, result = self._nipals(Xres, Yres, u0, J, a)
            self._criteria.reset()
            if result.force_stopped:
                return None
            if state["t"] is None:
                return (
                    "Could not initialize the first components. The stopping "
                    "criteria ended the NIPALS loop before its first iteration."
                )

            for key in columns:
                columns[key].append(state[key.lower()])
            T = np.column_stack(columns["T"])
            Q = np.column_stack(columns["Q"])

            Xres = Xres - np.outer(state["t"], state["w"])
            B[: a + 1, a] = pseudo_invert2(T) @ state["u"]
            Yres = Y - T @ B[: a + 1, : a + 1] @ Q.T

        self.T_ = np.column_stack(columns["T"])
        self.U_ = np.column_stack(columns["U"])
        self.W_ = np.column_stack(columns["W"])
        self.Wj_ = np.column_stack(columns["Wj"])
        self.Wk_ = np.column_stack(columns["Wk"])
        self.Q_ = np.column_stack(columns["Q"])
        self.B_ = B
        return None

    def _scores(self, X: np.ndarray) -> np.ndarray:
        validate_tensor(X, "X", ndims=(3,), algorithm="MultiLinearPLS")
        check_variables(X, self._x_shape)
        Xres = matricize(X, 0) - self.x_mean_
        T = np.zeros((X.shape[0], self.W_.shape[1]))
        for a in range(self.W_.shape[1]):
            w = self.W_[:, a]
            T[:, a] = Xres @ w
            Xres = Xres - np.outer(T[:, a], w)
        return T

    def filter(self, X) -> np.ndarray:
        """
        X scores of new samples by sequential projection and deflation.

        Raises
        ------
        ModelNotBuiltError
            If the model has not been built successfully
        """
        self._check_built()
        return self._scores(as_tensor(X, "X"))

    def _predict(self, X: np.ndarray) -> np.ndarray:
        Y_hat = self._scores(X) @ self.B_ @ self.Q_.T
        return Y_hat * self.y_std_ + self.y_mean_

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        return {
            "U": self.U_,
            "T": self.T_,
            "W": self.W_,
            "Wj": self.Wj_,
            "Wk": self.Wk_,
            "Q": self.Q_,
            "B": self.B_,
        }

    def _describe(self) -> str:
        return f"F={self.num_components}, standardize_y={self.config.standardize_y}"
