"""
PLS2: partial least squares regression with multiple responses (NIPALS).

For every latent component the NIPALS inner loop alternates

    w = X^T u / ||X^T u||
    t = X w
    q = Y^T t / ||Y^T t||
    u = Y q

until the norm of u stops improving. Both blocks are then deflated by the
component and the next component is extracted from the residuals. Three-way
predictors are unfolded along the sample mode first.

Typical usage:
--------------
    from multiway.models import PLS2, PLSConfig

    pls = PLS2(num_components=4, config=PLSConfig(standardize_y=False))
    msg = pls.build(X_train, Y_train)
    Y_hat = pls.predict(X_test)

References:
- Wold et al. (2001), "PLS-regression: a basic tool of chemometrics"
- Geladi & Kowalski (1986), "Partial least-squares regression: a tutorial"
"""

import warnings
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from multiway.core import SupervisedAlgorithm, run_until_converged
from multiway.core.loop import LoopResult
from multiway.stopping import CriterionType
from multiway.tensor import matricize, robust_invert, unit
from multiway.tensor.backend import TensorBackend
from multiway.utils.shapes import as_tensor, check_variables, validate_samples, validate_tensor

# Score vectors with a squared norm at or below this fraction of the total
# sum of squares of X are treated as zero
_DEGENERATE_SCORE = 1e-12


@dataclass
class PLSConfig:
    """
    Configuration for PLS2 and MNPLS.

    Parameters
    ----------
    standardize_y : bool, default=True
        Scale centered Y columns to unit standard deviation
    max_iter : int, optional, default=250
        Maximum number of inner-loop iterations per component
    tol : float, optional, default=1e-7
        Relative improvement tolerance of the inner loop
    max_seconds : float, optional
        Time budget per component (no time criterion if None)
    verbose : bool, default=False
        Print iteration progress
    """

    standardize_y: bool = True
    max_iter: Optional[int] = 250
    tol: Optional[float] = 1e-7
    max_seconds: Optional[float] = None
    verbose: bool = False


def target_scaling(Y: np.ndarray, standardize: bool) -> Tuple[np.ndarray, np.ndarray]:
    """
    Column means and scales used to preprocess Y.

    Scales are the sample standard deviations (ddof=1) if ``standardize``
    is True, otherwise ones. Zero deviations are replaced by one.
    """
    mean = Y.mean(axis=0)
    if not standardize or Y.shape[0] < 2:
        return mean, np.ones(Y.shape[1])
    std = Y.std(axis=0, ddof=1)
    std[std == 0] = 1.0
    return mean, std


class PLS2(SupervisedAlgorithm):
    """
    NIPALS PLS2 regression.

    Attributes
    ----------
    num_components : int
        Number of latent components F
    config : PLSConfig
        Algorithm configuration
    coef_ : np.ndarray
        Regression matrix on centered X for scaled Y (after build)

    Loading matrices: 'T', 'U' (scores), 'W' (weights), 'P' (X loadings),
    'Q' (Y loadings), 'C' (diagonal inner regression).

    Supported stopping criteria: ITERATION, TIME, IMPROVEMENT.
    """

    supported_criteria = frozenset(
        {CriterionType.ITERATION, CriterionType.TIME, CriterionType.IMPROVEMENT}
    )

    # Recompute w inside the NIPALS loop (False: once per component)
    w_step_in_inner_loop = True

    def __init__(
        self,
        num_components: int = 5,
        config: Optional[PLSConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        if num_components < 1:
            raise ValueError(f"num_components must be >= 1, got {num_components}")
        super().__init__(backend)
        self.num_components = num_components
        self.config = config or PLSConfig()
        self._init_criteria(self.config.max_iter, self.config.tol, self.config.max_seconds)
        self._clear_outputs()

    def _clear_outputs(self) -> None:
        self.T_: Optional[np.ndarray] = None
        self.U_: Optional[np.ndarray] = None
        self.W_: Optional[np.ndarray] = None
        self.P_: Optional[np.ndarray] = None
        self.Q_: Optional[np.ndarray] = None
        self.C_: Optional[np.ndarray] = None
        self.coef_: Optional[np.ndarray] = None
        self._rotation: Optional[np.ndarray] = None
        self.x_mean_: Optional[np.ndarray] = None
        self.y_mean_: Optional[np.ndarray] = None
        self.y_std_: Optional[np.ndarray] = None
        self._x_shape: Optional[tuple] = None

    def _check(self, X: np.ndarray, Y: np.ndarray) -> None:
        name = type(self).__name__
        validate_tensor(X, "X", ndims=(2, 3), algorithm=name)
        validate_tensor(Y, "Y", ndims=(2,), algorithm=name)
        validate_samples(X, Y)

    @staticmethod
    def _unfold(X: np.ndarray) -> np.ndarray:
        return matricize(X, 0) if X.ndim == 3 else X

    def _weights(self, Xres: np.ndarray, Yres: np.ndarray, u: np.ndarray, a: int) -> np.ndarray:
        """X weight vector of component ``a``."""
        return unit(Xres.T @ u)

    def _nipals(
        self, Xres: np.ndarray, Yres: np.ndarray, a: int
    ) -> Tuple[Dict[str, np.ndarray], LoopResult]:
        state = {"u": Yres[:, 0].copy(), "w": None, "t": None, "q": None}
        if not self.w_step_in_inner_loop:
            state["w"] = self._weights(Xres, Yres, state["u"], a)

        def step():
            if self.w_step_in_inner_loop:
                state["w"] = self._weights(Xres, Yres, state["u"], a)
            state["t"] = Xres @ state["w"]
            state["q"] = unit(Yres.T @ state["t"])
            state["u"] = Yres @ state["q"]

        result = run_until_converged(
            step,
            # Converges on the relative change of ||u||, not on ||u_old - u||
            lambda: np.linalg.norm(state["u"]),
            self._criteria,
            verbose=self.config.verbose,
            label=f"[{type(self).__name__} component {a}]",
        )
        return state, result

    def _do_build(self, X: np.ndarray, Y: np.ndarray) -> Optional[str]:
        self._x_shape = X.shape[1:]
        X = self._unfold(X)
        self.x_mean_ = X.mean(axis=0)
        self.y_mean_, self.y_std_ = target_scaling(Y, self.config.standardize_y)
        Xres = X - self.x_mean_
        Yres = (Y - self.y_mean_) / self.y_std_
        total_ss = float(np.sum(Xres ** 2))

        columns = {key: [] for key in ("T", "U", "W", "P", "Q", "C")}
        for a in range(self.num_components):
            state, result = self._nipals(Xres, Yres, a)
            self._criteria.reset()
            if result.force_stopped:
                return None

            t, u, w, q = state["t"], state["u"], state["w"], state["q"]
            tt = float(t @ t) if t is not None else 0.0
            if tt <= _DEGENERATE_SCORE * total_ss:
                warnings.warn(
                    f"Component {a} has a vanishing score vector; "
                    f"stopping after {a} components",
                    UserWarning,
                    stacklevel=2,
                )
                break

            c = float(t @ u) / tt
            p = Xres.T @ t / tt
            Xres = Xres - np.outer(t, p)
            Yres = Yres - c * np.outer(t, q)

            for key, value in zip("TUWPQ", (t, u, w, p, q)):
                columns[key].append(value)
            columns["C"].append(c)

        if not columns["T"]:
            return f"{type(self).__name__} could not extract any latent component"

        self.T_ = np.column_stack(columns["T"])
        self.U_ = np.column_stack(columns["U"])
        self.W_ = np.column_stack(columns["W"])
        self.P_ = np.column_stack(columns["P"])
        self.Q_ = np.column_stack(columns["Q"])
        self.C_ = np.diag(columns["C"])

        self._rotation = self.W_ @ robust_invert(self.P_.T @ self.W_)
        self.coef_ = self._rotation @ self.C_ @ self.Q_.T
        return None

    def _prepare(self, X: np.ndarray) -> np.ndarray:
        check_variables(X, self._x_shape)
        return self._unfold(X) - self.x_mean_

    def _predict(self, X: np.ndarray) -> np.ndarray:
        Y_hat = self._prepare(X) @ self.coef_
        return Y_hat * self.y_std_ + self.y_mean_

    def filter(self, X) -> np.ndarray:
        """
        X scores of new samples, (X - mean) W (P^T W)^-1.

        Raises
        ------
        ModelNotBuiltError
            If the model has not been built successfully
        """
        self._check_built()
        return self._prepare(as_tensor(X, "X")) @ self._rotation

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        return {
            "T": self.T_,
            "U": self.U_,
            "W": self.W_,
            "P": self.P_,
            "Q": self.Q_,
            "C": self.C_,
        }

    def _describe(self) -> str:
        return f"F={self.num_components}, standardize_y={self.config.standardize_y}"
