"""
SO-N-PLS: sequential and orthogonalized N-PLS for multi-block regression.

Predictor blocks are processed one after another. Each block is first
orthogonalized against the X-scores of all previous blocks, so it can only
explain variation in Y that the earlier blocks did not capture. An N-PLS
model is then fitted on the orthogonalized block and the current Y residual,
and Y is deflated by its prediction. The final prediction is the sum of the
block predictions.

Two-way blocks of shape (I, J) are treated as three-way blocks (I, J, 1).

Typical usage:
--------------
    from multiway.models import SONPLS

    model = SONPLS(num_components=[2, 3])
    msg = model.build([X_block1, X_block2], Y)
    Y_hat = model.predict([X_new1, X_new2])

References:
- Biancolillo et al. (2015), "Extension of SO-PLS to multi-way arrays:
  SO-N-PLS"
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from multiway.core import FORCE_STOPPED, MultiBlockAlgorithm
from multiway.models.npls import MultiLinearPLS, NPLSConfig
from multiway.stopping import CriterionType
from multiway.tensor import fold, matricize, mean_squared_error, pseudo_invert2
from multiway.tensor.backend import TensorBackend
from multiway.utils.shapes import check_variables, validate_samples, validate_tensor


@dataclass
class SONPLSConfig:
    """
    Configuration for SONPLS.

    Parameters
    ----------
    standardize_y : bool, default=True
        Passed to the block N-PLS models
    auto_num_components : bool, default=False
        Choose the number of components of every block by training MSE
        (implied when no component list is given)
    max_auto_components : int, default=10
        Largest number of components tried per block in automatic mode
    max_iter : int, optional, default=250
        Maximum NIPALS iterations per component of the block models
    tol : float, optional, default=1e-7
        Improvement tolerance of the block models
    verbose : bool, default=False
        Print iteration progress
    """

    standardize_y: bool = True
    auto_num_components: bool = False
    max_auto_components: int = 10
    max_iter: Optional[int] = 250
    tol: Optional[float] = 1e-7
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.max_auto_components < 1:
            raise ValueError(
                f"max_auto_components must be >= 1, got {self.max_auto_components}"
            )


def _as_three_way(X: np.ndarray) -> np.ndarray:
    return X[:, :, np.newaxis] if X.ndim == 2 else X


def orthogonalize_block(X: np.ndarray, T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Remove from X the part explained by the scores T.

    Returns
    -------
    X_orth : np.ndarray
        X - T P, folded back to the shape of X
    P : np.ndarray
        Projection coefficients (T^T T)^-1 T^T X_(0)
    """
    X_mat = matricize(X, 0)
    P = pseudo_invert2(T) @ X_mat
    return fold(X_mat - T @ P, 0, X.shape), P


def _apply_projection(X: np.ndarray, T: np.ndarray, P: np.ndarray) -> np.ndarray:
    return fold(matricize(X, 0) - T @ P, 0, X.shape)


class SONPLS(MultiBlockAlgorithm):
    """
    Multi-block SO-N-PLS regression.

    Parameters
    ----------
    num_components : sequence of int, optional
        Number of components per block; automatic selection if None
    config : SONPLSConfig, optional
        Algorithm configuration

    Loading matrices: the keys of every block model suffixed with the block
    index, e.g. 'T_0', 'W_1'.

    Supported stopping criteria: ITERATION, IMPROVEMENT.
    """

    supported_criteria = frozenset({CriterionType.ITERATION, CriterionType.IMPROVEMENT})

    def __init__(
        self,
        num_components: Optional[Sequence[int]] = None,
        config: Optional[SONPLSConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        if num_components is not None:
            num_components = [int(n) for n in num_components]
            for i, n in enumerate(num_components):
                if n < 1:
                    raise ValueError(
                        f"num_components must be >= 1 for every block, got {n} for block {i}"
                    )
        super().__init__(backend)
        self.num_components = num_components
        self.config = config or SONPLSConfig()
        self._init_criteria(self.config.max_iter, self.config.tol)
        self._clear_outputs()

    @property
    def auto_num_components(self) -> bool:
        return self.config.auto_num_components or self.num_components is None

    def _clear_outputs(self) -> None:
        self.models_: List[MultiLinearPLS] = []
        self.projections_: List[Optional[np.ndarray]] = []
        self.num_components_: List[int] = []

    def _check(self, Xs: List[np.ndarray], Y: np.ndarray) -> None:
        validate_tensor(Y, "Y", ndims=(2,), algorithm="SONPLS")
        for i, X in enumerate(Xs):
            validate_tensor(X, f"X[{i}]", ndims=(2, 3), algorithm="SONPLS")
            validate_samples(X, Y)
        if Y.shape[0] < 2:
            raise ValueError(f"SONPLS needs at least 2 samples, got {Y.shape[0]}")

    def _block_model(self, num_components: int) -> MultiLinearPLS:
        model = MultiLinearPLS(
            num_components,
            NPLSConfig(standardize_y=self.config.standardize_y, verbose=self.config.verbose),
            backend=self.backend,
        )
        model._adopt_criteria(self._criteria.copy(supported=model.supported_criteria))
        return model

    def _fit_block(self, X: np.ndarray, Y: np.ndarray, i: int) -> Tuple[Optional[MultiLinearPLS], Optional[str]]:
        if not self.auto_num_components:
            model = self._block_model(self.num_components[i])
            return model, model.build(X, Y)

        _, J, K = X.shape
        best_model, best_mse = None, np.inf
        for k in range(1, min(J * K, self.config.max_auto_components) + 1):
            model = self._block_model(k)
            msg = model.build(X, Y)
            if msg is not None:
                return None, msg
            mse = mean_squared_error(Y, model.predict(X))
            if mse < best_mse:
                best_model, best_mse = model, mse
        return best_model, None

    def _do_build(self, Xs: List[np.ndarray], Y: np.ndarray) -> Optional[str]:
        blocks = [_as_three_way(X) for X in Xs]
        if not self.auto_num_components and len(self.num_components) != len(blocks):
            return (
                f"Number of components array does not match number of X-blocks. "
                f"Was {len(self.num_components)} but should be {len(blocks)}."
            )

        Yres = Y.copy()
        T = None
        for i, X in enumerate(blocks):
            if self._criteria.is_killed:
                return None

            if T is None:
                X_orth, P = X, None
            else:
                X_orth, P = orthogonalize_block(X, T)

            model, msg = self._fit_block(X_orth, Yres, i)
            if msg == FORCE_STOPPED:
                return None
            if msg is not None:
                return f"Block {i}: {msg}"

            self.models_.append(model)
            self.projections_.append(P)
            self.num_components_.append(model.num_components)
            T = model.T_ if T is None else np.hstack([T, model.T_])
            Yres = Yres - model.predict(X_orth)

        return None

    def _predict(self, Xs: List[np.ndarray]) -> np.ndarray:
        if len(Xs) != len(self.models_):
            raise ValueError(f"Expected {len(self.models_)} blocks, got {len(Xs)}")

        Y_hat = None
        T = None
        for i, (X, model, P) in enumerate(zip(Xs, self.models_, self.projections_)):
            X = _as_three_way(X)
            check_variables(X, model._x_shape, name=f"X[{i}]")
            X_orth = X if P is None else _apply_projection(X, T, P)
            block_hat = model.predict(X_orth)
            Y_hat = block_hat if Y_hat is None else Y_hat + block_hat
            scores = model.filter(X_orth)
            T = scores if T is None else np.hstack([T, scores])
        return Y_hat

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        matrices = {}
        for i, model in enumerate(self.models_):
            for key, value in model._loading_matrices().items():
                matrices[f"{key}_{i}"] = value
        return matrices

    def _describe(self) -> str:
        ncomp = "auto" if self.auto_num_components else self.num_components
        return f"num_components={ncomp}"
