"""
NTF: non-negative tensor factorization of N-way data.

A non-negative tensor G of order N is approximated by K non-negative rank-one
components with factor matrices U_0, ..., U_{N-1}:

    G ~ sum_k U_0[:, k] o U_1[:, k] o ... o U_{N-1}[:, k]

For mode r let N_r = G_(r) @ khatri_rao(U_m for m != r, reversed) and
H_r = Hadamard product of U_m^T U_m over m != r. The squared-error gradient
with respect to U_r is U_r H_r - N_r, and the multiplicative update

    U_r[l, s] <- U_r[l, s] * N_r[l, s] / ((U_r H_r)[l, s] + eps)

keeps every entry non-negative. Three update modes are available:

- 'normalized': the multiplicative update above, applied entry by entry so
  later components see the already updated earlier ones
- 'step': the gradient of each component is passed through an updater (Sgd,
  Adam) and applied immediately, clipped at zero
- 'iteration': gradients of all modes are computed from the factors at the
  start of the sweep and applied at its end, clipped at zero

Typical usage:
--------------
    from multiway.models import NTF, NTFConfig, Adam

    ntf = NTF(num_components=4, config=NTFConfig(update_type="step", updater=Adam(0.01)))
    msg = ntf.build(G)
    U0, U1, U2 = ntf.decomposition

References:
- Shashua & Hazan (2005), "Non-negative tensor factorization with
  applications to statistics and computer vision"
"""

import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from numba import njit

from multiway.core import UnsupervisedAlgorithm, run_until_converged
from multiway.models.updaters import Adam, Sgd
from multiway.stopping import CriterionType
from multiway.tensor import khatri_rao_many, kruskal_to_tensor, matricize
from multiway.tensor.backend import TensorBackend
from multiway.utils.shapes import validate_tensor

UPDATE_TYPES = ("normalized", "step", "iteration")

Updater = Union[Sgd, Adam]


@dataclass
class NTFConfig:
    """
    Configuration for NTF.

    Parameters
    ----------
    update_type : str, default='normalized'
        'normalized' (multiplicative update), 'step' or 'iteration'
    updater : Sgd or Adam, optional
        Gradient updater for the 'step' and 'iteration' modes
        (default Sgd(learning_rate=0.01)); has no effect with 'normalized'
    seed : int, default=0
        Base seed; mode i is initialized with seed + 1000 * i
    max_iter : int, optional, default=1000
        Maximum number of sweeps over all modes
    tol : float, optional
        Relative loss improvement tolerance (no improvement criterion if None)
    max_seconds : float, optional
        Time budget (no time criterion if None)
    eps : float, default=1e-7
        Added to the denominator of the multiplicative update
    verbose : bool, default=False
        Print iteration progress
    """

    update_type: str = "normalized"
    updater: Optional[Updater] = None
    seed: int = 0
    max_iter: Optional[int] = 1000
    tol: Optional[float] = None
    max_seconds: Optional[float] = None
    eps: float = 1e-7
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.update_type not in UPDATE_TYPES:
            raise ValueError(
                f"update_type must be one of {UPDATE_TYPES}, got '{self.update_type}'"
            )
        if self.eps <= 0:
            raise ValueError(f"eps must be > 0, got {self.eps}")
        if self.updater is not None and self.update_type == "normalized":
            warnings.warn(
                "Setting an updater has no effect with update_type='normalized'",
                UserWarning,
            )
        if self.updater is None:
            self.updater = Sgd(learning_rate=0.01)


@njit(cache=True)
def _multiplicative_update(U: np.ndarray, N: np.ndarray, H: np.ndarray, eps: float) -> None:
    """In-place multiplicative update of U, component by component."""
    rows, K = U.shape
    for s in range(K):
        for l in range(rows):
            den = 0.0
            for c in range(K):
                den += U[l, c] * H[c, s]
            U[l, s] *= N[l, s] / (den + eps)


def update_terms(G: np.ndarray, factors: List[np.ndarray], mode: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nominator matrix N and Gram matrix H of one mode.

    Returns
    -------
    N : np.ndarray
        matricize(G, mode) @ khatri_rao of the other factors, shape (d_mode, K)
    H : np.ndarray
        Hadamard product of the other factors' Gram matrices, shape (K, K)
    """
    others = [factors[m] for m in reversed(range(len(factors))) if m != mode]
    N = matricize(G, mode) @ khatri_rao_many(others)
    H = np.ones((factors[mode].shape[1],) * 2)
    for U in others:
        H *= U.T @ U
    return N, H


def squared_error(G: np.ndarray, factors: List[np.ndarray]) -> float:
    """Squared Frobenius distance between G and its reconstruction."""
    return float(np.sum((G - kruskal_to_tensor(factors)) ** 2))


class NTF(UnsupervisedAlgorithm):
    """
    Non-negative tensor factorization.

    Attributes
    ----------
    num_components : int
        Number of components K
    config : NTFConfig
        Algorithm configuration
    loss_history : list of float
        Squared reconstruction error after every sweep

    Loading matrices: 'U0', 'U1', ... one (d_i, K) factor per mode.

    Supported stopping criteria: ITERATION, TIME, IMPROVEMENT.
    """

    supported_criteria = frozenset(
        {CriterionType.ITERATION, CriterionType.TIME, CriterionType.IMPROVEMENT}
    )

    def __init__(
        self,
        num_components: int = 3,
        config: Optional[NTFConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        if num_components < 1:
            raise ValueError(f"num_components must be >= 1, got {num_components}")
        super().__init__(backend)
        self.num_components = num_components
        self.config = config or NTFConfig()
        self._init_criteria(self.config.max_iter, self.config.tol, self.config.max_seconds)
        self._clear_outputs()

    def _clear_outputs(self) -> None:
        self._factors: List[np.ndarray] = []
        self._loss_history: List[float] = []

    @property
    def loss_history(self) -> List[float]:
        return list(self._loss_history)

    @property
    def decomposition(self) -> Tuple[np.ndarray, ...]:
        """Copies of the factor matrices, one per mode."""
        self._check_built()
        return tuple(U.copy() for U in self._factors)

    def _check(self, X: np.ndarray) -> None:
        validate_tensor(X, "X", min_ndim=2, nonnegative=True, algorithm="NTF")

    def _init_factors(self, shape) -> List[np.ndarray]:
        return [
            np.ascontiguousarray(
                np.abs(self.backend.randn((d, self.num_components), self.config.seed + 1000 * i))
            )
            for i, d in enumerate(shape)
        ]

    def _sweep_normalized(self, G: np.ndarray) -> None:
        for r, U in enumerate(self._factors):
            N, H = update_terms(G, self._factors, r)
            _multiplicative_update(U, np.ascontiguousarray(N), H, self.config.eps)

    def _sweep_step(self, G: np.ndarray, states) -> None:
        for r, U in enumerate(self._factors):
            N, H = update_terms(G, self._factors, r)
            for s in range(self.num_components):
                gradient = U @ H[:, s] - N[:, s]
                U[:, s] = np.maximum(U[:, s] - states[r][s].step(gradient), 0.0)

    def _sweep_iteration(self, G: np.ndarray, states) -> None:
        steps = []
        for r, U in enumerate(self._factors):
            N, H = update_terms(G, self._factors, r)
            steps.append(states[r].step(U @ H - N))
        for U, step in zip(self._factors, steps):
            np.maximum(U - step, 0.0, out=U)

    def _do_build(self, X: np.ndarray) -> Optional[str]:
        self._factors = self._init_factors(X.shape)
        update_type = self.config.update_type
        updater = self.config.updater

        if update_type == "normalized":
            def step():
                self._sweep_normalized(X)
        elif update_type == "step":
            states = [
                [updater.instantiate((U.shape[0],)) for _ in range(self.num_components)]
                for U in self._factors
            ]

            def step():
                self._sweep_step(X, states)
        else:
            states = [updater.instantiate(U.shape) for U in self._factors]

            def step():
                self._sweep_iteration(X, states)

        result = run_until_converged(
            step,
            lambda: squared_error(X, self._factors),
            self._criteria,
            verbose=self.config.verbose,
            label="[NTF]",
        )
        self._loss_history = result.loss_history
        return None

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        return {f"U{i}": U for i, U in enumerate(self._factors)}

    def reconstruction(self) -> np.ndarray:
        """Tensor rebuilt from the factor matrices."""
        self._check_built()
        return kruskal_to_tensor(self._factors)

    def _describe(self) -> str:
        return f"K={self.num_components}, update_type='{self.config.update_type}'"
