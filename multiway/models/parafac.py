"""
PARAFAC: trilinear decomposition by Alternating Least Squares.

An order-3 tensor X of shape (I, J, K) is approximated by F rank-one
components,

    X[i, j, k] ~ sum_f A[i, f] * B[j, f] * C[k, f]

Each ALS sweep solves one factor in closed form with the other two fixed:

    A = X_(0) @ pinv(khatri_rao(C, B)).T
    B = X_(1) @ pinv(khatri_rao(C, A)).T
    C = X_(2) @ pinv(khatri_rao(B, A)).T

Several random restarts may be run; the restart with the lowest final loss
is kept and normalized (column scale moved into A, components ordered by
decreasing size, sign convention applied to C and B).

Typical usage:
--------------
    from multiway.models import PARAFAC, PARAFACConfig

    model = PARAFAC(num_components=3, config=PARAFACConfig(init_method="random", num_starts=5))
    msg = model.build(X)
    A = model.loading_matrices["A"]
    scores = model.filter(X_new)

References:
- Harshman (1970), "Foundations of the PARAFAC procedure"
- Bro (1997), "PARAFAC. Tutorial and applications"
"""

import math
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from multiway.core import UnsupervisedAlgorithm, run_until_converged
from multiway.stopping import CriterionType
from multiway.tensor import (
    khatri_rao,
    kruskal_to_tensor,
    largest_magnitude_signs,
    matricize,
    orth,
    pseudo_invert,
)
from multiway.tensor.backend import TensorBackend
from multiway.utils.shapes import as_tensor, check_variables, validate_tensor

INIT_METHODS = ("svd", "random", "random_orthogonalized")

# Eigenvalues of X X^T at or below this are treated as zero during SVD init
_EIGENVALUE_FLOOR = 1e-6

Factors = Tuple[np.ndarray, np.ndarray, np.ndarray]


@dataclass
class PARAFACConfig:
    """
    Configuration for PARAFAC.

    Parameters
    ----------
    init_method : str, default='svd'
        Factor initialization: 'svd' (leading eigenvectors of each
        unfolding), 'random' (standard normal B and C) or
        'random_orthogonalized' (Gram-Schmidt orthogonalized random B and C)
    num_starts : int, default=1
        Number of restarts; only meaningful for random initializations
    seed : int, default=0
        Base seed; restart r draws B with seed + r and C with seed + r + 1000
    max_iter : int, optional, default=1000
        Maximum number of ALS sweeps per restart
    tol : float, optional
        Relative loss improvement tolerance (no improvement criterion if None)
    max_seconds : float, optional
        Time budget per restart (no time criterion if None)
    verbose : bool, default=False
        Print iteration progress
    """

    init_method: str = "svd"
    num_starts: int = 1
    seed: int = 0
    max_iter: Optional[int] = 1000
    tol: Optional[float] = None
    max_seconds: Optional[float] = None
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.init_method not in INIT_METHODS:
            raise ValueError(
                f"init_method must be one of {INIT_METHODS}, got '{self.init_method}'"
            )
        if self.num_starts < 1:
            raise ValueError(f"num_starts must be >= 1, got {self.num_starts}")
        if self.num_starts > 1 and self.init_method == "svd":
            warnings.warn(
                "num_starts has no effect with init_method='svd', setting num_starts=1",
                UserWarning,
            )
            self.num_starts = 1


@dataclass(frozen=True)
class _BestFit:
    """Best restart seen so far."""

    loss: float = math.inf
    factors: Optional[Factors] = None


def _keep_best(best: _BestFit, loss: float, factors: Factors) -> _BestFit:
    """Return the better of ``best`` and a new restart (ties keep ``best``)."""
    if loss < best.loss:
        return _BestFit(loss=loss, factors=tuple(f.copy() for f in factors))
    return best


def svd_init_factor(X_unfolded: np.ndarray, num_components: int) -> np.ndarray:
    """
    Initial factor from the leading eigenvectors of X_(n) X_(n)^T.

    Eigenvectors are taken in decreasing eigenvalue order, skipping
    eigenvalues at or below 1e-6. If fewer than ``num_components`` remain,
    the trailing columns stay zero and a UserWarning is issued. Each column
    is flipped so its largest-magnitude entry is positive.
    """
    gram = X_unfolded @ X_unfolded.T
    evals, evecs = np.linalg.eigh(gram)
    order = np.argsort(evals)[::-1]
    evals = evals[order]
    evecs = evecs[:, order]

    keep = np.flatnonzero(evals > _EIGENVALUE_FLOOR)[:num_components]
    factor = np.zeros((X_unfolded.shape[0], num_components))
    factor[:, : keep.size] = evecs[:, keep]
    if keep.size < num_components:
        warnings.warn(
            f"Only {keep.size} non-zero eigenvalues available for {num_components} "
            f"components; remaining initial columns are zero",
            UserWarning,
            stacklevel=2,
        )
    return factor * largest_magnitude_signs(factor)


def als_sweep(X_unfolded: List[np.ndarray], A: np.ndarray, B: np.ndarray, C: np.ndarray) -> Factors:
    """One ALS sweep updating A, then B, then C."""
    A = X_unfolded[0] @ pseudo_invert(khatri_rao(C, B)).T
    B = X_unfolded[1] @ pseudo_invert(khatri_rao(C, A)).T
    C = X_unfolded[2] @ pseudo_invert(khatri_rao(B, A)).T
    return A, B, C


def reconstruction_loss(X0: np.ndarray, A: np.ndarray, B: np.ndarray, C: np.ndarray) -> float:
    """Squared Frobenius distance between X_(0) and A khatri_rao(C, B)^T."""
    residual = X0 - A @ khatri_rao(C, B).T
    return float(np.sum(residual ** 2))


def normalize_factors(A: np.ndarray, B: np.ndarray, C: np.ndarray) -> Factors:
    """
    Bring PARAFAC factors into canonical form.

    1. Column norms of B and C are moved into A (zero columns are skipped)
    2. Components are ordered by decreasing diag(A^T A)
    3. Columns of C, then B, are flipped so their largest-magnitude entry
       is positive; the flips are compensated in A

    The reconstructed tensor is unchanged.
    """
    A = A.copy()
    B = B.copy()
    C = C.copy()

    for loading in (B, C):
        norms = np.linalg.norm(loading, axis=0)
        nonzero = norms > 0
        A[:, nonzero] *= norms[nonzero]
        loading[:, nonzero] /= norms[nonzero]

    order = np.argsort(-np.einsum("if,if->f", A, A), kind="stable")
    A = A[:, order]
    B = B[:, order]
    C = C[:, order]

    signs = np.ones(A.shape[1])
    for loading in (C, B):
        flips = largest_magnitude_signs(loading)
        loading *= flips
        signs *= flips
    A *= signs
    return A, B, C


class PARAFAC(UnsupervisedAlgorithm):
    """
    PARAFAC decomposition of three-way data.

    Attributes
    ----------
    num_components : int
        Number of components F
    config : PARAFACConfig
        Algorithm configuration
    loss_history : list of list of float
        Loss per iteration for every restart (after build)
    best_loss : float
        Final loss of the kept restart (after build)

    Loading matrices: 'A' (I, F), 'B' (J, F), 'C' (K, F).

    Supported stopping criteria: ITERATION, TIME, IMPROVEMENT.

    Examples
    --------
    >>> X = np.random.randn(10, 6, 4)
    >>> model = PARAFAC(num_components=2)
    >>> model.build(X) is None
    True
    >>> model.loading_matrices["A"].shape
    (10, 2)
    """

    supported_criteria = frozenset(
        {CriterionType.ITERATION, CriterionType.TIME, CriterionType.IMPROVEMENT}
    )

    def __init__(
        self,
        num_components: int = 3,
        config: Optional[PARAFACConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        if num_components < 1:
            raise ValueError(f"num_components must be >= 1, got {num_components}")
        super().__init__(backend)
        self.num_components = num_components
        self.config = config or PARAFACConfig()
        self._init_criteria(self.config.max_iter, self.config.tol, self.config.max_seconds)
        self._clear_outputs()

    def _clear_outputs(self) -> None:
        self.A_: Optional[np.ndarray] = None
        self.B_: Optional[np.ndarray] = None
        self.C_: Optional[np.ndarray] = None
        self._loss_history: List[List[float]] = []
        self._best_loss = math.inf

    @property
    def loss_history(self) -> List[List[float]]:
        return [list(losses) for losses in self._loss_history]

    @property
    def best_loss(self) -> float:
        self._check_built()
        return self._best_loss

    def _check(self, X: np.ndarray) -> None:
        validate_tensor(X, "X", ndims=(3,), algorithm="PARAFAC")

    def _init_factors(self, X_unfolded: List[np.ndarray], shape, start: int) -> Factors:
        I, J, K = shape
        F = self.num_components
        method = self.config.init_method
        if method == "svd":
            return tuple(svd_init_factor(X_unfolded[n], F) for n in range(3))

        seed = self.config.seed + start
        A = self.backend.zeros((I, F))
        B = self.backend.randn((J, F), seed)
        C = self.backend.randn((K, F), seed + 1000)
        if method == "random_orthogonalized":
            B = orth(B, normalize=False)
            C = orth(C, normalize=False)
        return A, B, C

    def _do_build(self, X: np.ndarray) -> Optional[str]:
        X_unfolded = [matricize(X, n) for n in range(3)]
        best = _BestFit()

        for start in range(self.config.num_starts):
            factors = list(self._init_factors(X_unfolded, X.shape, start))

            def step():
                factors[:] = als_sweep(X_unfolded, *factors)

            def loss():
                return reconstruction_loss(X_unfolded[0], *factors)

            result = run_until_converged(
                step,
                loss,
                self._criteria,
                verbose=self.config.verbose,
                label=f"[PARAFAC start {start}]",
            )
            self._loss_history.append(result.loss_history)
            self.A_, self.B_, self.C_ = factors
            if result.force_stopped:
                return None
            if result.loss_history:
                best = _keep_best(best, result.final_loss, tuple(factors))
            self._criteria.reset()

        if best.factors is None:
            return "PARAFAC did not produce a finite loss"

        self._best_loss = best.loss
        self.A_, self.B_, self.C_ = normalize_factors(*best.factors)
        return None

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        return {"A": self.A_, "B": self.B_, "C": self.C_}

    def reconstruct(self) -> np.ndarray:
        """Full (I, J, K) tensor rebuilt from the loading matrices."""
        self._check_built()
        return kruskal_to_tensor([self.A_, self.B_, self.C_])

    def filter(self, X) -> np.ndarray:
        """
        Scores of new samples on the fitted B and C modes.

        Parameters
        ----------
        X : array-like
            New data, shape (n, J, K)

        Returns
        -------
        A_new : np.ndarray
            Shape (n, F)

        Raises
        ------
        ModelNotBuiltError
            If the model has not been built successfully
        ValueError
            If X does not match the fitted J and K
        """
        self._check_built()
        X = as_tensor(X, "X")
        validate_tensor(X, "X", ndims=(3,), algorithm="PARAFAC")
        check_variables(X, (self.B_.shape[0], self.C_.shape[0]))
        return matricize(X, 0) @ pseudo_invert(khatri_rao(self.C_, self.B_)).T

    def _describe(self) -> str:
        return f"F={self.num_components}, init='{self.config.init_method}'"
