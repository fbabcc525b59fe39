"""
Algorithm front-ends.

All algorithms share the same life cycle:

    model = PARAFAC(num_components=3)
    msg = model.build(X)          # None on success, a message otherwise
    if msg is None:
        scores = model.filter(X_new)

``build`` never raises for malformed input; validation problems come back
as the returned message. Calling ``predict``/``filter`` or reading outputs
before a successful build raises ModelNotBuiltError.

Three thin front-ends adapt the input shapes to the shared core:
- UnsupervisedAlgorithm.build(X)
- SupervisedAlgorithm.build(X, Y)
- MultiBlockAlgorithm.build(Xs, Y)
"""

import types
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from multiway.exceptions import ModelNotBuiltError
from multiway.stopping import (
    Criterion,
    CriterionSet,
    CriterionType,
    ImprovementCriterion,
    IterationCriterion,
    TimeCriterion,
)
from multiway.tensor.backend import TensorBackend, get_default_backend
from multiway.utils.shapes import as_tensor, canonicalize_targets

FORCE_STOPPED = "Algorithm force stopped."


def _readonly(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


class Algorithm:
    """
    State shared by every algorithm: criteria, backend and build flags.

    Subclasses set ``supported_criteria`` and implement ``_clear_outputs``
    and ``_loading_matrices``.
    """

    supported_criteria: frozenset = frozenset()

    def __init__(self, backend: Optional[TensorBackend] = None):
        self.backend = backend if backend is not None else get_default_backend()
        self._criteria = CriterionSet(self.supported_criteria)
        self._is_finished = False
        self._is_force_stopped = False

    def _adopt_criteria(self, criteria: CriterionSet) -> None:
        """Use a criterion set derived from a parent algorithm."""
        self._criteria = criteria

    def _init_criteria(
        self,
        max_iter: Optional[int] = None,
        tol: Optional[float] = None,
        max_seconds: Optional[float] = None,
    ) -> None:
        """Seed the criterion set from config values (None leaves a type unset)."""
        if max_iter is not None and CriterionType.ITERATION in self.supported_criteria:
            self._criteria.add(IterationCriterion(max_iter))
        if tol is not None and CriterionType.IMPROVEMENT in self.supported_criteria:
            self._criteria.add(ImprovementCriterion(tol))
        if max_seconds is not None and CriterionType.TIME in self.supported_criteria:
            self._criteria.add(TimeCriterion(max_seconds))
        # An empty set never matches, so fall back to the default iteration cap
        if len(self._criteria) == 0 and CriterionType.ITERATION in self.supported_criteria:
            self._criteria.add(IterationCriterion())

    @property
    def is_finished(self) -> bool:
        """Whether the last build completed successfully."""
        return self._is_finished

    @property
    def is_force_stopped(self) -> bool:
        """Whether the last build was cancelled via stop_execution()."""
        return self._is_force_stopped

    @property
    def stopping_criteria(self) -> List[Criterion]:
        return list(self._criteria)

    def add_stopping_criterion(self, criterion: Criterion) -> None:
        """
        Attach a stopping criterion, replacing one of the same type.

        Raises
        ------
        UnsupportedStoppingCriterionError
            If this algorithm does not support the criterion type
        """
        self._criteria.add(criterion)

    def stop_execution(self) -> None:
        """Ask a running build to stop at its next iteration (thread-safe)."""
        self._criteria.kill()

    def _reset_state(self) -> None:
        self._is_finished = False
        self._is_force_stopped = False
        self._criteria.clear_kill()
        self._criteria.reset()
        self._clear_outputs()

    def _conclude(self, result: Optional[str]) -> Optional[str]:
        if self._criteria.is_killed:
            self._is_force_stopped = True
            return FORCE_STOPPED
        if result is None:
            self._is_finished = True
        return result

    def _check_built(self) -> None:
        if not self._is_finished:
            raise ModelNotBuiltError(
                f"{type(self).__name__} has not been built. Call build() first."
            )

    def _clear_outputs(self) -> None:
        """Drop the outputs of a previous build."""

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        return {}

    @property
    def loading_matrices(self) -> Mapping[str, np.ndarray]:
        """Read-only mapping of named loading matrices of the built model."""
        self._check_built()
        return types.MappingProxyType(
            {key: _readonly(value) for key, value in self._loading_matrices().items()}
        )

    def __repr__(self) -> str:
        if self._is_finished:
            state = "built"
        elif self._is_force_stopped:
            state = "force stopped"
        else:
            state = "not built"
        return f"{type(self).__name__}({self._describe()}, {state})"

    def _describe(self) -> str:
        return ""


class UnsupervisedAlgorithm(Algorithm):
    """Front-end for algorithms built from a single data tensor."""

    def build(self, X) -> Optional[str]:
        """
        Build the model from X.

        Returns
        -------
        str or None
            None on success, otherwise an error message (FORCE_STOPPED if
            the build was cancelled)
        """
        self._reset_state()
        try:
            X = as_tensor(X, "X")
            self._check(X)
        except ValueError as e:
            return str(e)
        return self._conclude(self._do_build(X))

    def _check(self, X: np.ndarray) -> None:
        """Raise ValueError if X is unsuitable."""

    def _do_build(self, X: np.ndarray) -> Optional[str]:
        raise NotImplementedError


class SupervisedAlgorithm(Algorithm):
    """Front-end for regression algorithms built from predictors X and targets Y."""

    def build(self, X, Y) -> Optional[str]:
        """
        Build the model from predictors X and targets Y.

        Y may be 1-D (single response) or 2-D (multiple responses).

        Returns
        -------
        str or None
            None on success, otherwise an error message (FORCE_STOPPED if
            the build was cancelled)
        """
        self._reset_state()
        try:
            X = as_tensor(X, "X")
            Y = canonicalize_targets(as_tensor(Y, "Y"))
            self._check(X, Y)
        except ValueError as e:
            return str(e)
        return self._conclude(self._do_build(X, Y))

    def predict(self, X) -> np.ndarray:
        """
        Predict targets for new predictor data.

        Raises
        ------
        ModelNotBuiltError
            If the model has not been built successfully
        """
        self._check_built()
        return self._predict(as_tensor(X, "X"))

    def _check(self, X: np.ndarray, Y: np.ndarray) -> None:
        """Raise ValueError if X or Y is unsuitable."""

    def _do_build(self, X: np.ndarray, Y: np.ndarray) -> Optional[str]:
        raise NotImplementedError

    def _predict(self, X: np.ndarray) -> np.ndarray:
        raise NotImplementedError


class MultiBlockAlgorithm(Algorithm):
    """Front-end for regression algorithms built from several predictor blocks."""

    def build(self, Xs: Sequence, Y) -> Optional[str]:
        """
        Build the model from predictor blocks Xs and targets Y.

        Returns
        -------
        str or None
            None on success, otherwise an error message (FORCE_STOPPED if
            the build was cancelled)
        """
        self._reset_state()
        try:
            if Xs is None or len(Xs) == 0:
                raise ValueError("At least one predictor block is required")
            Xs = [as_tensor(X, f"X[{i}]") for i, X in enumerate(Xs)]
            Y = canonicalize_targets(as_tensor(Y, "Y"))
            self._check(Xs, Y)
        except (TypeError, ValueError) as e:
            return str(e)
        return self._conclude(self._do_build(Xs, Y))

    def predict(self, Xs: Sequence) -> np.ndarray:
        """
        Predict targets for new predictor blocks.

        Raises
        ------
        ModelNotBuiltError
            If the model has not been built successfully
        """
        self._check_built()
        return self._predict([as_tensor(X, f"X[{i}]") for i, X in enumerate(Xs)])

    def _check(self, Xs: List[np.ndarray], Y: np.ndarray) -> None:
        """Raise ValueError if the blocks or Y are unsuitable."""

    def _do_build(self, Xs: List[np.ndarray], Y: np.ndarray) -> Optional[str]:
        raise NotImplementedError

    def _predict(self, Xs: List[np.ndarray]) -> np.ndarray:
        raise NotImplementedError
