"""
Stopping criteria for iterative multiway algorithms.

Each criterion tracks one condition under which an iterative loop stops:
- IterationCriterion: a maximum number of iterations
- TimeCriterion: a wall-clock budget in seconds
- ImprovementCriterion: relative loss improvement below a tolerance
- KillCriterion: always met, used for cooperative cancellation

``matches()`` never changes state; ``update()`` is the only mutator.
Non-positive thresholds are rejected with a UserWarning and the previous
valid value is kept.
"""

import copy
import math
import time
import warnings
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


class CriterionType(Enum):
    """Kinds of stopping criteria."""

    ITERATION = "iteration"
    TIME = "time"
    IMPROVEMENT = "improvement"
    KILL = "kill"


def _reject_threshold(name: str, value, kept) -> None:
    warnings.warn(
        f"{name} must be greater than zero, got {value}; keeping {kept}",
        UserWarning,
        stacklevel=3,
    )


class Criterion(ABC):
    """Base class of all stopping criteria."""

    criterion_type: CriterionType

    @abstractmethod
    def matches(self) -> bool:
        """Whether the criterion is met."""

    def update(self, value: Optional[float] = None) -> None:
        """Advance the criterion state after one iteration."""

    @abstractmethod
    def reset(self) -> None:
        """Return to the initial state, keeping thresholds."""

    def copy(self) -> "Criterion":
        """Independent copy with the same thresholds and a fresh state."""
        other = copy.copy(self)
        other.reset()
        return other

    def same_type_as(self, other: "Criterion") -> bool:
        return self.criterion_type == other.criterion_type


class IterationCriterion(Criterion):
    """Met once ``max_iterations`` updates have been counted."""

    criterion_type = CriterionType.ITERATION
    DEFAULT_MAX_ITERATIONS = 1000

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self._max_iterations = self.DEFAULT_MAX_ITERATIONS
        self.max_iterations = max_iterations
        self.current_iteration = 0

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        if value <= 0:
            _reject_threshold("Maximum number of iterations", value, self._max_iterations)
            return
        self._max_iterations = int(value)

    def matches(self) -> bool:
        return self.current_iteration >= self._max_iterations

    def update(self, value: Optional[float] = None) -> None:
        self.current_iteration += 1

    def reset(self) -> None:
        self.current_iteration = 0

    def __repr__(self) -> str:
        return f"IterationCriterion(max_iterations={self._max_iterations})"


class TimeCriterion(Criterion):
    """
    Met once ``max_seconds`` have elapsed.

    The clock starts on the first call to ``matches()`` after construction
    or reset, so time spent between configuring and running an algorithm
    is not counted.
    """

    criterion_type = CriterionType.TIME
    DEFAULT_MAX_SECONDS = 60.0

    def __init__(self, max_seconds: float = DEFAULT_MAX_SECONDS):
        self._max_seconds = self.DEFAULT_MAX_SECONDS
        self.max_seconds = max_seconds
        self._start: Optional[float] = None
        self.elapsed_seconds = 0.0

    @property
    def max_seconds(self) -> float:
        return self._max_seconds

    @max_seconds.setter
    def max_seconds(self, value: float) -> None:
        if value <= 0:
            _reject_threshold("Maximum number of seconds", value, self._max_seconds)
            return
        self._max_seconds = float(value)

    def matches(self) -> bool:
        if self._start is None:
            # Starting the stopwatch is not a criterion state change
            self._start = time.perf_counter()
        return self.elapsed_seconds >= self._max_seconds

    def update(self, value: Optional[float] = None) -> None:
        if self._start is None:
            self._start = time.perf_counter()
        self.elapsed_seconds = time.perf_counter() - self._start

    def reset(self) -> None:
        self._start = None
        self.elapsed_seconds = 0.0

    def __repr__(self) -> str:
        return f"TimeCriterion(max_seconds={self._max_seconds})"


class ImprovementCriterion(Criterion):
    """
    Met when the relative loss improvement falls below ``tol``.

    ``update(new_loss)`` computes ``abs(old - new) / old`` and then stores
    the new loss. The old loss starts at infinity, so the first comparison
    after construction or reset never matches.
    """

    criterion_type = CriterionType.IMPROVEMENT
    DEFAULT_TOL = 1e-8

    def __init__(self, tol: float = DEFAULT_TOL):
        self._tol = self.DEFAULT_TOL
        self.tol = tol
        self.old_loss = math.inf
        self.improvement = math.inf

    @property
    def tol(self) -> float:
        return self._tol

    @tol.setter
    def tol(self, value: float) -> None:
        if value <= 0:
            _reject_threshold("Improvement tolerance", value, self._tol)
            return
        self._tol = float(value)

    def matches(self) -> bool:
        return self.improvement < self._tol

    def update(self, value: Optional[float] = None) -> None:
        if value is None:
            raise TypeError("ImprovementCriterion.update() requires the new loss")
        new_loss = float(value)
        old_loss = self.old_loss
        if math.isinf(old_loss):
            self.improvement = math.inf
        elif old_loss == 0.0:
            self.improvement = 0.0 if new_loss == 0.0 else math.inf
        else:
            self.improvement = abs(old_loss - new_loss) / abs(old_loss)
        self.old_loss = new_loss

    def reset(self) -> None:
        self.old_loss = math.inf
        self.improvement = math.inf

    def __repr__(self) -> str:
        return f"ImprovementCriterion(tol={self._tol})"


class KillCriterion(Criterion):
    """Always met; marks a cancelled run."""

    criterion_type = CriterionType.KILL

    def matches(self) -> bool:
        return True

    def reset(self) -> None:
        pass

    def __repr__(self) -> str:
        return "KillCriterion()"


def iterations(max_iterations: int) -> IterationCriterion:
    """Create an iteration criterion."""
    return IterationCriterion(max_iterations)


def time_limit(max_seconds: float) -> TimeCriterion:
    """Create a time criterion."""
    return TimeCriterion(max_seconds)


def improvement(tol: float) -> ImprovementCriterion:
    """Create an improvement criterion."""
    return ImprovementCriterion(tol)


def kill() -> KillCriterion:
    """Create a kill criterion."""
    return KillCriterion()
