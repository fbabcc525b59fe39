"""
Shared iterative-optimizer loop.

Every iterative algorithm in the package is expressed as a step function,
a loss function and a CriterionSet; this module runs them until any
criterion matches.
"""

from dataclasses import dataclass, field
from typing import Callable, List

from multiway.stopping import CriterionSet


@dataclass
class LoopResult:
    """
    Outcome of :func:`run_until_converged`.

    Attributes
    ----------
    loss_history : list of float
        Monitored value after every iteration
    iterations : int
        Number of completed iterations
    force_stopped : bool
        Whether the loop ended because of a kill request
    """

    loss_history: List[float] = field(default_factory=list)
    iterations: int = 0
    force_stopped: bool = False

    @property
    def final_loss(self) -> float:
        return self.loss_history[-1] if self.loss_history else float("nan")


def run_until_converged(
    step: Callable[[], None],
    loss: Callable[[], float],
    criteria: CriterionSet,
    verbose: bool = False,
    label: str = "",
) -> LoopResult:
    """
    Run ``step`` until any criterion in ``criteria`` matches.

    The criteria are checked before each iteration, so a pending kill
    request stops the loop before any further work is done. After each step
    the value returned by ``loss`` is fed to the criteria and recorded.

    Parameters
    ----------
    step : callable
        Performs one iteration, mutating the caller's state
    loss : callable
        Returns the monitored value for the current state
    criteria : CriterionSet
        Stopping rule
    verbose : bool, default=False
        Print progress every 10 iterations
    label : str, default=""
        Prefix for progress output

    Returns
    -------
    LoopResult
    """
    result = LoopResult()
    prefix = f"{label} " if label else ""

    while not criteria.matches():
        step()
        value = float(loss())
        criteria.update(value)
        result.loss_history.append(value)
        result.iterations += 1

        if verbose and result.iterations % 10 == 0:
            print(f"{prefix}Iter {result.iterations}: loss={value:.6e}")

    result.force_stopped = criteria.is_killed
    if verbose:
        status = "force stopped" if result.force_stopped else "stopped"
        print(
            f"{prefix}{status} after {result.iterations} iterations, "
            f"final loss={result.final_loss:.6e}"
        )
    return result
