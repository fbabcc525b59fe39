"""
Convergence engine for iterative algorithms.

- criteria: iteration, time, improvement and kill criteria
- monitor: CriterionSet, the composite "stop when any matches" rule
"""

from multiway.stopping.criteria import (
    Criterion,
    CriterionType,
    ImprovementCriterion,
    IterationCriterion,
    KillCriterion,
    TimeCriterion,
    improvement,
    iterations,
    kill,
    time_limit,
)
from multiway.stopping.monitor import CriterionSet

__all__ = [
    "Criterion",
    "CriterionSet",
    "CriterionType",
    "ImprovementCriterion",
    "IterationCriterion",
    "KillCriterion",
    "TimeCriterion",
    "improvement",
    "iterations",
    "kill",
    "time_limit",
]
