"""
Criterion sets: the composite stopping rule of an algorithm.

A CriterionSet maps each CriterionType to at most one criterion and is met
when any of its criteria is met. It also carries the cancellation flag of
the owning algorithm: ``kill()`` may be called from any thread, and the
owning thread turns the request into a KillCriterion the next time it
checks ``matches()``.
"""

import threading
from typing import Dict, Iterable, Iterator, Optional

from multiway.exceptions import UnsupportedStoppingCriterionError
from multiway.stopping.criteria import Criterion, CriterionType, KillCriterion


class CriterionSet:
    """
    Stopping criteria attached to one algorithm.

    Parameters
    ----------
    supported : iterable of CriterionType
        Criterion types the owning algorithm accepts. KILL is always accepted.
    criteria : iterable of Criterion, optional
        Initial criteria
    kill_event : threading.Event, optional
        Shared cancellation flag (a new one is created if omitted)
    """

    def __init__(
        self,
        supported: Iterable[CriterionType],
        criteria: Iterable[Criterion] = (),
        kill_event: Optional[threading.Event] = None,
    ):
        self.supported = frozenset(supported) | {CriterionType.KILL}
        self._criteria: Dict[CriterionType, Criterion] = {}
        self._owns_kill = kill_event is None
        self._kill_event = kill_event if kill_event is not None else threading.Event()
        for criterion in criteria:
            self.add(criterion)

    def add(self, criterion: Criterion) -> None:
        """
        Attach a criterion, replacing an existing one of the same type.

        Raises
        ------
        UnsupportedStoppingCriterionError
            If the criterion type is not supported by the owning algorithm
        """
        ctype = criterion.criterion_type
        if ctype not in self.supported:
            names = ", ".join(sorted(t.name for t in self.supported - {CriterionType.KILL}))
            raise UnsupportedStoppingCriterionError(
                f"Stopping criterion {ctype.name} is not supported, "
                f"supported criteria are: {names or 'none'}"
            )
        self._criteria[ctype] = criterion

    def remove(self, ctype: CriterionType) -> None:
        self._criteria.pop(ctype, None)

    def get(self, ctype: CriterionType) -> Optional[Criterion]:
        return self._criteria.get(ctype)

    def __contains__(self, ctype: CriterionType) -> bool:
        return ctype in self._criteria

    def __iter__(self) -> Iterator[Criterion]:
        return iter(list(self._criteria.values()))

    def __len__(self) -> int:
        return len(self._criteria)

    def matches(self) -> bool:
        """True if any criterion is met or a kill has been requested."""
        if self._kill_event.is_set() and CriterionType.KILL not in self._criteria:
            self._criteria[CriterionType.KILL] = KillCriterion()
        return any(c.matches() for c in self._criteria.values())

    def update(self, loss: Optional[float] = None) -> None:
        """Feed ``loss`` to the improvement criterion and advance the others."""
        for ctype, criterion in self._criteria.items():
            if ctype is CriterionType.IMPROVEMENT:
                criterion.update(loss)
            elif ctype is not CriterionType.KILL:
                criterion.update()

    def reset(self) -> None:
        """Reset every criterion (the kill request is left untouched)."""
        for criterion in self._criteria.values():
            criterion.reset()

    def kill(self) -> None:
        """Request cancellation; safe to call from another thread."""
        self._kill_event.set()

    @property
    def is_killed(self) -> bool:
        return self._kill_event.is_set()

    def clear_kill(self) -> None:
        """
        Drop a materialized KillCriterion and withdraw the kill request.

        A set sharing its flag with a parent leaves the flag alone.
        """
        if self._owns_kill:
            self._kill_event.clear()
        self._criteria.pop(CriterionType.KILL, None)

    def copy(
        self,
        supported: Optional[Iterable[CriterionType]] = None,
        share_kill: bool = True,
    ) -> "CriterionSet":
        """
        Copy the criteria into a new set with fresh state.

        Parameters
        ----------
        supported : iterable of CriterionType, optional
            Restrict the copy to these types (criteria of other types are
            dropped). Defaults to the supported types of this set.
        share_kill : bool, default=True
            Share the cancellation flag with this set
        """
        supported = self.supported if supported is None else frozenset(supported)
        other = CriterionSet(
            supported,
            kill_event=self._kill_event if share_kill else None,
        )
        for ctype, criterion in self._criteria.items():
            if ctype is not CriterionType.KILL and ctype in other.supported:
                other.add(criterion.copy())
        return other

    def __repr__(self) -> str:
        inner = ", ".join(repr(c) for c in self._criteria.values())
        return f"CriterionSet([{inner}])"
