"""Interfaces between the search engine and a concrete problem.

A problem supplies two capabilities:

* ``create_solution(rng)`` draws one candidate using only the random stream it
  is handed. Candidates are independent draws; the engine may call this
  concurrently from several workers, each with its own stream.
* ``select_best(batch)`` reduces a batch of validated candidates to the best
  valid one, or ``None``. It must depend on the batch contents rather than on
  the order in which candidates were generated.

Candidates are otherwise opaque. The stock selector only needs them to expose
a comparable ``goal`` attribute.

A simple mental model is the product-mix problem used in the tests:

* a candidate is an integer pair ``(x1, x2)`` drawn uniformly from a box,
* the goal is the profit ``350*x1 + 300*x2``,
* constraints are resource limits such as ``x1 + x2 <= 200``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Optional, Protocol, Sequence

from .selection import GoalSelector
from .streams import RandomStream
from .validation import ValidatedCandidate


class SearchPhase(Enum):
    """Stages of one sequential search pass.

    The engine keeps no state between calls; phases only label where a
    :class:`~sample_search.errors.CollaboratorFailure` was raised.
    """

    IDLE = auto()
    GENERATING = auto()
    VALIDATING = auto()
    SELECTING = auto()
    DONE = auto()


class HasGoal(Protocol):
    """A candidate exposing a comparable goal value."""

    @property
    def goal(self) -> Any: ...


class SearchProblem(Protocol):
    """Solution factory plus selection policy for one problem."""

    def create_solution(self, rng: RandomStream) -> Any:
        """Return one pseudo-random candidate drawn from ``rng``."""

        ...

    def select_best(self, batch: Sequence[ValidatedCandidate]) -> Optional[ValidatedCandidate]:
        """Return the best valid candidate of ``batch``, or ``None``."""

        ...


@dataclass(frozen=True)
class CallableProblem:
    """Adapt two plain functions to :class:`SearchProblem`."""

    create: Callable[[RandomStream], HasGoal]
    select: Callable[[Sequence[ValidatedCandidate]], Optional[ValidatedCandidate]] = field(
        default_factory=GoalSelector
    )

    def create_solution(self, rng: RandomStream) -> HasGoal:
        return self.create(rng)

    def select_best(self, batch: Sequence[ValidatedCandidate]) -> Optional[ValidatedCandidate]:
        return self.select(batch)
