"""Goal-based selection over validated batches.

:class:`GoalSelector` is the stock selection policy: drop invalid candidates,
then keep the one with the best goal value in the configured direction.

Ties
----
When several valid candidates share the optimal goal value, the one that
appears first in the supplied batch wins. The result therefore depends only on
the batch contents when goal values are unique. The parallel engine feeds the
final reduction in worker-index order, so ties stay reproducible under a fixed
seed regardless of which worker finishes first.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union

from .errors import InvalidConfiguration
from .validation import ValidatedCandidate


class Direction(Enum):
    MAXIMISE = "max"
    MINIMISE = "min"

    @classmethod
    def parse(cls, value: Union["Direction", str]) -> "Direction":
        if isinstance(value, Direction):
            return value
        key = str(value).strip().lower()
        if key in ("max", "maximise", "maximize"):
            return cls.MAXIMISE
        if key in ("min", "minimise", "minimize"):
            return cls.MINIMISE
        raise InvalidConfiguration(f"unknown optimisation direction: {value!r}")

    def improves(self, goal: Any, incumbent: Any) -> bool:
        """Strict improvement, so the first of several equal goals is kept."""

        if self is Direction.MAXIMISE:
            return goal > incumbent
        return goal < incumbent


@dataclass(frozen=True)
class GoalSelector:
    """Selection policy picking the valid candidate with the best goal."""

    direction: Direction = Direction.MAXIMISE
    attribute: str = "goal"

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", Direction.parse(self.direction))

    def __call__(self, batch: Iterable[Optional[ValidatedCandidate]]) -> Optional[ValidatedCandidate]:
        best: Optional[ValidatedCandidate] = None
        best_goal: Any = None
        for item in batch:
            if item is None or not item.is_valid:
                continue
            goal = getattr(item.candidate, self.attribute)
            if best is None or self.direction.improves(goal, best_goal):
                best = item
                best_goal = goal
        return best


def select_best(
    batch: Iterable[Optional[ValidatedCandidate]],
    direction: Union[Direction, str] = Direction.MAXIMISE,
) -> Optional[ValidatedCandidate]:
    """Return the best valid entry of ``batch``, or ``None`` if there is none."""

    return GoalSelector(direction=Direction.parse(direction))(batch)
