"""Stochastic search: sample candidates, filter by constraints, keep the best."""

from .engine import SearchEngine, WorkerOutcome
from .errors import (
    CollaboratorFailure,
    InvalidConfiguration,
    ParallelSearchError,
    SearchError,
)
from .interface import CallableProblem, HasGoal, SearchPhase, SearchProblem
from .selection import Direction, GoalSelector, select_best
from .streams import RandomStream, stream, worker_seeds
from .validation import Constraint, ConstraintSet, ValidatedCandidate, validate

__all__ = [
    "SearchEngine",
    "WorkerOutcome",
    "SearchError",
    "InvalidConfiguration",
    "CollaboratorFailure",
    "ParallelSearchError",
    "SearchProblem",
    "CallableProblem",
    "HasGoal",
    "SearchPhase",
    "Direction",
    "GoalSelector",
    "select_best",
    "RandomStream",
    "stream",
    "worker_seeds",
    "Constraint",
    "ConstraintSet",
    "ValidatedCandidate",
    "validate",
]
