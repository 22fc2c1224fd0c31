"""Integer linear problems solved by random sampling.

Overview
--------
A :class:`LinearProblem` describes an integer decision vector ``x`` drawn
uniformly from an inclusive box, a linear goal ``c . x`` and any number of
linear constraints ``a . x (<=|>=|==) b``. It is a
:class:`~sample_search.interface.SearchProblem`: ``create_solution`` draws one
:class:`IntegerMix` from the stream it is given, and ``select_best`` keeps the
valid mix with the best goal.

The reference instance, :func:`product_mix`, is the classic two-product
example::

    maximise   350*x1 + 300*x2
    subject to x1 + x2       <= 200
               9*x1 + 6*x2   <= 1566
               12*x1 + 16*x2 <= 2880
               1 <= x1, x2 <= 174

whose integer optimum is ``x1 = 122, x2 = 78`` with goal ``66100``.

Notes
-----
Arithmetic is done on plain Python numbers: the vectors are short, and the
per-candidate cost of creating numpy arrays dominates at this size.
"""
from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from ..errors import InvalidConfiguration
from ..selection import Direction, GoalSelector
from ..streams import RandomStream
from ..validation import ConstraintSet, ValidatedCandidate

Number = Union[int, float]

_SENSES: Dict[str, Callable[[Number, Number], bool]] = {
    "<=": operator.le,
    ">=": operator.ge,
    "==": operator.eq,
}


def _dot(coefficients: Sequence[Number], values: Sequence[Number]) -> Number:
    return sum(c * v for c, v in zip(coefficients, values))


@dataclass(frozen=True)
class IntegerMix:
    """One candidate: integer values for every decision variable."""

    values: Tuple[int, ...]
    goal: Number
    names: Tuple[str, ...] = field(default=(), compare=False, repr=False)

    def as_dict(self) -> Dict[str, int]:
        names = self.names or tuple(f"x{i + 1}" for i in range(len(self.values)))
        return dict(zip(names, self.values))


@dataclass(frozen=True)
class LinearConstraint:
    """``coefficients . values  <sense>  bound`` as a pure predicate."""

    name: str
    coefficients: Tuple[Number, ...]
    bound: Number
    sense: str = "<="

    def __post_init__(self) -> None:
        if self.sense not in _SENSES:
            raise InvalidConfiguration(
                f"constraint {self.name!r}: unknown sense {self.sense!r}, expected one of {sorted(_SENSES)}"
            )
        object.__setattr__(self, "coefficients", tuple(self.coefficients))

    def lhs(self, candidate: IntegerMix) -> Number:
        return _dot(self.coefficients, candidate.values)

    def __call__(self, candidate: IntegerMix) -> bool:
        return _SENSES[self.sense](self.lhs(candidate), self.bound)

    def describe(self, variables: Sequence[str]) -> str:
        terms = " + ".join(
            f"{c}*{v}" if c != 1 else v for c, v in zip(self.coefficients, variables) if c != 0
        )
        return f"{terms} {self.sense} {self.bound}"


def _bounds(value: Union[int, Sequence[int]], size: int, label: str) -> Tuple[int, ...]:
    if isinstance(value, (list, tuple)):
        if len(value) != size:
            raise InvalidConfiguration(f"{label} bounds: expected {size} values, got {len(value)}")
        return tuple(int(v) for v in value)
    return (int(value),) * size


@dataclass(frozen=True)
class LinearProblem:
    """Integer linear problem over an inclusive box."""

    variables: Tuple[str, ...]
    objective: Tuple[Number, ...]
    lower: Tuple[int, ...]
    upper: Tuple[int, ...]
    constraints: Tuple[LinearConstraint, ...] = ()
    direction: Direction = Direction.MAXIMISE

    def __post_init__(self) -> None:
        size = len(self.variables)
        if size == 0:
            raise InvalidConfiguration("a linear problem needs at least one variable")
        object.__setattr__(self, "variables", tuple(self.variables))
        object.__setattr__(self, "objective", tuple(self.objective))
        object.__setattr__(self, "lower", _bounds(self.lower, size, "lower"))
        object.__setattr__(self, "upper", _bounds(self.upper, size, "upper"))
        object.__setattr__(self, "constraints", tuple(self.constraints))
        object.__setattr__(self, "direction", Direction.parse(self.direction))

        if len(self.objective) != size:
            raise InvalidConfiguration(f"objective: expected {size} coefficients, got {len(self.objective)}")
        for lo, hi, name in zip(self.lower, self.upper, self.variables):
            if lo > hi:
                raise InvalidConfiguration(f"variable {name!r}: lower bound {lo} exceeds upper bound {hi}")
        for constraint in self.constraints:
            if len(constraint.coefficients) != size:
                raise InvalidConfiguration(
                    f"constraint {constraint.name!r}: expected {size} coefficients, "
                    f"got {len(constraint.coefficients)}"
                )

    # SearchProblem -----------------------------------------------------

    def create_solution(self, rng: RandomStream) -> IntegerMix:
        values = tuple(rng.integers(self.lower, self.upper, endpoint=True).tolist())
        return IntegerMix(values=values, goal=_dot(self.objective, values), names=self.variables)

    def select_best(self, batch: Sequence[ValidatedCandidate]) -> Optional[ValidatedCandidate]:
        return GoalSelector(direction=self.direction)(batch)

    # Helpers -----------------------------------------------------------

    def constraint_set(self) -> ConstraintSet:
        return ConstraintSet(self.constraints)

    def describe_constraints(self) -> Dict[str, str]:
        return {c.name: c.describe(self.variables) for c in self.constraints}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LinearProblem":
        """Build a problem from a YAML-shaped mapping.

        Expected keys: ``variables`` (names), ``objective`` (coefficients),
        ``lower`` / ``upper`` (an int or one int per variable), optional
        ``direction`` and a list of ``constraints`` each holding ``name``,
        ``coefficients``, ``bound`` and optional ``sense``.
        """

        try:
            constraints = tuple(
                LinearConstraint(
                    name=str(item.get("name", f"c{index}")),
                    coefficients=tuple(item["coefficients"]),
                    bound=item["bound"],
                    sense=str(item.get("sense", "<=")),
                )
                for index, item in enumerate(data.get("constraints") or ())
            )
            return cls(
                variables=tuple(str(v) for v in data["variables"]),
                objective=tuple(data["objective"]),
                lower=data["lower"],
                upper=data["upper"],
                constraints=constraints,
                direction=data.get("direction", Direction.MAXIMISE),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise InvalidConfiguration(f"malformed problem definition: {exc}") from exc


def product_mix() -> LinearProblem:
    """The two-product reference instance (optimum 66100 at x1=122, x2=78)."""

    return LinearProblem(
        variables=("x1", "x2"),
        objective=(350, 300),
        lower=(1, 1),
        upper=(174, 174),
        constraints=(
            LinearConstraint("capacity", (1, 1), 200),
            LinearConstraint("labour", (9, 6), 1566),
            LinearConstraint("machine_time", (12, 16), 2880),
        ),
    )
