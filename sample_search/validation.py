"""Constraint evaluation.

Validation is a pure two-phase step: an unvalidated candidate goes in, a
:class:`ValidatedCandidate` comes out holding the candidate together with its
constraint vector. Validity is always derived from that vector, so the two can
never disagree and no half-validated object is ever observable.

Constraints must be pure predicates. They are evaluated in declaration order,
but nothing may depend on that order or on the outcome of another constraint.
Exceptions raised by a predicate propagate unchanged.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Sequence, Tuple, Union

Predicate = Callable[[Any], bool]


@dataclass(frozen=True)
class Constraint:
    """A named pure predicate over candidates."""

    name: str
    predicate: Predicate

    def __call__(self, candidate: Any) -> bool:
        return bool(self.predicate(candidate))


@dataclass(frozen=True)
class ValidatedCandidate:
    """A candidate paired with the verdict of every constraint."""

    candidate: Any
    verdicts: Tuple[bool, ...] = ()

    @property
    def is_valid(self) -> bool:
        # Vacuously true when there are no constraints.
        return all(self.verdicts)

    @property
    def goal(self) -> Any:
        return self.candidate.goal

    def verdict_map(self, names: Sequence[str]) -> Dict[str, bool]:
        """Pair constraint names with verdicts, for display."""

        if len(names) != len(self.verdicts):
            raise ValueError(
                f"expected {len(self.verdicts)} constraint names, got {len(names)}"
            )
        return dict(zip(names, self.verdicts))


ConstraintLike = Union[Constraint, Predicate]


def _as_constraint(index: int, item: ConstraintLike) -> Constraint:
    if isinstance(item, Constraint):
        return item
    if not callable(item):
        raise TypeError(f"constraint {index} is not callable: {item!r}")
    name = getattr(item, "name", None) or getattr(item, "__name__", None)
    if not name or name == "<lambda>":
        name = f"c{index}"
    return Constraint(name=str(name), predicate=item)


class ConstraintSet:
    """Immutable ordered collection of constraints.

    Accepts :class:`Constraint` instances or bare callables; a bare callable is
    named after its ``name`` attribute or ``__name__``, falling back to
    ``c<index>`` for lambdas.
    """

    def __init__(self, constraints: Iterable[ConstraintLike] = ()) -> None:
        self._constraints: Tuple[Constraint, ...] = tuple(
            _as_constraint(i, c) for i, c in enumerate(constraints)
        )

    @classmethod
    def of(cls, *constraints: ConstraintLike) -> "ConstraintSet":
        return cls(constraints)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self._constraints)

    def __len__(self) -> int:
        return len(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    def __repr__(self) -> str:
        return f"ConstraintSet({list(self.names)!r})"

    def evaluate(self, candidate: Any) -> Tuple[bool, ...]:
        """Return the constraint vector of ``candidate``."""

        return tuple(c(candidate) for c in self._constraints)

    def validate(self, candidate: Any) -> ValidatedCandidate:
        return ValidatedCandidate(candidate=candidate, verdicts=self.evaluate(candidate))


def validate(candidate: Any, constraints: Union[ConstraintSet, Iterable[ConstraintLike]]) -> ValidatedCandidate:
    """Validate ``candidate`` against ``constraints``."""

    if not isinstance(constraints, ConstraintSet):
        constraints = ConstraintSet(constraints)
    return constraints.validate(candidate)
