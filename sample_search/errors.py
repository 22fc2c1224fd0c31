"""Exceptions raised by the search harness.

"No valid candidate" is not an error: every search entry point returns
``None`` for it. The exceptions here are reserved for bad caller input and
for defects inside user-supplied generation, validation or selection code.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .interface import SearchPhase


class SearchError(Exception):
    """Base class for every error raised by :mod:`sample_search`."""


class InvalidConfiguration(SearchError, ValueError):
    """Caller input rejected before any work was started."""


class CollaboratorFailure(SearchError):
    """An exception escaped user code during one phase of a search.

    The original exception is chained as ``__cause__``. ``worker`` is the
    index of the parallel worker that failed, or ``None`` for sequential runs
    and for the final reduction over worker winners.
    """

    def __init__(self, phase: "SearchPhase", worker: Optional[int] = None) -> None:
        # Keep constructor arguments in ``args`` so the error survives a trip
        # through a process pool.
        super().__init__(phase, worker)
        self.phase = phase
        self.worker = worker

    def __str__(self) -> str:
        phase = getattr(self.phase, "name", self.phase)
        where = "" if self.worker is None else f" in worker {self.worker}"
        cause = self.__cause__
        detail = f": {type(cause).__name__}: {cause}" if cause is not None else ""
        return f"user code failed while {str(phase).lower()}{where}{detail}"


class ParallelSearchError(SearchError):
    """One or more parallel workers failed; no partial result is returned."""

    def __init__(self, failures: Mapping[int, BaseException]) -> None:
        ordered = dict(sorted(failures.items()))
        super().__init__(ordered)
        self.failures = ordered

    @property
    def workers(self) -> tuple[int, ...]:
        return tuple(self.failures)

    def __str__(self) -> str:
        parts = [f"worker {idx}: {exc}" for idx, exc in self.failures.items()]
        return f"{len(self.failures)} worker(s) failed; " + "; ".join(parts)
