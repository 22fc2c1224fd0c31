"""Sample, validate and select.

:class:`SearchEngine` drives a :class:`~sample_search.interface.SearchProblem`
through one pass of

1) generate ``n`` independent candidates from a random stream,
2) validate each against the engine's :class:`ConstraintSet`,
3) reduce the validated batch with ``problem.select_best``.

Parallel searches split the work into independent workers. Each worker runs
the same pass on its own sub-batch, with its own stream spawned from the
engine seed, and returns its winner through its own future. Once every worker
has finished, the winners are reduced once more, in worker-index order, by the
same selection policy. Workers share only the problem and the constraints,
both of which are read-only.

The engine holds no mutable state, so one instance may serve any number of
concurrent calls.
"""
from __future__ import annotations

import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, MutableSequence, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import CollaboratorFailure, InvalidConfiguration, ParallelSearchError
from .interface import SearchPhase, SearchProblem
from .streams import RandomStream, Seed, stream, worker_seeds
from .validation import ConstraintLike, ConstraintSet, ValidatedCandidate


def _check_count(label: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidConfiguration(f"{label} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidConfiguration(f"{label} must be >= 0, got {value}")


@dataclass(frozen=True)
class WorkerOutcome:
    """What one worker hands back: its winner and, if requested, its batch."""

    worker: Optional[int]
    best: Optional[ValidatedCandidate]
    batch: Tuple[ValidatedCandidate, ...] = ()


class SearchEngine:
    """Random-sampling search over a problem under a set of constraints."""

    def __init__(
        self,
        problem: SearchProblem,
        constraints: Union[ConstraintSet, Iterable[ConstraintLike]] = (),
        seed: Seed = None,
    ) -> None:
        self.problem = problem
        self.constraints = constraints if isinstance(constraints, ConstraintSet) else ConstraintSet(constraints)
        self.seed = seed

    # ------------------------------------------------------------------
    # Single pass building blocks
    # ------------------------------------------------------------------

    def create_multiple(self, n: int, rng: RandomStream, *, worker: Optional[int] = None) -> List[Any]:
        """Draw exactly ``n`` candidates from ``rng``; no validation is applied."""

        _check_count("batch size", n)
        try:
            return [self.problem.create_solution(rng) for _ in range(n)]
        except Exception as exc:
            raise CollaboratorFailure(SearchPhase.GENERATING, worker) from exc

    def validate_batch(self, batch: Sequence[Any], *, worker: Optional[int] = None) -> List[ValidatedCandidate]:
        try:
            return [self.constraints.validate(candidate) for candidate in batch]
        except Exception as exc:
            raise CollaboratorFailure(SearchPhase.VALIDATING, worker) from exc

    def select(
        self, batch: Sequence[ValidatedCandidate], *, worker: Optional[int] = None
    ) -> Optional[ValidatedCandidate]:
        if not batch:
            return None
        try:
            return self.problem.select_best(batch)
        except Exception as exc:
            raise CollaboratorFailure(SearchPhase.SELECTING, worker) from exc

    def search_once(
        self,
        batch_size: int,
        rng: RandomStream,
        *,
        worker: Optional[int] = None,
        keep_batch: bool = False,
    ) -> WorkerOutcome:
        """Generate, validate and select one batch."""

        candidates = self.create_multiple(batch_size, rng, worker=worker)
        validated = self.validate_batch(candidates, worker=worker)
        best = self.select(validated, worker=worker)
        return WorkerOutcome(worker=worker, best=best, batch=tuple(validated) if keep_batch else ())

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(
        self,
        batch_size: int,
        *,
        rng: Optional[RandomStream] = None,
        history: Optional[MutableSequence[ValidatedCandidate]] = None,
    ) -> Optional[ValidatedCandidate]:
        """Sequential search over ``batch_size`` samples.

        Without ``rng`` a new stream is built from the engine seed, so an
        integer seed makes repeated calls return the same candidate. Every
        validated candidate is appended to ``history`` when one is given.
        """

        _check_count("batch size", batch_size)
        if rng is None:
            rng = stream(self.seed)
        outcome = self.search_once(batch_size, rng, keep_batch=history is not None)
        if history is not None:
            history.extend(outcome.batch)
        return outcome.best

    def run_parallel(
        self,
        samples_per_worker: int,
        workers: int,
        *,
        executor: Optional[Executor] = None,
        max_workers: Optional[int] = None,
        history: Optional[MutableSequence[ValidatedCandidate]] = None,
    ) -> Optional[ValidatedCandidate]:
        """Run ``workers`` independent searches and return the best winner.

        Parameters
        ----------
        samples_per_worker:
            Batch size of every worker.
        workers:
            Number of independent searches. ``0`` returns ``None`` without
            submitting anything.
        executor:
            Optional external :class:`concurrent.futures.Executor`. When
            ``None`` a :class:`ThreadPoolExecutor` is created for the call.
            A process pool works as long as the engine pickles.
        max_workers:
            Size of the internal thread pool; defaults to ``workers``.
        history:
            Receives every validated candidate, worker by worker, once all
            workers have finished.

        Raises
        ------
        ParallelSearchError
            If any worker failed. All workers are awaited first, and no
            partial result is returned.
        """

        _check_count("samples per worker", samples_per_worker)
        _check_count("worker count", workers)
        if max_workers is not None and max_workers <= 0:
            raise InvalidConfiguration(f"max_workers must be > 0, got {max_workers}")
        if workers == 0:
            return None

        seeds = worker_seeds(self.seed, workers)
        keep_batch = history is not None
        if executor is None:
            with ThreadPoolExecutor(max_workers=max_workers or workers) as pool:
                outcomes = self._run_workers(pool, seeds, samples_per_worker, keep_batch)
        else:
            outcomes = self._run_workers(executor, seeds, samples_per_worker, keep_batch)

        if history is not None:
            for outcome in outcomes:
                history.extend(outcome.batch)

        winners = [outcome.best for outcome in outcomes if outcome.best is not None]
        return self.select(winners)

    def _run_workers(
        self,
        executor: Executor,
        seeds: Sequence[np.random.SeedSequence],
        samples_per_worker: int,
        keep_batch: bool,
    ) -> List[WorkerOutcome]:
        futures: List[Future] = []
        try:
            for index, seed in enumerate(seeds):
                futures.append(
                    executor.submit(_search_worker, self, index, seed, samples_per_worker, keep_batch)
                )
        except BaseException:
            for future in futures:
                future.cancel()
            # Anything already running is still awaited before the error escapes.
            _await_all(futures)
            raise

        _await_all(futures)

        failures: Dict[int, BaseException] = {}
        outcomes: List[WorkerOutcome] = []
        for index, future in enumerate(futures):
            if future.cancelled():
                failures[index] = CancelledError(f"worker {index} was cancelled before it ran")
                continue
            exc = future.exception()
            if exc is not None:
                failures[index] = exc
            else:
                outcomes.append(future.result())

        if failures:
            raise ParallelSearchError(failures) from next(iter(failures.values()))
        return outcomes


def _await_all(futures: Sequence[Future]) -> None:
    """Block until every future is finished or cancelled.

    ``concurrent.futures.wait`` never wakes up for a future cancelled by
    ``Executor.shutdown(cancel_futures=True)``; done callbacks do fire.
    """

    if not futures:
        return
    remaining = len(futures)
    lock = threading.Lock()
    finished = threading.Event()

    def _one_done(_future: Future) -> None:
        nonlocal remaining
        with lock:
            remaining -= 1
            if remaining == 0:
                finished.set()

    for future in futures:
        future.add_done_callback(_one_done)
    finished.wait()

def _search_worker(
    engine: SearchEngine,
    index: int,
    seed: np.random.SeedSequence,
    samples: int,
    keep_batch: bool,
) -> WorkerOutcome:
    # The stream is created here so it never leaves this worker.
    return engine.search_once(samples, stream(seed), worker=index, keep_batch=keep_batch)
