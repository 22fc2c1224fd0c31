from __future__ import annotations

import statistics
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List

import numpy as np
import pytest

from sample_search import (
    CollaboratorFailure,
    GoalSelector,
    InvalidConfiguration,
    ParallelSearchError,
    SearchEngine,
    SearchPhase,
)


@dataclass(frozen=True)
class Draw:
    value: int

    @property
    def goal(self) -> int:
        return self.value


@dataclass
class UniformIntegerProblem:
    high: int = 1000

    def create_solution(self, rng: np.random.Generator) -> Draw:
        return Draw(int(rng.integers(0, self.high)))

    def select_best(self, batch):
        return GoalSelector()(batch)


@dataclass
class RecordingProblem(UniformIntegerProblem):
    """Remembers which stream and thread every draw came from."""

    seen: List[Any] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def create_solution(self, rng: np.random.Generator) -> Draw:
        with self.lock:
            self.seen.append((rng, threading.get_ident()))
        return super().create_solution(rng)


@dataclass
class GlobalCallBomb(UniformIntegerProblem):
    """Raises on the third call made across all workers."""

    fail_at: int = 3
    calls: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def create_solution(self, rng: np.random.Generator) -> Draw:
        with self.lock:
            self.calls += 1
            call = self.calls
        if call == self.fail_at:
            raise RuntimeError("third call")
        return super().create_solution(rng)


def test_zero_workers_returns_absent_without_work():
    problem = RecordingProblem()

    assert SearchEngine(problem).run_parallel(100, 0) is None
    assert problem.seen == []


@pytest.mark.parametrize("workers", [1, 3, 8])
def test_zero_samples_per_worker_is_absent(workers):
    assert SearchEngine(UniformIntegerProblem(), seed=0).run_parallel(0, workers) is None


def test_negative_arguments_are_rejected_before_work():
    problem = RecordingProblem()
    engine = SearchEngine(problem)

    with pytest.raises(InvalidConfiguration):
        engine.run_parallel(-1, 2)
    with pytest.raises(InvalidConfiguration):
        engine.run_parallel(10, -2)
    with pytest.raises(InvalidConfiguration):
        engine.run_parallel(10, 2, max_workers=0)
    assert problem.seen == []


def test_each_worker_draws_from_its_own_stream():
    problem = RecordingProblem()
    workers = 6

    SearchEngine(problem, seed=42).run_parallel(50, workers)

    streams = {id(rng): rng for rng, _thread in problem.seen}
    assert len(problem.seen) == 50 * workers
    assert len(streams) == workers
    # A stream is only ever touched from a single thread.
    threads_per_stream = {}
    for rng, thread in problem.seen:
        threads_per_stream.setdefault(id(rng), set()).add(thread)
    assert all(len(threads) == 1 for threads in threads_per_stream.values())


def test_parallel_winner_is_best_of_all_samples():
    history: List[Any] = []
    engine = SearchEngine(UniformIntegerProblem(high=10**6), [lambda d: d.value % 3 == 0], seed=5)

    best = engine.run_parallel(200, 4, history=history)

    assert best is not None
    assert len(history) == 800
    assert best.goal == max(v.goal for v in history if v.is_valid)


def test_fixed_seed_reproduces_parallel_selection():
    engine = SearchEngine(UniformIntegerProblem(high=10**9), seed=2024)

    results = [engine.run_parallel(300, 5) for _ in range(3)]
    assert results[0] is not None
    assert results[0] == results[1] == results[2]


def test_history_is_merged_in_worker_order():
    engine = SearchEngine(UniformIntegerProblem(high=10**9), seed=77)
    first: List[Any] = []
    second: List[Any] = []

    engine.run_parallel(20, 4, history=first)
    engine.run_parallel(20, 4, history=second, max_workers=1)

    assert first == second


def test_external_executor_is_used_and_left_open():
    engine = SearchEngine(UniformIntegerProblem(), seed=9)

    with ThreadPoolExecutor(max_workers=2) as pool:
        a = engine.run_parallel(100, 4, executor=pool)
        b = engine.run_parallel(100, 4, executor=pool)

    assert a is not None
    assert a == b
    assert a == engine.run_parallel(100, 4)


def test_single_worker_matches_sequential_distribution():
    """With one worker the parallel search is a sequential search on another stream.

    Across many seeds the average winning value of both modes should agree
    well within sampling noise (the best of 50 uniform draws from [0, 1000)
    has a standard deviation of about 19).
    """

    seq_goals = []
    par_goals = []
    for seed in range(60):
        engine = SearchEngine(UniformIntegerProblem(), seed=seed)
        seq_goals.append(engine.run(50).goal)
        par_goals.append(engine.run_parallel(50, 1).goal)

    assert abs(statistics.mean(seq_goals) - statistics.mean(par_goals)) < 15.0
    assert 940 < statistics.mean(par_goals) < 1000


def test_worker_failure_aborts_whole_call():
    """A generator raising on its third call fails the parallel call as a whole."""

    problem = GlobalCallBomb(fail_at=3)
    engine = SearchEngine(problem, seed=1)

    with pytest.raises(ParallelSearchError) as info:
        engine.run_parallel(5, 2)

    err = info.value
    assert len(err.failures) == 1
    (worker, failure), = err.failures.items()
    assert worker in (0, 1)
    assert isinstance(failure, CollaboratorFailure)
    assert failure.phase is SearchPhase.GENERATING
    assert failure.worker == worker
    assert isinstance(failure.__cause__, RuntimeError)
    # The healthy worker finished its batch; the failing one stopped at its bad call.
    assert 6 <= problem.calls <= 8


def test_every_failing_worker_is_reported():
    def always_fails(d: Draw) -> bool:
        raise RuntimeError("constraint defect")

    engine = SearchEngine(UniformIntegerProblem(), [always_fails], seed=0)

    with pytest.raises(ParallelSearchError) as info:
        engine.run_parallel(3, 4)

    assert info.value.workers == (0, 1, 2, 3)
    assert all(f.phase is SearchPhase.VALIDATING for f in info.value.failures.values())
    assert "4 worker(s) failed" in str(info.value)


class CountingPool(ThreadPoolExecutor):
    """Thread pool that signals once ``expected`` tasks have been submitted."""

    def __init__(self, expected: int, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.expected = expected
        self.submitted = 0
        self.all_submitted = threading.Event()

    def submit(self, *args: Any, **kwargs: Any):
        future = super().submit(*args, **kwargs)
        self.submitted += 1
        if self.submitted == self.expected:
            self.all_submitted.set()
        return future


@dataclass
class ShutsDownPool(UniformIntegerProblem):
    """First draw shuts the shared pool down, cancelling every queued worker."""

    pool: Any = None
    done: bool = False

    def create_solution(self, rng: np.random.Generator) -> Draw:
        if not self.done:
            self.done = True
            self.pool.all_submitted.wait(timeout=5)
            self.pool.shutdown(wait=False, cancel_futures=True)
        return super().create_solution(rng)


def test_cancelled_workers_are_reported_as_failures():
    """Workers cancelled by an external executor end up in the aggregate error."""

    pool = CountingPool(expected=4, max_workers=1)
    engine = SearchEngine(ShutsDownPool(pool=pool), seed=3)

    with pytest.raises(ParallelSearchError) as info:
        engine.run_parallel(10, 4, executor=pool)
    pool.shutdown(wait=True)

    assert info.value.workers == (1, 2, 3)
    assert all(isinstance(f, CancelledError) for f in info.value.failures.values())


def test_submit_failure_propagates_without_running_work():
    problem = RecordingProblem()
    pool = ThreadPoolExecutor(max_workers=2)
    pool.shutdown()

    with pytest.raises(RuntimeError):
        SearchEngine(problem, seed=0).run_parallel(10, 3, executor=pool)
    assert problem.seen == []
