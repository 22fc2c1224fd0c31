"""
CLI to run a random-sampling search over a linear problem.

Reads experiments/product_mix.yml (or the file given with --config), builds
the problem and a SearchEngine, runs the parallel search and prints the
winning candidate together with the verdict of every constraint.
"""

from __future__ import annotations

import argparse
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from sample_search import InvalidConfiguration, SearchEngine, ValidatedCandidate
from sample_search.problems import LinearProblem
from sample_search.streams import root_entropy

DEFAULT_CONFIG = Path(__file__).parent / "experiments" / "product_mix.yml"


@dataclass(frozen=True)
class SearchConfig:
    samples_per_worker: int
    workers: int = 1
    seed: Optional[int] = None
    use_processes: bool = False
    problem: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.samples_per_worker < 0:
            raise InvalidConfiguration(f"samples_per_worker must be >= 0, got {self.samples_per_worker}")
        if self.workers < 0:
            raise InvalidConfiguration(f"workers must be >= 0, got {self.workers}")

    @property
    def total_samples(self) -> int:
        return self.samples_per_worker * self.workers


def load_config(path: Path) -> SearchConfig:
    import yaml  # type: ignore

    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"{path}: expected a mapping at the top level")
    try:
        seed = data.get("seed")
        return SearchConfig(
            samples_per_worker=int(data["samples_per_worker"]),
            workers=int(data.get("workers", 1)),
            seed=None if seed is None else int(seed),
            use_processes=bool(data.get("use_processes", False)),
            problem=dict(data["problem"]),
        )
    except InvalidConfiguration:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"{path}: malformed search config: {exc}") from exc


def run_search(cfg: SearchConfig) -> Dict[str, object]:
    """Run the configured search and return a summary of the outcome."""

    problem = LinearProblem.from_mapping(cfg.problem)
    # Fix the root seed up front so an unseeded run can still be reproduced.
    seed = np.random.SeedSequence(cfg.seed)
    engine = SearchEngine(problem, problem.constraint_set(), seed=seed)

    print(
        f"[search] queued {cfg.workers} worker(s) x {cfg.samples_per_worker} samples "
        f"(seed={root_entropy(seed)})"
    )
    start = time.time()

    use_processes = cfg.use_processes
    best: Optional[ValidatedCandidate] = None
    if use_processes:
        try:
            with ProcessPoolExecutor(max_workers=cfg.workers or None) as executor:
                best = engine.run_parallel(cfg.samples_per_worker, cfg.workers, executor=executor)
        except (PermissionError, NotImplementedError, OSError) as exc:
            print(f"[search] process pool unavailable ({exc}), falling back to threads")
            use_processes = False
    if not use_processes:
        best = engine.run_parallel(cfg.samples_per_worker, cfg.workers)

    elapsed = time.time() - start
    print(f"[search] evaluated {cfg.total_samples} candidates in {elapsed:.2f}s")

    return {
        "seed": root_entropy(seed),
        "samples": cfg.total_samples,
        "duration_sec": elapsed,
        "best": best,
        "attributes": best.candidate.as_dict() if best is not None else {},
        "goal": best.goal if best is not None else None,
        "verdicts": best.verdict_map(engine.constraints.names) if best is not None else {},
        "constraints": problem.describe_constraints(),
    }


def format_report(summary: Mapping[str, Any]) -> List[str]:
    if summary["best"] is None:
        return ["[search] no valid candidate found"]

    lines = ["[search] best candidate:"]
    for name, value in summary["attributes"].items():
        lines.append(f"  {name} = {value}")
    lines.append(f"  goal = {summary['goal']}")
    lines.append("[search] constraints:")
    described = summary["constraints"]
    for name, ok in summary["verdicts"].items():
        lines.append(f"  {name:<16} {described.get(name, ''):<28} {'ok' if ok else 'VIOLATED'}")
    return lines


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Random-sampling search over a linear problem.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="YAML search config")
    parser.add_argument("--samples", type=int, default=None, help="samples per worker")
    parser.add_argument("--workers", type=int, default=None, help="number of parallel workers")
    parser.add_argument("--seed", type=int, default=None, help="root random seed")
    parser.add_argument("--processes", action="store_true", help="run workers in a process pool")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    cfg = load_config(args.config)

    overrides: Dict[str, Any] = {}
    if args.samples is not None:
        overrides["samples_per_worker"] = args.samples
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.processes:
        overrides["use_processes"] = True
    if overrides:
        cfg = replace(cfg, **overrides)

    summary = run_search(cfg)
    for line in format_report(summary):
        print(line)


if __name__ == "__main__":
    main()
