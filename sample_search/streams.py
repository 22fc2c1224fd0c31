"""Random streams for candidate generation.

A random stream is a :class:`numpy.random.Generator`. The engine never reads
randomness from module-level state: every call to a solution factory receives
the stream it must draw from as an argument.

For parallel searches one root :class:`numpy.random.SeedSequence` is spawned
into independent child sequences, one per worker. Each worker builds its own
Generator from its own child, so no Generator is ever shared between workers
and the same integer seed always reproduces the same set of worker streams.
"""
from __future__ import annotations

from typing import List, Optional, Union

import numpy as np

from .errors import InvalidConfiguration

RandomStream = np.random.Generator
Seed = Union[None, int, np.random.SeedSequence]


def stream(seed: Seed = None) -> RandomStream:
    """Return a fresh caller-owned stream.

    ``None`` draws fresh entropy from the operating system.
    """

    return np.random.default_rng(seed)


def worker_seeds(seed: Seed, count: int) -> List[np.random.SeedSequence]:
    """Spawn ``count`` independent child seeds from a single root seed."""

    if count < 0:
        raise InvalidConfiguration(f"worker count must be >= 0, got {count}")
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return root.spawn(count)


def root_entropy(seed: Seed) -> Optional[int]:
    """Entropy of the root sequence, useful for reporting which seed was used."""

    if seed is None:
        return None
    if isinstance(seed, np.random.SeedSequence):
        return seed.entropy
    return int(seed)
