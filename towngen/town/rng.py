"""Seed handling and per-phase random streams.

Each generation phase and each sub-entity draws from its own ``random.Random``
keyed by a stable path under the root seed, e.g. ``("building", "n03")``.
Streams never depend on call order elsewhere in the pipeline, which is what
lets reconciliation rebuild one building without disturbing the others.
"""
from __future__ import annotations

import hashlib
import random
from typing import Hashable, Optional, Sequence, Tuple, TypeVar, Union

T = TypeVar("T")

SEED_MAX = 2**63 - 1

PathPart = Union[str, int]


def coerce_seed(value: Union[int, str, None]) -> int:
    """Convert a provided seed (int or word) into a bounded 64-bit int.

    Digit strings parse directly; other words hash deterministically so a
    phrase like ``"Rivermoot"`` always yields the same town. ``None`` or an
    empty string draws a fresh random seed.
    """
    if value is None:
        return random.randint(1, 1_000_000)
    if isinstance(value, bool):
        raise TypeError("seed must be an int or str")
    if isinstance(value, int):
        return value % SEED_MAX
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return random.randint(1, 1_000_000)
        if s.isdigit():
            return int(s) % SEED_MAX
        h = hashlib.sha256(s.encode("utf-8")).digest()
        return int.from_bytes(h[:8], "big") % SEED_MAX
    raise TypeError(f"unsupported seed type: {type(value).__name__}")


def _path_key(path: Sequence[PathPart]) -> str:
    # Length-prefix every part so ("ab", "c") and ("a", "bc") never collide.
    return "".join(f"{len(str(p))}:{p}|" for p in path)


def derive_seed(root_seed: int, path: Sequence[PathPart]) -> int:
    digest = hashlib.sha256(f"{root_seed}#{_path_key(path)}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def derive_stream(root_seed: int, path: Sequence[PathPart]) -> random.Random:
    """Return a fresh deterministic stream for ``path`` under ``root_seed``."""
    return random.Random(derive_seed(root_seed, tuple(path)))


class SeedManager:
    """Root seed context passed through the pipeline.

    Holds no generator of its own; every call hands out a new stream.
    """

    __slots__ = ("root_seed",)

    def __init__(self, root_seed: int):
        self.root_seed = int(root_seed)

    def stream(self, *path: PathPart) -> random.Random:
        return derive_stream(self.root_seed, path)

    def __repr__(self) -> str:
        return f"SeedManager(root_seed={self.root_seed})"


def weighted_choice(rng: random.Random, options: Sequence[Tuple[T, float]]) -> T:
    """Roulette-wheel pick over ``(value, weight)`` pairs in the given order."""
    total = sum(w for _, w in options if w > 0)
    if total <= 0:
        raise ValueError("weighted_choice needs at least one positive weight")
    r = rng.random() * total
    upto = 0.0
    last: Optional[T] = None
    for value, w in options:
        if w <= 0:
            continue
        upto += w
        last = value
        if r < upto:
            return value
    return last  # float rounding at the top end


def weighted_sample(rng: random.Random, options: Sequence[Tuple[Hashable, float]], k: int) -> list:
    """Pick ``k`` distinct values without replacement, weight-proportional."""
    pool = [(v, w) for v, w in options if w > 0]
    chosen = []
    while pool and len(chosen) < k:
        pick = weighted_choice(rng, pool)
        chosen.append(pick)
        pool = [(v, w) for v, w in pool if v != pick]
    return chosen


__all__ = [
    "SEED_MAX",
    "SeedManager",
    "coerce_seed",
    "derive_seed",
    "derive_stream",
    "weighted_choice",
    "weighted_sample",
]
