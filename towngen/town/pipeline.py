"""Generation pipeline: layout -> per-building subdivision + population.

``generate_town`` runs the phases in order with lightweight per-phase timing
(``metrics['phase_ms']``). Buildings are independent of each other once the
layout exists, so they are built on a thread pool when ``workers > 1``;
results are gathered back in graph node order, which keeps the output
identical to the sequential path.
"""
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..logging_utils import get_logger
from .config import TownConfig
from .metrics import init_metrics, merge_counts
from .model import GENERATED, Building, Location, Town
from .layout import generate_layout
from .names import town_name
from .populate import populate_building
from .rng import SeedManager, coerce_seed
from .subdivide import subdivide_building

log = get_logger("towngen.pipeline")

_BUILDING_COUNTERS = ("rooms", "doors", "extra_doors", "population", "population_redraws")


def phase_timer(metrics: dict) -> Callable:
    """Return ``_phase(label, fn, *a, **k)`` recording wall time into ``metrics``."""
    phase_times = metrics.setdefault('phase_ms', {})

    def _phase(label, fn, *a, **k):
        ps = time.perf_counter(); r = fn(*a, **k); pe = time.perf_counter()
        phase_times[label] = int((pe - ps) * 1000)
        return r
    return _phase


def build_building(location: Location, seeds: SeedManager, config: TownConfig) -> Tuple[Building, Dict[str, int]]:
    """Subdivide and populate one site; counters are returned, not shared."""
    counts = {k: 0 for k in _BUILDING_COUNTERS}
    building = subdivide_building(location, seeds, config, counts)
    building = populate_building(building, seeds, config, counts)
    return building, counts


def build_buildings(locations: Sequence[Location], seeds: SeedManager, config: TownConfig,
                    workers: Optional[int] = None, metrics: Optional[dict] = None) -> Dict[str, Building]:
    """Build every site in ``locations``; the first failure aborts the batch."""
    workers = config.workers if workers is None else max(1, int(workers))
    if workers > 1 and len(locations) > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="towngen") as pool:
            futures = [pool.submit(build_building, loc, seeds, config) for loc in locations]
            # result() re-raises the worker's exception in the caller
            results = [f.result() for f in futures]
    else:
        results = [build_building(loc, seeds, config) for loc in locations]
    out: Dict[str, Building] = {}
    for building, counts in results:
        out[building.node_id] = building
        if metrics is not None:
            merge_counts(metrics, counts)
    if metrics is not None:
        metrics['buildings'] = metrics.get('buildings', 0) + len(out)
    return out


def generate_town(config: Optional[TownConfig] = None, seed: Union[int, str, None] = None,
                  workers: Optional[int] = None) -> Town:
    """Generate a complete Town from ``(seed, config)``.

    ``seed`` overrides ``config.seed``; when both are missing a fresh seed is
    drawn. Any phase failure propagates and nothing is returned.
    """
    config = config or TownConfig()
    root_seed = coerce_seed(seed if seed is not None else config.seed)
    config = replace(config, seed=root_seed)
    seeds = SeedManager(root_seed)
    metrics = init_metrics()
    _phase = phase_timer(metrics)
    start = time.perf_counter()

    log.info(event="generation_start", seed=root_seed, town_size=config.town_size, config=config.fingerprint())
    graph = _phase('layout', generate_layout, config, seeds, metrics)
    sites: List[Location] = [loc for loc in graph.nodes.values() if loc.is_building]
    buildings = _phase('buildings', build_buildings, sites, seeds, config, workers, metrics)
    name = town_name(seeds.stream("town", "name"), config.pools())

    metrics['runtime_ms'] = int((time.perf_counter() - start) * 1000)
    town = Town(
        seed=root_seed,
        config=config,
        name=name,
        graph=graph,
        buildings=buildings,
        state=GENERATED,
        revision=1,
        metrics=metrics,
    )
    log.info(event="town_generated", seed=root_seed, name=name, nodes=len(graph.nodes),
             edges=len(graph.edges), rooms=metrics['rooms'], population=metrics['population'],
             ms=metrics['runtime_ms'])
    return town


__all__ = ["build_building", "build_buildings", "generate_town", "phase_timer"]
