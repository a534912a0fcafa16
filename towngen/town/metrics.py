from typing import Dict


def init_metrics() -> Dict[str, int | float | dict]:
    return {
        'placement_attempts': 0,
        'nodes': 0,
        'tree_edges': 0,
        'extra_edges': 0,
        'buildings': 0,
        'rooms': 0,
        'doors': 0,
        'extra_doors': 0,
        'population': 0,
        'population_redraws': 0,
        'buildings_rebuilt': 0,
        'buildings_preserved': 0,
        'runtime_ms': 0.0,
        'phase_ms': {},
    }


def merge_counts(into: Dict, part: Dict) -> None:
    """Add integer counters from a per-building result into the run totals."""
    for k, v in part.items():
        if isinstance(v, int) and not isinstance(v, bool):
            into[k] = into.get(k, 0) + v
