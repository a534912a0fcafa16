"""Layout phase: building sites and the roads between them.

Sites are rejection-sampled with a minimum spacing, joined by a Kruskal
minimum spanning tree (so every site is reachable from the root) and then
given a few extra shortcut edges chosen among near neighbours, favouring short
ones.
"""
from __future__ import annotations

import math
import random
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..logging_utils import get_logger
from .config import TownConfig
from .errors import LayoutFailure
from .geometry import Point, distance
from .model import Edge, Graph, Location, edge_key
from .names import location_name
from .rng import SeedManager, weighted_choice, weighted_sample

log = get_logger("towngen.layout")


def node_ids(count: int) -> List[str]:
    width = max(2, len(str(max(count - 1, 0))))
    return [f"n{i:0{width}d}" for i in range(count)]


def _bounds(config: TownConfig) -> Tuple[int, int, int, int]:
    mx = config.footprint_max[0] // 2
    my = config.footprint_max[1] // 2
    if config.map_width - 2 * mx < 1:
        mx = 0
    if config.map_height - 2 * my < 1:
        my = 0
    return mx, my, config.map_width - 1 - mx, config.map_height - 1 - my


def _spaced(p: Point, placed: Iterable[Point], min_spacing: float) -> bool:
    return all(distance(p, q) >= min_spacing for q in placed)


def sample_positions(config: TownConfig, rng: random.Random, metrics: Optional[dict] = None) -> List[Point]:
    """Rejection-sample ``town_size`` positions; raise LayoutFailure past the cap."""
    x0, y0, x1, y1 = _bounds(config)
    placed: List[Point] = []
    attempts = 0
    while len(placed) < config.town_size:
        if attempts >= config.max_placement_attempts:
            raise LayoutFailure(
                f"placed {len(placed)} of {config.town_size} sites before exhausting "
                f"{config.max_placement_attempts} attempts",
                placed=len(placed),
                target=config.town_size,
                attempts=attempts,
                min_spacing=config.min_spacing,
            )
        attempts += 1
        p = (rng.randint(x0, x1), rng.randint(y0, y1))
        if _spaced(p, placed, config.min_spacing):
            placed.append(p)
    if metrics is not None:
        metrics['placement_attempts'] += attempts
    return placed


def make_location(seeds: SeedManager, node_id: str, position: Point, config: TownConfig,
                  type_: Optional[str] = None, label: Optional[str] = None) -> Location:
    """Build a Location from its own stream; explicit type/label win.

    The type draw always happens so the name stream is the same whether or
    not the caller supplied a type.
    """
    rng = seeds.stream("location", node_id)
    drawn = weighted_choice(rng, config.building_type_weights)
    final_type = type_ or drawn
    return Location(node_id, label if label else location_name(rng, final_type, config.pools()), final_type, position)


def edge_type_for(seeds: SeedManager, a: str, b: str, config: TownConfig) -> str:
    return weighted_choice(seeds.stream("edge", *edge_key(a, b)), config.edge_type_weights)


def spanning_tree(ids: Sequence[str], pos: Dict[str, Point]) -> List[Tuple[str, str, float]]:
    """Kruskal over every pair, ties broken by node ids."""
    pairs = []
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            pairs.append((distance(pos[a], pos[b]), a, b))
    pairs.sort()
    parent = {nid: nid for nid in ids}

    def find(a):
        while parent[a] != a:
            parent[a] = parent[parent[a]]; a = parent[a]
        return a

    def union(a, b):
        ra, rb = find(a), find(b)
        if ra != rb:
            parent[rb] = ra; return True
        return False

    tree = []
    for d, a, b in pairs:
        if union(a, b):
            tree.append((a, b, d))
            if len(tree) == len(ids) - 1:
                break
    return tree


def candidate_pairs(ids: Sequence[str], pos: Dict[str, Point], k: int) -> Set[Tuple[str, str]]:
    out = set()
    for a in ids:
        near = sorted((distance(pos[a], pos[b]), b) for b in ids if b != a)[:k]
        for _d, b in near:
            out.add(edge_key(a, b))
    return out


def generate_layout(config: TownConfig, seeds: SeedManager, metrics: Optional[dict] = None) -> Graph:
    positions = sample_positions(config, seeds.stream("layout", "positions"), metrics)
    ids = node_ids(len(positions))
    pos = dict(zip(ids, positions))
    nodes = {nid: make_location(seeds, nid, pos[nid], config) for nid in ids}

    tree = spanning_tree(ids, pos)
    tree_keys = {edge_key(a, b) for a, b, _ in tree}
    extra_target = round(config.extra_edge_ratio * (len(ids) - 1))
    options = sorted(candidate_pairs(ids, pos, config.neighbour_candidates) - tree_keys)
    weighted = [(key, 1.0 / max(distance(pos[key[0]], pos[key[1]]), 1e-6)) for key in options]
    extras = weighted_sample(seeds.stream("layout", "extra-edges"), weighted, extra_target)

    edges = []
    for a, b in [(a, b) for a, b, _ in tree] + list(extras):
        edges.append(Edge.between(a, b, edge_type_for(seeds, a, b, config), distance(pos[a], pos[b])))
    if metrics is not None:
        metrics['nodes'] = len(ids)
        metrics['tree_edges'] = len(tree)
        metrics['extra_edges'] = len(extras)
    log.debug(event="layout_done", nodes=len(ids), tree_edges=len(tree), extra_edges=len(extras))
    return Graph(nodes, tuple(edges), ids[0])


def place_near(seeds: SeedManager, node_id: str, anchor: Optional[Point], occupied: Sequence[Point],
               config: TownConfig, tries: int = 64) -> Point:
    """Position for a site added by hand, drawn from its own stream.

    Sits at one to two spacings from ``anchor``; spacing from other sites is
    best effort since the edited graph already fixes connectivity.
    """
    rng = seeds.stream("position", node_id)
    x0, y0, x1, y1 = _bounds(config)
    if anchor is None:
        return (rng.randint(x0, x1), rng.randint(y0, y1))
    base = max(config.min_spacing, 1.0)
    candidate = anchor
    for _ in range(tries):
        angle = rng.uniform(0, 2 * math.pi)
        radius = rng.uniform(base, 2 * base)
        cx = min(max(int(round(anchor[0] + math.cos(angle) * radius)), x0), x1)
        cy = min(max(int(round(anchor[1] + math.sin(angle) * radius)), y0), y1)
        candidate = (cx, cy)
        if _spaced(candidate, occupied, config.min_spacing):
            return candidate
    return candidate


__all__ = ["edge_type_for", "generate_layout", "make_location", "node_ids", "place_near", "sample_positions"]
