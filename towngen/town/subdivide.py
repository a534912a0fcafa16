"""Building subdivision: footprint -> room arena -> doors.

Footprints are split with a recursive binary space partition. A region is cut
when it exceeds ``room_size_max`` on either axis, otherwise only with
``split_chance``. The cut runs across the axis with the larger extent (ties
cut across x, i.e. a vertical wall); if that axis cannot hold two rooms of
``room_size_min`` the other axis is tried, and if neither can the region is a
leaf. Leaves become rooms in depth-first order.

Doors follow the same policy as the town roads: a spanning tree over the
room adjacency graph (random keys, so layouts vary) plus a few extra doors for
loops, weighted toward longer shared walls.
"""
from __future__ import annotations

import random
from typing import List, Optional, Tuple

from ..logging_utils import get_logger
from .config import TownConfig
from .errors import SubdivisionFailure
from .geometry import Rect, segment_length, segment_midpoint
from .model import Building, Door, Location, Room
from .rng import SeedManager, weighted_sample

log = get_logger("towngen.subdivide")

Adjacency = Tuple[int, int, tuple]


def building_id_for(node_id: str) -> str:
    return f"bld-{node_id}"


def building_footprint(location: Location, rng: random.Random, config: TownConfig) -> Rect:
    (min_w, min_h), (max_w, max_h) = config.footprint_min, config.footprint_max
    w = rng.randint(min_w, max_w)
    h = rng.randint(min_h, max_h)
    cx, cy = location.position
    return Rect(cx - w // 2, cy - h // 2, w, h)


def split_axis(region: Rect, min_w: int, min_h: int) -> Optional[str]:
    """Axis to cut across: 'x' (vertical wall), 'y' (horizontal wall) or None."""
    can_x = region.w >= 2 * min_w
    can_y = region.h >= 2 * min_h
    if region.w >= region.h:
        return "x" if can_x else ("y" if can_y else None)
    return "y" if can_y else ("x" if can_x else None)


def partition(region: Rect, rng: random.Random, config: TownConfig) -> List[Rect]:
    min_w, min_h = config.room_size_min
    max_w, max_h = config.room_size_max
    leaves: List[Rect] = []

    def split(r: Rect):
        oversized = r.w > max_w or r.h > max_h
        if not oversized and rng.random() >= config.split_chance:
            leaves.append(r); return
        axis = split_axis(r, min_w, min_h)
        if axis is None:
            leaves.append(r); return
        if axis == "x":
            cut = rng.randint(min_w, r.w - min_w)
            split(Rect(r.x, r.y, cut, r.h))
            split(Rect(r.x + cut, r.y, r.w - cut, r.h))
        else:
            cut = rng.randint(min_h, r.h - min_h)
            split(Rect(r.x, r.y, r.w, cut))
            split(Rect(r.x, r.y + cut, r.w, r.h - cut))

    if region.w < min_w or region.h < min_h:
        return [region]  # floor behaviour: too small to subdivide
    split(region)
    return leaves


def entrance_index(bounds: List[Rect], footprint: Rect) -> int:
    """Room on the south wall (largest y), westmost first."""
    south = [i for i, r in enumerate(bounds) if r.y2 == footprint.y2]
    return min(south or range(len(bounds)), key=lambda i: (bounds[i].x, bounds[i].y))


def room_adjacency(bounds: List[Rect]) -> List[Adjacency]:
    out = []
    for i, a in enumerate(bounds):
        for j in range(i + 1, len(bounds)):
            seg = a.shared_wall(bounds[j])
            if seg is not None:
                out.append((i, j, seg))
    return out


def select_doors(count: int, adjacency: List[Adjacency], rng: random.Random, config: TownConfig,
                 metrics: Optional[dict] = None) -> List[Door]:
    """Random spanning tree over room adjacency plus extra loop doors.

    Walls shorter than ``min_shared_wall`` are only used when nothing else
    can join two parts of the building.
    """
    keyed = []
    for a, b, seg in adjacency:
        short = segment_length(seg) < config.min_shared_wall
        keyed.append(((1.0 if short else 0.0) + rng.random(), a, b, seg))
    keyed.sort()
    parent = list(range(count))

    def find(a):
        while parent[a] != a:
            parent[a] = parent[parent[a]]; a = parent[a]
        return a

    tree = []
    for _k, a, b, seg in keyed:
        ra, rb = find(a), find(b)
        if ra != rb:
            parent[rb] = ra
            tree.append((a, b, seg))
    if len(tree) != count - 1:
        raise SubdivisionFailure("room adjacency graph is disconnected", rooms=count, doors=len(tree))

    in_tree = {(a, b) for a, b, _ in tree}
    options = [((a, b, seg), segment_length(seg)) for a, b, seg in adjacency
               if (a, b) not in in_tree and segment_length(seg) >= config.min_shared_wall]
    extra_target = round(config.extra_door_ratio * (count - 1))
    extras = weighted_sample(rng, options, extra_target)
    if metrics is not None:
        metrics['doors'] += len(tree) + len(extras)
        metrics['extra_doors'] += len(extras)
    doors = [Door(a, b, segment_midpoint(seg)) for a, b, seg in tree + extras]
    return sorted(doors, key=lambda d: (d.a, d.b))


def subdivide_building(location: Location, seeds: SeedManager, config: TownConfig,
                       metrics: Optional[dict] = None) -> Building:
    """Partition the site's footprint into an empty, fully connected room arena."""
    rng = seeds.stream("building", location.id)
    footprint = building_footprint(location, rng, config)
    bounds = partition(footprint, rng, config)
    for r in bounds:
        if not footprint.contains(r):
            raise SubdivisionFailure("room escaped its footprint", building=location.id, room=r.to_dict())
    if sum(r.area for r in bounds) != footprint.area:
        raise SubdivisionFailure("rooms do not tile the footprint", building=location.id)

    doors = select_doors(len(bounds), room_adjacency(bounds), rng, config, metrics)
    entrance = entrance_index(bounds, footprint)
    if metrics is not None:
        metrics['rooms'] += len(bounds)
    log.debug(event="building_subdivided", node=location.id, rooms=len(bounds), doors=len(doors))
    return Building(
        id=building_id_for(location.id),
        node_id=location.id,
        name=location.label,
        building_type=location.type,
        footprint=footprint,
        rooms=tuple(Room(i, r) for i, r in enumerate(bounds)),
        doors=tuple(doors),
        entrance_room_id=entrance,
    )


__all__ = [
    "building_footprint",
    "building_id_for",
    "entrance_index",
    "partition",
    "room_adjacency",
    "select_doors",
    "split_axis",
    "subdivide_building",
]
