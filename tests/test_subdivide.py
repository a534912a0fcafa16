import random

import pytest

from towngen.town.config import TownConfig
from towngen.town.errors import SubdivisionFailure
from towngen.town.geometry import Rect
from towngen.town.metrics import init_metrics
from towngen.town.model import Location
from towngen.town.rng import SeedManager
from towngen.town.subdivide import partition, room_adjacency, select_doors, split_axis, subdivide_building


def _site(nid="n01", pos=(50, 50), btype="residence"):
    return Location(nid, "Hale Residence", btype, pos)


def test_split_axis_prefers_longer_extent():
    assert split_axis(Rect(0, 0, 10, 6), 3, 3) == "x"
    assert split_axis(Rect(0, 0, 6, 10), 3, 3) == "y"
    # ties cut across x
    assert split_axis(Rect(0, 0, 8, 8), 3, 3) == "x"
    # fall back to the other axis, then give up
    assert split_axis(Rect(0, 0, 5, 4), 3, 2) == "y"
    assert split_axis(Rect(0, 0, 5, 5), 3, 3) is None


def test_rooms_tile_footprint_without_overlap():
    cfg = TownConfig()
    for i in range(25):
        b = subdivide_building(_site(f"n{i:02d}"), SeedManager(i), cfg)
        assert b.rooms, "every building has at least one room"
        assert sum(r.bounds.area for r in b.rooms) == b.footprint.area
        for r in b.rooms:
            assert b.footprint.contains(r.bounds)
            assert r.contents == ()
        for j, r in enumerate(b.rooms):
            for other in b.rooms[j + 1:]:
                assert not r.bounds.intersects(other.bounds)


def test_every_room_reachable_from_entrance():
    cfg = TownConfig(split_chance=1.0, extra_door_ratio=0.5)
    for i in range(20):
        b = subdivide_building(_site(f"n{i:02d}"), SeedManager(100 + i), cfg)
        assert b.reachable_rooms() == {r.id for r in b.rooms}
        entrance = b.room(b.entrance_room_id)
        assert entrance.bounds.y2 == b.footprint.y2
        for d in b.doors:
            assert d.a < d.b
            assert b.rooms[d.a].bounds.shared_wall(b.rooms[d.b].bounds) is not None


def test_room_sizes_respect_bounds():
    cfg = TownConfig(footprint_min=(12, 12), footprint_max=(20, 20), room_size_min=(3, 3), room_size_max=(6, 6))
    for i in range(10):
        b = subdivide_building(_site(f"n{i:02d}"), SeedManager(i), cfg)
        for r in b.rooms:
            assert r.bounds.w >= 3 and r.bounds.h >= 3
            # only unsplittable regions may stay above the max
            if r.bounds.w > 6 or r.bounds.h > 6:
                assert split_axis(r.bounds, 3, 3) is None


def test_footprint_smaller_than_minimum_room_is_single_room():
    cfg = TownConfig(footprint_min=(2, 2), footprint_max=(2, 2), room_size_min=(3, 3), room_size_max=(3, 3))
    b = subdivide_building(_site(), SeedManager(1), cfg)
    assert len(b.rooms) == 1
    assert b.rooms[0].bounds == b.footprint
    assert b.doors == () and b.entrance_room_id == 0


def test_partition_is_deterministic_per_stream():
    cfg = TownConfig()
    region = Rect(0, 0, 18, 14)
    assert partition(region, random.Random(4), cfg) == partition(region, random.Random(4), cfg)


def test_metrics_counters():
    metrics = init_metrics()
    b = subdivide_building(_site(), SeedManager(9), TownConfig(), metrics)
    assert metrics["rooms"] == len(b.rooms)
    assert metrics["doors"] == len(b.doors)
    assert metrics["doors"] - metrics["extra_doors"] == len(b.rooms) - 1


def test_disconnected_adjacency_raises():
    bounds = [Rect(0, 0, 3, 3), Rect(10, 10, 3, 3)]
    with pytest.raises(SubdivisionFailure):
        select_doors(2, room_adjacency(bounds), random.Random(1), TownConfig())
