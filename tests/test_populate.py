from collections import Counter

import pytest

from towngen.town.config import TownConfig
from towngen.town.errors import PopulationConstraintFailure
from towngen.town.metrics import init_metrics
from towngen.town.model import NPC, Chest, Item, Location
from towngen.town.populate import populate_building
from towngen.town.rng import SeedManager
from towngen.town.subdivide import subdivide_building


def _building(seed, btype="tavern", cfg=None, nid="n03"):
    cfg = cfg or TownConfig()
    loc = Location(nid, "The Prancing Stag", btype, (60, 60))
    return subdivide_building(loc, SeedManager(seed), cfg)


def test_density_none_places_nothing():
    cfg = TownConfig(population_density="none")
    b = populate_building(_building(1, cfg=cfg), SeedManager(1), cfg)
    assert list(b.iter_contents()) == []


def test_contents_are_tagged_and_located():
    cfg = TownConfig(population_density="high", split_chance=1.0)
    for seed in range(10):
        b = populate_building(_building(seed, cfg=cfg), SeedManager(seed), cfg)
        for room in b.rooms:
            for slot, c in enumerate(room.contents):
                assert isinstance(c, (NPC, Chest, Item))
                assert c.building_id == b.id and c.room_id == room.id
                assert c.id == f"{b.node_id}-r{room.id}-{slot}"
                if isinstance(c, NPC):
                    assert c.dialogue_tag == f"tavern.{c.role}"
                    assert c.name
                elif isinstance(c, Chest):
                    assert c.loot_table_ref in dict(cfg.loot_tables)
                else:
                    assert c.item_id


def test_role_limits_and_no_chests_in_entrance():
    cfg = TownConfig(population_density="high", split_chance=1.0)
    for seed in range(15):
        b = populate_building(_building(seed, cfg=cfg), SeedManager(seed), cfg)
        roles = Counter(c.role for c in b.iter_contents() if isinstance(c, NPC))
        assert roles["barkeep"] <= 1
        entrance = b.room(b.entrance_room_id)
        assert not any(isinstance(c, Chest) for c in entrance.contents)


def test_chests_in_entrance_allowed_when_enabled():
    cfg = TownConfig(population_density=((4, 1.0),), kind_weights=(("chest", 1.0),),
                     chests_in_entrance=True)
    b = populate_building(_building(2, cfg=cfg), SeedManager(2), cfg)
    entrance = b.room(b.entrance_room_id)
    assert len(entrance.contents) == 4
    assert all(isinstance(c, Chest) for c in entrance.contents)


def test_unsatisfiable_constraint_raises():
    # every slot must be a chest, but the entrance room forbids chests
    cfg = TownConfig(population_density=((1, 1.0),), kind_weights=(("chest", 1.0),), population_retry_cap=5)
    with pytest.raises(PopulationConstraintFailure) as exc:
        populate_building(_building(3, cfg=cfg), SeedManager(3), cfg)
    assert exc.value.details["attempts"] == 5
    assert exc.value.code == "population_constraint_failure"


def test_exhausted_role_forces_redraw():
    cfg = TownConfig(
        population_density=((3, 1.0),),
        kind_weights=(("npc", 1.0),),
        npc_role_tables=(("default", (("guard", 1.0),)), ("tavern", (("barkeep", 1.0), ("patron", 1.0)))),
        footprint_min=(4, 4), footprint_max=(4, 4),
    )
    metrics = init_metrics()
    b = populate_building(_building(8, cfg=cfg), SeedManager(8), cfg, metrics)
    roles = Counter(c.role for c in b.iter_contents())
    assert roles["barkeep"] <= 1
    assert sum(roles.values()) == 3 * len(b.rooms)
    assert metrics["population"] == 3 * len(b.rooms)


def test_population_is_deterministic():
    cfg = TownConfig(population_density="medium")
    a = populate_building(_building(5, cfg=cfg), SeedManager(5), cfg)
    b = populate_building(_building(5, cfg=cfg), SeedManager(5), cfg)
    assert a == b
