"""Population phase: NPCs, chests and loose items placed room by room.

Each room draws a head count from the configured density distribution; each
slot then draws a kind and its payload. Constraints are enforced by
rejection-and-redraw of the whole slot:

* roles listed in ``role_limits`` appear at most that many times per building;
* chests never land in the entrance room unless ``chests_in_entrance``.

A slot that cannot be satisfied within ``population_retry_cap`` draws fails the
run with ``PopulationConstraintFailure``.
"""
from __future__ import annotations

import random
from collections import Counter
from dataclasses import replace
from typing import List, Optional

from ..logging_utils import get_logger
from .config import TownConfig
from .errors import PopulationConstraintFailure
from .model import NPC, Building, Chest, Content, Item, Room
from .names import CONTAINER_STYLES, RACES, SEXES, npc_name
from .rng import SeedManager, weighted_choice

log = get_logger("towngen.populate")


def entity_id(building: Building, room: Room, slot: int) -> str:
    return f"{building.node_id}-r{room.id}-{slot}"


def _draw_slot(rng: random.Random, building: Building, room: Room, slot: int, roles: Counter,
               config: TownConfig, metrics: Optional[dict]) -> Content:
    in_entrance = room.id == building.entrance_room_id
    for attempt in range(config.population_retry_cap):
        if attempt and metrics is not None:
            metrics['population_redraws'] += 1
        kind = weighted_choice(rng, config.kind_weights)
        if kind == "npc":
            role = weighted_choice(rng, config.role_table(building.building_type))
            limit = config.role_limit(role)
            if limit is not None and roles[role] >= limit:
                continue
            roles[role] += 1
            sex = rng.choice(SEXES)
            race = rng.choice(RACES)
            return NPC(
                id=entity_id(building, room, slot),
                building_id=building.id,
                room_id=room.id,
                role=role,
                dialogue_tag=f"{building.building_type}.{role}",
                name=npc_name(rng, sex, building.building_type, building.name, config.pools()),
                sex=sex,
                race=race,
            )
        if kind == "chest":
            if in_entrance and not config.chests_in_entrance:
                continue
            table, _ = rng.choice(config.loot_tables)
            return Chest(entity_id(building, room, slot), building.id, room.id, table, rng.choice(CONTAINER_STYLES))
        if kind == "item":
            table, entries = rng.choice(config.loot_tables)
            return Item(entity_id(building, room, slot), building.id, room.id, weighted_choice(rng, entries))
        raise PopulationConstraintFailure(f"unknown content kind {kind!r}", building=building.id)
    raise PopulationConstraintFailure(
        f"could not fill slot {slot} of room {room.id} in {building.id} "
        f"after {config.population_retry_cap} draws",
        building=building.id,
        room=room.id,
        slot=slot,
        attempts=config.population_retry_cap,
    )


def populate_building(building: Building, seeds: SeedManager, config: TownConfig,
                      metrics: Optional[dict] = None) -> Building:
    """Return a copy of ``building`` with every room's contents drawn."""
    rng = seeds.stream("population", building.node_id)
    distribution = config.density_distribution()
    roles: Counter = Counter()
    rooms: List[Room] = []
    placed = 0
    for room in building.rooms:
        count = weighted_choice(rng, distribution)
        contents = tuple(_draw_slot(rng, building, room, slot, roles, config, metrics) for slot in range(count))
        placed += len(contents)
        rooms.append(replace(room, contents=contents))
    if metrics is not None:
        metrics['population'] += placed
    log.debug(event="building_populated", node=building.node_id, entities=placed)
    return replace(building, rooms=tuple(rooms))


__all__ = ["entity_id", "populate_building"]
