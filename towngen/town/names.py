"""Built-in name pools for towns, buildings and NPCs.

Every pool can be replaced through ``TownConfig.name_pools`` (``namePools`` in
settings files); missing keys fall back to the defaults below. Callers pass
their own ``random.Random`` so a name is always drawn from the stream of the
entity it belongs to.
"""
from __future__ import annotations

import random
from typing import Mapping, Sequence

TOWN_PREFIXES = ("Old", "North", "South", "East", "West", "Upper", "Lower", "Great", "Little", "High")
TOWN_ROOTS = ("Ash", "Bright", "Cold", "Elder", "Fair", "Frost", "Green", "Iron", "Oak", "Raven", "Red", "Stone", "Thorn", "Wolf")
TOWN_SUFFIXES = ("bridge", "brook", "dale", "ford", "haven", "hollow", "moor", "stead", "vale", "wick")

SURNAMES = (
    "Ashdown", "Barrow", "Blackwood", "Brenner", "Cobb", "Dunmore", "Fairweather", "Fletcher",
    "Garrow", "Hale", "Harker", "Kettle", "Marsh", "Miller", "Penrose", "Quill", "Thatcher", "Underhill",
)
SHOPS = ("Apothecary", "Armoury", "Bakery", "Bookbinder", "Chandlery", "Cobbler", "Forge", "General Store", "Tailor")
TAVERNS = (
    "The Barrel & Bone", "The Drowned Rat", "The Gilded Goose", "The Hanged Man", "The Laughing Lantern",
    "The Prancing Stag", "The Rusty Anchor", "The Sleeping Giant",
)
TEMPLES = ("Dawnfather", "Silver Moon", "Eternal Flame", "Harvest Mother", "Quiet Tide", "Watchful Eye")
LANDMARKS = ("Market Square", "Old Well", "Town Gate", "Statue Green", "Gallows Hill", "Stone Bridge")

NAMES_MALE = ("Aldric", "Bram", "Cedric", "Dorian", "Edmund", "Gareth", "Hugo", "Osric", "Roland", "Tobias")
NAMES_FEMALE = ("Adela", "Brienne", "Clara", "Edith", "Greta", "Isolde", "Maren", "Odette", "Rowena", "Sybil")
NAMES_UNISEX = ("Ash", "Briar", "Ellis", "Quinn", "Robin", "Rowan", "Sage", "Wren")

SEXES = ("male", "female", "unisex")
RACES = ("human", "elf")
CONTAINER_STYLES = ("barrel", "crate", "chest")

DEFAULT_NAME_POOLS = {
    "townPrefixes": TOWN_PREFIXES,
    "townRoots": TOWN_ROOTS,
    "townSuffixes": TOWN_SUFFIXES,
    "surnames": SURNAMES,
    "shops": SHOPS,
    "taverns": TAVERNS,
    "temples": TEMPLES,
    "landmarks": LANDMARKS,
    "namesMale": NAMES_MALE,
    "namesFemale": NAMES_FEMALE,
    "namesUnisex": NAMES_UNISEX,
}

Pools = Mapping[str, Sequence[str]]


def town_name(rng: random.Random, pools: Pools = DEFAULT_NAME_POOLS) -> str:
    return f"{rng.choice(pools['townPrefixes'])} {rng.choice(pools['townRoots'])}{rng.choice(pools['townSuffixes'])}"


def location_name(rng: random.Random, location_type: str, pools: Pools = DEFAULT_NAME_POOLS) -> str:
    """Signboard name for a site of the given type."""
    if location_type == "residence":
        return f"{rng.choice(pools['surnames'])} Residence"
    if location_type == "shop":
        return f"{rng.choice(pools['surnames'])}'s {rng.choice(pools['shops'])}"
    if location_type == "tavern":
        return rng.choice(pools['taverns'])
    if location_type == "temple":
        return f"Temple of the {rng.choice(pools['temples'])}"
    return rng.choice(pools['landmarks'])


def family_name(building_name: str) -> str:
    """Surname carried by a residence or shop name ("Hale Residence" -> "Hale")."""
    head = building_name.replace("'", " ").split(" ")[0]
    return head or "Nobody"


def npc_name(rng: random.Random, sex: str, building_type: str, building_name: str,
             pools: Pools = DEFAULT_NAME_POOLS) -> str:
    first = rng.choice(pools[{"male": "namesMale", "female": "namesFemale"}.get(sex, "namesUnisex")])
    if building_type in ("residence", "shop"):
        return f"{first} {family_name(building_name)}"
    if building_type == "temple":
        return f"{first} of the {building_name}"
    return f"{first} {rng.choice(pools['surnames'])}"
