"""Immutable generation configuration snapshot.

The pipeline only ever reads a ``TownConfig``; collaborators (settings loader,
HTTP API, CLI) build one via :meth:`TownConfig.from_mapping`, which accepts the
camelCase option names used in settings files as well as snake_case.

Weighted tables are normalised to tuples of ``(key, weight)`` pairs so the
snapshot stays hashable and its iteration order is fixed.
"""
from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ConfigError
from .names import DEFAULT_NAME_POOLS

Size = Tuple[int, int]
Weights = Tuple[Tuple[str, float], ...]

BUILDING_TYPES = ("residence", "shop", "tavern", "temple")
LANDMARK = "landmark"
LOCATION_TYPES = BUILDING_TYPES + (LANDMARK,)
EDGE_TYPES = ("road", "path", "secret")
KINDS = ("npc", "chest", "item")

DENSITY_PRESETS: Dict[str, Tuple[Tuple[int, float], ...]] = {
    "none": ((0, 1.0),),
    "low": ((0, 5.0), (1, 3.0), (2, 1.0)),
    "medium": ((0, 2.0), (1, 4.0), (2, 3.0), (3, 1.0)),
    "high": ((1, 2.0), (2, 4.0), (3, 3.0), (4, 2.0)),
}

DEFAULT_ROLE_TABLES = {
    "default": {"commoner": 6, "guard": 1, "merchant": 1},
    "residence": {"resident": 6, "servant": 1, "guard": 1},
    "shop": {"shopkeeper": 3, "customer": 3, "guard": 1},
    "tavern": {"barkeep": 2, "patron": 5, "bard": 1},
    "temple": {"priest": 3, "acolyte": 3, "pilgrim": 2},
}

DEFAULT_LOOT_TABLES = {
    "common": {"bread": 5, "copper-coins": 6, "dagger": 2, "rope": 3, "torch": 4},
    "household": {"candle": 4, "cutlery": 3, "linen": 3, "silver-spoon": 1},
    "rare": {"enchanted-dagger": 1, "healing-potion": 4, "silver-ring": 2, "spellbook": 1},
}

# kept out of to_dict() and the fingerprint
_NOT_EXPORTED = ("seed", "workers")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


def _weights(value: Mapping[str, Any], name: str) -> Weights:
    if not isinstance(value, Mapping):
        raise ConfigError(f"{name} must be a mapping of key -> weight", option=name)
    out = []
    for k in sorted(value):
        try:
            w = float(value[k])
        except (TypeError, ValueError):
            raise ConfigError(f"{name}[{k}] is not a number", option=name) from None
        if w < 0:
            raise ConfigError(f"{name}[{k}] must be >= 0", option=name)
        out.append((str(k), w))
    if not any(w > 0 for _, w in out):
        raise ConfigError(f"{name} needs at least one positive weight", option=name)
    return tuple(out)


def _names(value: Any, pool: str) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"name pool {pool!r} must be a list of names", option="namePools")
    return tuple(str(v).strip() for v in value if str(v).strip())


def _size(value: Any, name: str) -> Size:
    if isinstance(value, str):
        m = re.fullmatch(r"\s*(\d+)\s*[xX×]\s*(\d+)\s*", value)
        if not m:
            raise ConfigError(f"{name} must look like '3x3'", option=name)
        return (int(m.group(1)), int(m.group(2)))
    if isinstance(value, Mapping):
        value = (value.get("w", value.get("width")), value.get("h", value.get("height")))
    try:
        w, h = value
        return (int(w), int(h))
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a [w, h] pair", option=name) from None


@dataclass(frozen=True)
class TownConfig:
    seed: Union[int, str, None] = None
    # layout
    town_size: int = 10
    map_width: int = 160
    map_height: int = 160
    min_spacing: float = 14.0
    max_placement_attempts: int = 5000
    extra_edge_ratio: float = 0.25
    neighbour_candidates: int = 4
    edge_type_weights: Weights = (("path", 3.0), ("road", 6.0), ("secret", 1.0))
    building_type_weights: Weights = (("residence", 5.0), ("shop", 2.0), ("tavern", 1.0), ("temple", 1.0))
    travel_cost: float = 5.0
    # subdivision
    footprint_min: Size = (6, 6)
    footprint_max: Size = (18, 14)
    room_size_min: Size = (3, 3)
    room_size_max: Size = (8, 8)
    split_chance: float = 0.5
    min_shared_wall: int = 1
    extra_door_ratio: float = 0.2
    # population
    population_density: Union[str, Tuple[Tuple[int, float], ...]] = "low"
    kind_weights: Weights = (("chest", 2.0), ("item", 3.0), ("npc", 5.0))
    npc_role_tables: Tuple[Tuple[str, Weights], ...] = field(
        default_factory=lambda: tuple((k, _weights(v, "npc_role_tables")) for k, v in sorted(DEFAULT_ROLE_TABLES.items()))
    )
    role_limits: Tuple[Tuple[str, int], ...] = (("barkeep", 1), ("priest", 1), ("shopkeeper", 1))
    chests_in_entrance: bool = False
    loot_tables: Tuple[Tuple[str, Weights], ...] = field(
        default_factory=lambda: tuple((k, _weights(v, "loot_tables")) for k, v in sorted(DEFAULT_LOOT_TABLES.items()))
    )
    population_retry_cap: int = 32
    # names; only the overridden pools are stored
    name_pools: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    # execution
    workers: int = field(default=1, compare=False)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        def bad(msg, option):
            raise ConfigError(msg, option=option)

        if self.town_size < 1:
            bad("townSize must be >= 1", "townSize")
        if self.map_width < 1 or self.map_height < 1:
            bad("map dimensions must be positive", "mapWidth")
        if self.min_spacing < 0:
            bad("minSpacing must be >= 0", "minSpacing")
        if self.max_placement_attempts < 1:
            bad("maxPlacementAttempts must be >= 1", "maxPlacementAttempts")
        if not 0.0 <= self.extra_edge_ratio <= 1.0:
            bad("extraEdgeRatio must be within [0, 1]", "extraEdgeRatio")
        if self.neighbour_candidates < 1:
            bad("neighbourCandidates must be >= 1", "neighbourCandidates")
        for name in ("footprint_min", "footprint_max", "room_size_min", "room_size_max"):
            w, h = getattr(self, name)
            if w < 1 or h < 1:
                bad(f"{_camel(name)} must be at least 1x1", _camel(name))
        if any(a > b for a, b in zip(self.room_size_min, self.room_size_max)):
            bad("roomSizeMin exceeds roomSizeMax", "roomSizeMin")
        if any(a > b for a, b in zip(self.footprint_min, self.footprint_max)):
            bad("footprintMin exceeds footprintMax", "footprintMin")
        if not 0.0 <= self.split_chance <= 1.0:
            bad("splitChance must be within [0, 1]", "splitChance")
        if not 0.0 <= self.extra_door_ratio <= 1.0:
            bad("extraDoorRatio must be within [0, 1]", "extraDoorRatio")
        if self.min_shared_wall < 1:
            bad("minSharedWall must be >= 1", "minSharedWall")
        if isinstance(self.population_density, str) and self.population_density not in DENSITY_PRESETS:
            bad(f"unknown populationDensity preset {self.population_density!r}", "populationDensity")
        if "default" not in dict(self.npc_role_tables):
            bad("npcRoleTables needs a 'default' table", "npcRoleTables")
        if not self.loot_tables:
            bad("lootTables must name at least one table", "lootTables")
        if self.population_retry_cap < 1:
            bad("populationRetryCap must be >= 1", "populationRetryCap")
        for key, pool in self.name_pools:
            if key not in DEFAULT_NAME_POOLS:
                bad(f"unknown name pool {key!r}", "namePools")
            if not pool:
                bad(f"name pool {key!r} is empty", "namePools")
        if self.workers < 1:
            bad("workers must be >= 1", "workers")
        unknown = [k for k, _ in self.edge_type_weights if k not in EDGE_TYPES]
        if unknown:
            bad(f"unknown edge types {unknown}", "edgeTypeWeights")
        unknown = [k for k, _ in self.building_type_weights if k not in BUILDING_TYPES]
        if unknown:
            bad(f"unknown building types {unknown}", "buildingTypeWeights")
        unknown = [k for k, _ in self.kind_weights if k not in KINDS]
        if unknown:
            bad(f"unknown content kinds {unknown}", "kindWeights")

    # --- lookups -------------------------------------------------------
    def density_distribution(self) -> Tuple[Tuple[int, float], ...]:
        if isinstance(self.population_density, str):
            return DENSITY_PRESETS[self.population_density]
        return self.population_density

    def role_table(self, building_type: str) -> Weights:
        tables = dict(self.npc_role_tables)
        return tables.get(building_type, tables["default"])

    def loot_table(self, name: str) -> Weights:
        return dict(self.loot_tables)[name]

    def role_limit(self, role: str) -> Optional[int]:
        return dict(self.role_limits).get(role)

    def pools(self) -> Dict[str, Tuple[str, ...]]:
        return {**DEFAULT_NAME_POOLS, **dict(self.name_pools)}

    # --- (de)serialisation --------------------------------------------
    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, base: Optional["TownConfig"] = None) -> "TownConfig":
        """Build a config from a settings mapping, layered over ``base``."""
        base = base or cls()
        if not data:
            return base
        known = {f.name for f in fields(cls)}
        changes: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = _snake(raw_key)
            if key not in known:
                continue  # unrecognised options are ignored
            changes[key] = _coerce_option(key, value)
        try:
            return replace(base, **changes)
        except TypeError as exc:
            raise ConfigError(str(exc)) from None

    def to_dict(self) -> Dict[str, Any]:
        """camelCase, JSON friendly snapshot (seed and workers excluded)."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            if f.name in _NOT_EXPORTED:
                continue
            out[_camel(f.name)] = _export_option(f.name, getattr(self, f.name))
        return out

    def fingerprint(self) -> str:
        blob = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:12]


def _coerce_option(key: str, value: Any) -> Any:
    try:
        if key in ("edge_type_weights", "building_type_weights", "kind_weights"):
            return _weights(value, _camel(key))
        if key in ("npc_role_tables", "loot_tables"):
            if not isinstance(value, Mapping):
                raise ConfigError(f"{_camel(key)} must be a mapping", option=_camel(key))
            return tuple((str(k), _weights(v, f"{_camel(key)}.{k}")) for k, v in sorted(value.items()))
        if key == "name_pools":
            if not isinstance(value, Mapping):
                raise ConfigError("namePools must map pool names to lists of names", option="namePools")
            return tuple((str(k), _names(v, str(k))) for k, v in sorted(value.items()))
        if key == "role_limits":
            return tuple((str(k), int(v)) for k, v in sorted(value.items()))
        if key in ("footprint_min", "footprint_max", "room_size_min", "room_size_max"):
            return _size(value, _camel(key))
        if key == "population_density":
            if isinstance(value, str):
                return value.strip().lower()
            if isinstance(value, Mapping):
                dist = tuple(sorted((int(k), float(v)) for k, v in value.items()))
                if not dist or any(c < 0 or w < 0 for c, w in dist) or not any(w > 0 for _, w in dist):
                    raise ConfigError("populationDensity needs non-negative counts and a positive weight",
                                      option="populationDensity")
                return dist
            raise ConfigError("populationDensity must be a preset name or mapping", option="populationDensity")
        if key == "chests_in_entrance":
            if isinstance(value, str):
                return value.strip().lower() not in {"0", "false", "no", "off", ""}
            return bool(value)
        if key in ("min_spacing", "extra_edge_ratio", "travel_cost", "split_chance", "extra_door_ratio"):
            return float(value)
        if key == "seed":
            return value
        return int(value)
    except (TypeError, ValueError, AttributeError):
        raise ConfigError(f"invalid value for {_camel(key)}: {value!r}", option=_camel(key)) from None


def _export_option(name: str, value: Any) -> Any:
    if name in ("npc_role_tables", "loot_tables"):
        return {k: {ik: w for ik, w in v} for k, v in value}
    if name == "name_pools":
        return {k: list(v) for k, v in value}
    if name in ("edge_type_weights", "building_type_weights", "kind_weights", "role_limits"):
        return {k: v for k, v in value}
    if name == "population_density" and not isinstance(value, str):
        return {str(c): w for c, w in value}
    if isinstance(value, tuple):
        return list(value)
    return value


__all__ = [
    "BUILDING_TYPES",
    "DENSITY_PRESETS",
    "EDGE_TYPES",
    "KINDS",
    "LANDMARK",
    "LOCATION_TYPES",
    "TownConfig",
]
