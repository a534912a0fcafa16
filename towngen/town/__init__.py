"""Procedural town core: layout, subdivision, population, export and re-import.

Nothing in this package touches files, the environment or the network.
"""
from .config import TownConfig
from .errors import (
    ConfigError,
    ImportConsistencyError,
    ImportParseError,
    LayoutFailure,
    PopulationConstraintFailure,
    SubdivisionFailure,
    TownGenError,
)
from .model import NPC, Building, Chest, Door, Edge, Graph, Item, Location, Room, Town
from .pipeline import generate_town
from .reconcile import GraphDiff, ReconcileResult, diff_graphs, reconcile, validate_graph
from .rng import SeedManager, coerce_seed
from .serialize import entity_index, from_json, to_dot, to_json
from .workspace import TownWorkspace

__all__ = [
    "Building",
    "Chest",
    "ConfigError",
    "Door",
    "Edge",
    "Graph",
    "GraphDiff",
    "ImportConsistencyError",
    "ImportParseError",
    "Item",
    "LayoutFailure",
    "Location",
    "NPC",
    "PopulationConstraintFailure",
    "ReconcileResult",
    "Room",
    "SeedManager",
    "SubdivisionFailure",
    "Town",
    "TownConfig",
    "TownGenError",
    "TownWorkspace",
    "coerce_seed",
    "diff_graphs",
    "entity_index",
    "from_json",
    "generate_town",
    "reconcile",
    "to_dot",
    "to_json",
    "validate_graph",
]
