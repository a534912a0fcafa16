"""Town data model.

All records are frozen dataclasses: once a pipeline phase finishes, its output
never changes. Reconciliation builds a new ``Town`` that shares untouched
``Building`` objects with the previous one and replaces the rest.

Rooms live in an arena (``Building.rooms``) indexed by room id; doors are
index pairs, so there are no object cycles between rooms.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple, Union

from .config import LANDMARK, TownConfig
from .geometry import Point, Rect


# ---------------------------------------------------------------------------
# Contents (tagged variants: kind + placeable + serializable)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class NPC:
    id: str
    building_id: str
    room_id: int
    role: str
    dialogue_tag: str
    name: str
    sex: str
    race: str
    kind: str = field(default="npc", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "role": self.role,
            "dialogueTag": self.dialogue_tag,
            "name": self.name,
            "sex": self.sex,
            "race": self.race,
        }


@dataclass(frozen=True)
class Chest:
    id: str
    building_id: str
    room_id: int
    loot_table_ref: str
    style: str = "chest"
    kind: str = field(default="chest", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind, "lootTableRef": self.loot_table_ref, "style": self.style}


@dataclass(frozen=True)
class Item:
    id: str
    building_id: str
    room_id: int
    item_id: str
    kind: str = field(default="item", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind, "itemId": self.item_id}


Content = Union[NPC, Chest, Item]


def content_from_dict(data: Mapping[str, Any], building_id: str, room_id: int) -> Content:
    kind = data.get("kind")
    if kind == "npc":
        return NPC(
            id=data["id"],
            building_id=building_id,
            room_id=room_id,
            role=data["role"],
            dialogue_tag=data["dialogueTag"],
            name=data.get("name", ""),
            sex=data.get("sex", ""),
            race=data.get("race", ""),
        )
    if kind == "chest":
        return Chest(id=data["id"], building_id=building_id, room_id=room_id,
                     loot_table_ref=data["lootTableRef"], style=data.get("style", "chest"))
    if kind == "item":
        return Item(id=data["id"], building_id=building_id, room_id=room_id, item_id=data["itemId"])
    raise ValueError(f"unknown content kind: {kind!r}")


# ---------------------------------------------------------------------------
# Buildings and rooms
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Room:
    id: int
    bounds: Rect
    contents: Tuple[Content, ...] = ()


@dataclass(frozen=True)
class Door:
    a: int
    b: int
    position: Point

    @property
    def rooms(self) -> Tuple[int, int]:
        return (self.a, self.b)


@dataclass(frozen=True)
class Building:
    id: str
    node_id: str
    name: str
    building_type: str
    footprint: Rect
    rooms: Tuple[Room, ...]
    doors: Tuple[Door, ...]
    entrance_room_id: int

    def room(self, room_id: int) -> Room:
        return self.rooms[room_id]

    def neighbours(self, room_id: int) -> List[int]:
        out = []
        for d in self.doors:
            if d.a == room_id:
                out.append(d.b)
            elif d.b == room_id:
                out.append(d.a)
        return sorted(out)

    def reachable_rooms(self) -> Set[int]:
        adj: Dict[int, List[int]] = {r.id: [] for r in self.rooms}
        for d in self.doors:
            adj[d.a].append(d.b)
            adj[d.b].append(d.a)
        seen = {self.entrance_room_id}
        q = deque([self.entrance_room_id])
        while q:
            cur = q.popleft()
            for nxt in adj[cur]:
                if nxt not in seen:
                    seen.add(nxt)
                    q.append(nxt)
        return seen

    def iter_contents(self) -> Iterator[Content]:
        for r in self.rooms:
            yield from r.contents


# ---------------------------------------------------------------------------
# Connectivity graph
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Location:
    id: str
    label: str
    type: str
    position: Point

    @property
    def is_building(self) -> bool:
        return self.type != LANDMARK


def edge_key(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a <= b else (b, a)


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    type: str = "road"
    weight: float = 0.0

    @classmethod
    def between(cls, a: str, b: str, type: str = "road", weight: float = 0.0) -> "Edge":
        s, t = edge_key(a, b)
        return cls(s, t, type, round(float(weight), 2))

    @property
    def key(self) -> Tuple[str, str]:
        return edge_key(self.source, self.target)

    def other(self, node_id: str) -> str:
        return self.target if node_id == self.source else self.source

    @property
    def signature(self) -> Tuple[str, str, str, float]:
        return self.key + (self.type, self.weight)


@dataclass(frozen=True)
class Graph:
    """Snapshot of the town's connectivity.

    ``nodes`` keeps insertion order; the root is listed first by convention but
    is named explicitly in ``root``.
    """

    nodes: Mapping[str, Location]
    edges: Tuple[Edge, ...]
    root: str

    def __post_init__(self):
        object.__setattr__(self, "nodes", dict(self.nodes))
        object.__setattr__(self, "edges", tuple(sorted(self.edges, key=lambda e: e.key)))

    def __hash__(self):
        return hash((tuple(self.nodes), self.edges, self.root))

    def adjacency(self) -> Dict[str, List[str]]:
        adj: Dict[str, List[str]] = {nid: [] for nid in self.nodes}
        for e in self.edges:
            if e.source in adj and e.target in adj:
                adj[e.source].append(e.target)
                adj[e.target].append(e.source)
        return adj

    def incident_edges(self, node_id: str) -> Tuple[Edge, ...]:
        return tuple(e for e in self.edges if node_id in (e.source, e.target))

    def reachable_from_root(self) -> Set[str]:
        if self.root not in self.nodes:
            return set()
        adj = self.adjacency()
        seen = {self.root}
        q = deque([self.root])
        while q:
            cur = q.popleft()
            for nxt in adj[cur]:
                if nxt not in seen:
                    seen.add(nxt)
                    q.append(nxt)
        return seen

    def is_connected(self) -> bool:
        return bool(self.nodes) and len(self.reachable_from_root()) == len(self.nodes)

    def edge(self, a: str, b: str) -> Optional[Edge]:
        key = edge_key(a, b)
        for e in self.edges:
            if e.key == key:
                return e
        return None


# ---------------------------------------------------------------------------
# Town
# ---------------------------------------------------------------------------
GENERATED = "generated"
RECONCILED = "reconciled"


@dataclass(frozen=True)
class Town:
    seed: int
    config: TownConfig
    name: str
    graph: Graph
    buildings: Mapping[str, Building]
    state: str = GENERATED
    revision: int = 1
    metrics: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        # Buildings follow graph node order so exports stay stable.
        ordered = {nid: self.buildings[nid] for nid in self.graph.nodes if nid in self.buildings}
        object.__setattr__(self, "buildings", ordered)

    def __hash__(self):
        return hash((self.seed, self.name, self.graph, self.state, self.revision))

    def building_for(self, node_id: str) -> Optional[Building]:
        return self.buildings.get(node_id)

    def iter_rooms(self) -> Iterator[Tuple[Building, Room]]:
        for b in self.buildings.values():
            for r in b.rooms:
                yield b, r


__all__ = [
    "Building",
    "Chest",
    "Content",
    "Door",
    "Edge",
    "GENERATED",
    "Graph",
    "Item",
    "Location",
    "NPC",
    "RECONCILED",
    "Room",
    "Town",
    "content_from_dict",
    "edge_key",
]
