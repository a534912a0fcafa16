"""Projections of a Town: full JSON scene graph and DOT connectivity graph.

Both writers are pure: they read the Town and return text. The JSON form
carries everything needed to rebuild an identical Town (``from_json``); the DOT
form carries only the connectivity graph, annotated with the attributes the
importer understands (``id``, ``label``, ``type`` on nodes; ``type``,
``weight`` on edges).
"""
from __future__ import annotations

import json
import math
from dataclasses import replace
from typing import Any, Dict, Mapping, Tuple

from .config import TownConfig
from .errors import ImportParseError, TownGenError
from .geometry import Rect
from .model import Building, Content, Door, Edge, Graph, Location, Room, Town, content_from_dict

FORMAT_VERSION = 1


def _edge_dict(edge: Edge, travel_cost: float) -> Dict[str, Any]:
    return {
        "source": edge.source,
        "target": edge.target,
        "type": edge.type,
        "weight": edge.weight,
        "cost": round(edge.weight * travel_cost, 2),
    }


def _building_dict(b: Building) -> Dict[str, Any]:
    return {
        "id": b.id,
        "nodeId": b.node_id,
        "name": b.name,
        "type": b.building_type,
        "footprint": b.footprint.to_dict(),
        "entranceRoomId": b.entrance_room_id,
        "doors": [{"rooms": [d.a, d.b], "position": list(d.position)} for d in b.doors],
        "rooms": [
            {
                "id": r.id,
                "bounds": r.bounds.to_dict(),
                "doors": b.neighbours(r.id),
                "contents": [c.to_dict() for c in r.contents],
            }
            for r in b.rooms
        ],
    }


def to_json_dict(town: Town) -> Dict[str, Any]:
    g = town.graph
    return {
        "format": FORMAT_VERSION,
        "town": {
            "name": town.name,
            "seed": town.seed,
            "configVersion": town.config.fingerprint(),
            "state": town.state,
            "revision": town.revision,
            "root": g.root,
            "config": town.config.to_dict(),
        },
        "graph": {
            "root": g.root,
            "nodes": [
                {"id": n.id, "label": n.label, "type": n.type, "position": list(n.position)}
                for n in g.nodes.values()
            ],
            "edges": [_edge_dict(e, town.config.travel_cost) for e in g.edges],
        },
        "buildings": [_building_dict(b) for b in town.buildings.values()],
    }


def to_json(town: Town) -> str:
    return json.dumps(to_json_dict(town), indent=2) + "\n"


def _building_from_dict(data: Mapping[str, Any]) -> Building:
    bid = data["id"]
    rooms = []
    for rd in data["rooms"]:
        rid = int(rd["id"])
        contents: Tuple[Content, ...] = tuple(content_from_dict(c, bid, rid) for c in rd.get("contents", []))
        rooms.append(Room(rid, Rect.from_dict(rd["bounds"]), contents))
    doors = tuple(Door(int(d["rooms"][0]), int(d["rooms"][1]), tuple(d["position"])) for d in data.get("doors", []))
    return Building(
        id=bid,
        node_id=data["nodeId"],
        name=data["name"],
        building_type=data["type"],
        footprint=Rect.from_dict(data["footprint"]),
        rooms=tuple(rooms),
        doors=doors,
        entrance_room_id=int(data["entranceRoomId"]),
    )


def _edge_from_dict(data: Mapping[str, Any]) -> Edge:
    weight = float(data["weight"])
    if not math.isfinite(weight):
        raise ImportParseError(f"edge {data['source']}--{data['target']} has a non-finite weight")
    return Edge.between(data["source"], data["target"], data["type"], weight)


def from_json_dict(data: Mapping[str, Any]) -> Town:
    """Rebuild a Town from its JSON projection (hand edits included)."""
    try:
        meta = data["town"]
        seed = int(meta["seed"])
        config = replace(TownConfig.from_mapping(meta.get("config") or {}), seed=seed)
        gd = data["graph"]
        nodes = {}
        for nd in gd["nodes"]:
            if nd["id"] in nodes:
                raise ImportParseError(f"duplicate node id {nd['id']!r} in town JSON")
            nodes[nd["id"]] = Location(nd["id"], nd["label"], nd["type"], tuple(nd["position"]))
        edges = tuple(_edge_from_dict(e) for e in gd["edges"])
        graph = Graph(nodes, edges, gd.get("root") or meta["root"])
        buildings = {}
        for bd in data["buildings"]:
            b = _building_from_dict(bd)
            buildings[b.node_id] = b
    except TownGenError:
        raise
    except (KeyError, TypeError, ValueError, IndexError) as exc:
        raise ImportParseError(f"invalid town JSON: {exc!r}") from exc
    return Town(
        seed=seed,
        config=config,
        name=meta.get("name", ""),
        graph=graph,
        buildings=buildings,
        state=meta.get("state", "generated"),
        revision=int(meta.get("revision", 1)),
    )


def from_json(text: str) -> Town:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportParseError(f"town JSON is not valid JSON: {exc.msg}", line=exc.lineno, column=exc.colno) from exc
    return from_json_dict(data)


# ---------------------------------------------------------------------------
# DOT
# ---------------------------------------------------------------------------
def dot_quote(value: Any) -> str:
    s = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{s}"'


def _node_line(n: Location) -> str:
    return f"    {dot_quote(n.id)} [id={dot_quote(n.id)}, label={dot_quote(n.label)}, type={dot_quote(n.type)}];"


def graph_to_dot(graph: Graph, title: str = "") -> str:
    lines = ["graph town {"]
    if title:
        lines.append(f"    // {title}")
    ordered = [graph.nodes[graph.root]] + [n for nid, n in graph.nodes.items() if nid != graph.root]
    lines.extend(_node_line(n) for n in ordered)
    for e in graph.edges:
        lines.append(f"    {dot_quote(e.source)} -- {dot_quote(e.target)} [type={dot_quote(e.type)}, weight={e.weight!r}];")
    lines.append("}")
    return "\n".join(lines) + "\n"


def to_dot(town: Town) -> str:
    return graph_to_dot(town.graph, f"{town.name} (seed {town.seed}, revision {town.revision})")


def entity_index(town: Town) -> Dict[str, Tuple[str, int, Content]]:
    """Flat lookup of every placed entity: id -> (building id, room id, entity)."""
    out: Dict[str, Tuple[str, int, Content]] = {}
    for b, r in town.iter_rooms():
        for c in r.contents:
            out[c.id] = (b.id, r.id, c)
    return out


__all__ = [
    "FORMAT_VERSION",
    "dot_quote",
    "entity_index",
    "from_json",
    "from_json_dict",
    "graph_to_dot",
    "to_dot",
    "to_json",
    "to_json_dict",
]
