"""Reader for the DOT connectivity files written by :func:`serialize.to_dot`.

Accepts the usual DOT surface (``strict``, ``graph``/``digraph``, quoted and
bare ids, numerals, ``//``, ``/* */`` and ``#`` comments, ``node``/``edge``
default attribute statements, edge chains ``a -- b -- c``, ports) and keeps
only the attributes the town model understands:

* nodes: ``id`` (required), ``label``, ``type``
* edges: ``type``, ``weight``

Anything else is ignored. Subgraphs and HTML labels are rejected. Structural
problems (duplicate node ids, edges to undeclared nodes, a node without ``id``)
raise :class:`ImportParseError` with the line and column of the offending
statement.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import ImportParseError

NODE_ATTRS = ("id", "label", "type")
EDGE_ATTRS = ("type", "weight")
KEYWORDS = {"strict", "graph", "digraph", "node", "edge", "subgraph"}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\f\v]+)
  | (?P<nl>\n)
  | (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*.*?\*/)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<edgeop>--|->)
  | (?P<numeral>-?(?:\.\d+|\d+(?:\.\d*)?))
  | (?P<id>[A-Za-z_\u0080-\uffff][A-Za-z_0-9\u0080-\uffff]*)
  | (?P<punct>[{}\[\];,=:])
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    line: int
    column: int


@dataclass
class DotNode:
    name: str
    id: str
    label: Optional[str] = None
    type: Optional[str] = None
    line: int = 0
    column: int = 0


@dataclass
class DotEdge:
    source: str
    target: str
    type: Optional[str] = None
    weight: Optional[float] = None
    line: int = 0
    column: int = 0


@dataclass
class DotDocument:
    name: Optional[str]
    directed: bool
    strict: bool
    nodes: List[DotNode] = field(default_factory=list)
    edges: List[DotEdge] = field(default_factory=list)

    @property
    def root(self) -> Optional[str]:
        return self.nodes[0].id if self.nodes else None


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    # DOT only defines the \" escape; keep the usual string escapes the writer emits.
    return re.sub(r'\\(.)', lambda m: {"n": "\n", "\\": "\\", '"': '"'}.get(m.group(1), "\\" + m.group(1)), body)


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    line, line_start, pos = 1, 0, 0
    at_line_start = True
    while pos < len(text):
        if at_line_start and text.startswith("#", pos):
            # C preprocessor style line; DOT ignores it
            end = text.find("\n", pos)
            pos = len(text) if end == -1 else end
            continue
        m = _TOKEN_RE.match(text, pos)
        if not m:
            ch = text[pos]
            if ch == "<":
                raise ImportParseError("HTML strings are not supported", line, pos - line_start + 1)
            if ch == '"':
                raise ImportParseError("unterminated string", line, pos - line_start + 1)
            if text.startswith("/*", pos):
                raise ImportParseError("unterminated comment", line, pos - line_start + 1)
            raise ImportParseError(f"unexpected character {ch!r}", line, pos - line_start + 1)
        kind = m.lastgroup
        value = m.group()
        column = pos - line_start + 1
        if kind == "nl":
            line += 1
            line_start = m.end()
            at_line_start = True
        else:
            if kind not in ("ws",):
                at_line_start = False
            if kind in ("string", "numeral", "id"):
                if kind == "string":
                    tokens.append(Token("id", _unquote(value), line, column))
                elif kind == "id" and value.lower() in KEYWORDS:
                    tokens.append(Token("kw", value.lower(), line, column))
                else:
                    tokens.append(Token("id", value, line, column))
            elif kind in ("edgeop", "punct"):
                tokens.append(Token(value, value, line, column))
            newlines = value.count("\n")
            if newlines:
                # strings and block comments may span lines
                line += newlines
                line_start = pos + value.rfind("\n") + 1
        pos = m.end()
    tokens.append(Token("eof", "", line, pos - line_start + 1))
    return tokens


class DotParser:
    def __init__(self, text: str):
        self.tokens = tokenize(text)
        self.i = 0
        self.node_defaults: Dict[str, str] = {}
        self.edge_defaults: Dict[str, str] = {}
        self.declared: Dict[str, DotNode] = {}
        self.ids: Dict[str, DotNode] = {}
        self.pending_edges: List[Tuple[Token, Token, Dict[str, str]]] = []

    # --- token helpers -------------------------------------------------
    @property
    def tok(self) -> Token:
        return self.tokens[self.i]

    def advance(self) -> Token:
        t = self.tokens[self.i]
        if t.kind != "eof":
            self.i += 1
        return t

    def error(self, message: str, tok: Optional[Token] = None) -> ImportParseError:
        t = tok or self.tok
        return ImportParseError(message, t.line, t.column)

    def expect(self, kind: str, what: Optional[str] = None) -> Token:
        if self.tok.kind != kind:
            found = self.tok.value or self.tok.kind
            raise self.error(f"expected {what or kind!r}, found {found!r}")
        return self.advance()

    def accept(self, kind: str, value: Optional[str] = None) -> Optional[Token]:
        if self.tok.kind == kind and (value is None or self.tok.value == value):
            return self.advance()
        return None

    # --- grammar --------------------------------------------------------
    def parse(self) -> DotDocument:
        strict = bool(self.accept("kw", "strict"))
        if self.accept("kw", "graph"):
            directed = False
        elif self.accept("kw", "digraph"):
            directed = True
        else:
            raise self.error("expected 'graph' or 'digraph'")
        name = self.advance().value if self.tok.kind == "id" else None
        self.expect("{")
        doc = DotDocument(name=name, directed=directed, strict=strict)
        while not self.accept("}"):
            if self.tok.kind == "eof":
                raise self.error("unexpected end of file, missing '}'")
            self.statement(doc)
            self.accept(";")
        if self.tok.kind != "eof":
            raise self.error("unexpected content after closing '}'")
        self.resolve_edges(doc)
        return doc

    def statement(self, doc: DotDocument) -> None:
        t = self.tok
        if t.kind == "kw":
            if t.value == "subgraph":
                raise self.error("subgraphs are not supported")
            if t.value in ("graph", "node", "edge"):
                self.advance()
                attrs = self.attr_lists(required=True)
                if t.value == "node":
                    self.node_defaults.update(attrs)
                elif t.value == "edge":
                    self.edge_defaults.update(attrs)
                return
            raise self.error(f"unexpected keyword {t.value!r}")
        if t.kind == "{":
            raise self.error("anonymous subgraphs are not supported")
        if t.kind != "id":
            raise self.error(f"unexpected {t.value or t.kind!r}")
        first = self.node_ref()
        if self.accept("="):
            self.expect("id", "attribute value")  # graph attribute, ignored
            return
        if self.tok.kind in ("--", "->"):
            chain = [first]
            while self.tok.kind in ("--", "->"):
                op = self.advance()
                if (op.kind == "->") != doc.directed:
                    raise self.error(f"edge operator {op.kind!r} does not match graph type", op)
                if self.tok.kind == "{" or (self.tok.kind == "kw" and self.tok.value == "subgraph"):
                    raise self.error("subgraph edge endpoints are not supported")
                chain.append(self.node_ref())
            attrs = dict(self.edge_defaults)
            attrs.update(self.attr_lists())
            for a, b in zip(chain, chain[1:]):
                self.pending_edges.append((a, b, attrs))
            return
        attrs = dict(self.node_defaults)
        attrs.update(self.attr_lists())
        self.declare_node(first, attrs, doc)

    def node_ref(self) -> Token:
        tok = self.expect("id", "node id")
        if self.accept(":"):  # port / compass point, ignored
            self.expect("id", "port")
            if self.accept(":"):
                self.expect("id", "compass point")
        return tok

    def attr_lists(self, required: bool = False) -> Dict[str, str]:
        attrs: Dict[str, str] = {}
        if required and self.tok.kind != "[":
            raise self.error("expected '['")
        while self.accept("["):
            while not self.accept("]"):
                key = self.expect("id", "attribute name")
                self.expect("=", "=")
                value = self.expect("id", "attribute value")
                attrs[key.value] = value.value
                if not self.accept(","):
                    self.accept(";")
        return attrs

    # --- semantics -------------------------------------------------------
    def declare_node(self, tok: Token, attrs: Dict[str, str], doc: DotDocument) -> None:
        if tok.value in self.declared:
            raise self.error(f"duplicate node {tok.value!r}", tok)
        node_id = attrs.get("id")
        if node_id is None or not node_id.strip():
            raise self.error(f"node {tok.value!r} is missing the required 'id' attribute", tok)
        if node_id in self.ids:
            raise self.error(f"duplicate node id {node_id!r}", tok)
        node = DotNode(
            name=tok.value,
            id=node_id,
            label=attrs.get("label"),
            type=attrs.get("type"),
            line=tok.line,
            column=tok.column,
        )
        self.declared[tok.value] = node
        self.ids[node_id] = node
        doc.nodes.append(node)

    def resolve_edges(self, doc: DotDocument) -> None:
        for a, b, attrs in self.pending_edges:
            for end in (a, b):
                if end.value not in self.declared:
                    raise self.error(f"edge references undeclared node {end.value!r}", end)
            weight = None
            if "weight" in attrs:
                try:
                    weight = float(attrs["weight"])
                except ValueError:
                    raise self.error(f"edge weight {attrs['weight']!r} is not a number", a) from None
                if not math.isfinite(weight):
                    raise self.error(f"edge weight {attrs['weight']!r} is not a finite number", a)
            doc.edges.append(DotEdge(
                source=self.declared[a.value].id,
                target=self.declared[b.value].id,
                type=attrs.get("type"),
                weight=weight,
                line=a.line,
                column=a.column,
            ))


def parse_dot(text: str) -> DotDocument:
    """Parse DOT text into a DotDocument or raise ImportParseError."""
    if not text or not text.strip():
        raise ImportParseError("empty DOT document", 1, 1)
    return DotParser(text).parse()


__all__ = ["DotDocument", "DotEdge", "DotNode", "DotParser", "EDGE_ATTRS", "NODE_ATTRS", "parse_dot", "tokenize"]
