import pytest

from towngen.town.dot import parse_dot, tokenize
from towngen.town.errors import ImportParseError


def test_parses_written_format():
    doc = parse_dot(
        'graph town {\n'
        '    // Old Ashford (seed 1, revision 1)\n'
        '    "n00" [id="n00", label="Hale Residence", type="residence"];\n'
        '    "n01" [id="n01", label="The \\"Stag\\"", type="tavern"];\n'
        '    "n00" -- "n01" [type="road", weight=23.41];\n'
        '}\n'
    )
    assert not doc.directed and not doc.strict and doc.name == "town"
    assert [n.id for n in doc.nodes] == ["n00", "n01"]
    assert doc.root == "n00"
    assert doc.nodes[1].label == 'The "Stag"'
    assert doc.nodes[1].type == "tavern"
    (edge,) = doc.edges
    assert (edge.source, edge.target, edge.type, edge.weight) == ("n00", "n01", "road", 23.41)


def test_node_names_map_to_id_attribute():
    doc = parse_dot('graph { a [id=n05]; b [id="n06" color=red]; a -- b }')
    assert [n.id for n in doc.nodes] == ["n05", "n06"]
    assert (doc.edges[0].source, doc.edges[0].target) == ("n05", "n06")
    assert doc.edges[0].type is None and doc.edges[0].weight is None


def test_defaults_chains_comments_and_digraph():
    doc = parse_dot(
        '# generated by hand\n'
        'strict digraph G {\n'
        '  rankdir=LR;\n'
        '  /* block\n     comment */\n'
        '  node [type=shop];\n'
        '  edge [type=path]\n'
        '  a [id=a]; b [id=b, type=temple]; c [id=c]\n'
        '  a -> b -> c [weight=3];\n'
        '  c:n -> a:s:e\n'
        '}\n'
    )
    assert doc.directed and doc.strict
    assert [n.type for n in doc.nodes] == ["shop", "temple", "shop"]
    assert [(e.source, e.target) for e in doc.edges] == [("a", "b"), ("b", "c"), ("c", "a")]
    assert [e.type for e in doc.edges] == ["path", "path", "path"]
    assert [e.weight for e in doc.edges] == [3.0, 3.0, None]


def test_edges_may_reference_nodes_declared_later():
    doc = parse_dot('graph { x -- y; x [id=x]; y [id=y] }')
    assert len(doc.edges) == 1


def test_tokenizer_tracks_lines():
    toks = tokenize('graph {\n  a\n}')
    a = [t for t in toks if t.value == "a"][0]
    assert (a.line, a.column) == (2, 3)


@pytest.mark.parametrize("text, fragment, line", [
    ('graph { a [id=x]; b [id=x] }', "duplicate node id", 1),
    ('graph {\n a [id=a]\n a [id=b]\n}', "duplicate node", 3),
    ('graph {\n a [label=foo]\n}', "missing the required 'id'", 2),
    ('graph {\n a [id=a]\n a -- ghost\n}', "undeclared node 'ghost'", 3),
    ('graph { a [id=a]; b [id=b]; a -> b }', "does not match", 1),
    ('graph { subgraph s { a [id=a] } }', "subgraphs", 1),
    ('graph { a [id=a] ', "missing '}'", 1),
    ('graph { a [id="a] }', "unterminated string", 1),
    ('graph { a [label=<b>x</b>] }', "HTML", 1),
    ('town { }', "expected 'graph'", 1),
    ('graph { a [id=a]; b [id=b]; a -- b [weight=heavy] }', "not a number", 1),
    ('graph { a [id=a] } extra', "after closing", 1),
])
def test_malformed_input_reports_position(text, fragment, line):
    with pytest.raises(ImportParseError) as exc:
        parse_dot(text)
    assert fragment in exc.value.message
    assert exc.value.line == line
    assert exc.value.column is not None
    assert f"line {line}" in str(exc.value)


def test_empty_document():
    with pytest.raises(ImportParseError):
        parse_dot("   \n")


@pytest.mark.parametrize("weight", ["nan", "inf", '"-inf"', "NaN"])
def test_non_finite_weights_are_rejected(weight):
    text = f'graph {{\n  a [id=a]; b [id=b]\n  a -- b [weight={weight}]\n}}'
    with pytest.raises(ImportParseError) as exc:
        parse_dot(text)
    assert "not a finite number" in exc.value.message
    assert (exc.value.line, exc.value.column) == (3, 3)
