import pytest

from towngen import db
from towngen.models import TownSnapshot

SMALL = {"townSize": 5, "mapWidth": 100, "mapHeight": 100, "minSpacing": 12}


def _create(client, seed=42, config=None):
    r = client.post("/api/towns", json={"seed": seed, "config": config or SMALL})
    assert r.status_code == 201, r.get_data(as_text=True)
    return r.get_json()


def test_create_and_fetch_town(client):
    data = _create(client)
    assert data["seed"] == 42 and data["revision"] == 1
    assert len(data["town"]["graph"]["nodes"]) == 5
    r = client.get(f"/api/towns/{data['id']}")
    assert r.status_code == 200
    assert r.get_json()["town"]["seed"] == 42
    r = client.get(f"/api/towns/{data['id']}/graph.dot")
    assert r.status_code == 200
    assert r.mimetype == "text/vnd.graphviz"
    assert r.get_data(as_text=True).startswith("graph town {")


def test_word_seed_and_random_seed(client):
    a = _create(client, seed="Rivermoot")
    b = _create(client, seed="Rivermoot")
    assert a["seed"] == b["seed"] and a["town"] == b["town"]
    c = _create(client, seed=None)
    assert isinstance(c["seed"], int) and c["seed"] > 0


def test_unknown_town_is_404(client):
    assert client.get("/api/towns/999999").status_code == 404
    assert client.get("/api/towns/999999/graph.dot").status_code == 404
    assert client.post("/api/towns/999999/reconcile", data="graph {}").status_code == 404


def test_invalid_config_is_400(client):
    r = client.post("/api/towns", json={"seed": 1, "config": {"townSize": 0}})
    assert r.status_code == 400
    body = r.get_json()
    assert body["error"] == "config_error"
    assert body["details"]["option"] == "townSize"


def test_layout_failure_is_422(client):
    cfg = {"townSize": 40, "mapWidth": 30, "mapHeight": 30, "minSpacing": 25, "maxPlacementAttempts": 50}
    r = client.post("/api/towns", json={"seed": 1, "config": cfg})
    assert r.status_code == 422
    assert r.get_json()["error"] == "layout_failure"


def test_reconcile_noop_keeps_revision(client):
    data = _create(client, seed=7)
    dot = client.get(f"/api/towns/{data['id']}/graph.dot").get_data(as_text=True)
    r = client.post(f"/api/towns/{data['id']}/reconcile", data=dot, content_type="text/vnd.graphviz")
    assert r.status_code == 200
    body = r.get_json()
    assert body["changed"] is False and body["revision"] == 1


def test_reconcile_adds_node_and_bumps_revision(client):
    data = _create(client, seed=8)
    tid = data["id"]
    root = data["town"]["graph"]["root"]
    dot = client.get(f"/api/towns/{tid}/graph.dot").get_data(as_text=True)
    edited = dot.rstrip().rstrip("}") + f'    "well" [id="well", type="landmark"];\n    "{root}" -- "well";\n}}\n'
    r = client.post(f"/api/towns/{tid}/reconcile", json={"dot": edited})
    assert r.status_code == 200, r.get_data(as_text=True)
    body = r.get_json()
    assert body["changed"] is True and body["revision"] == 2
    assert body["diff"]["nodesAdded"] == ["well"]
    assert body["metrics"]["buildings_rebuilt"] == 1  # only the root's interior
    town = client.get(f"/api/towns/{tid}").get_json()
    assert town["town"]["state"] == "reconciled" and town["town"]["revision"] == 2
    assert "well" in {n["id"] for n in town["graph"]["nodes"]}


@pytest.mark.parametrize("edit, status, code", [
    (lambda dot, root: dot.rstrip().rstrip("}") + '    "dup" [id="n00"];\n}\n', 400, "import_parse_error"),
    (lambda dot, root: "graph { oops", 400, "import_parse_error"),
    (lambda dot, root: dot.rstrip().rstrip("}") + '    "island" [id="island"];\n}\n', 409, "import_consistency_error"),
])
def test_rejected_reconcile_leaves_snapshot(client, edit, status, code):
    data = _create(client, seed=9)
    tid = data["id"]
    before = client.get(f"/api/towns/{tid}").get_data(as_text=True)
    dot = client.get(f"/api/towns/{tid}/graph.dot").get_data(as_text=True)
    r = client.post(f"/api/towns/{tid}/reconcile", data=edit(dot, data["town"]["graph"]["root"]),
                    content_type="text/plain")
    assert r.status_code == status
    assert r.get_json()["error"] == code
    assert client.get(f"/api/towns/{tid}").get_data(as_text=True) == before


def test_empty_reconcile_body_is_400(client):
    data = _create(client, seed=10)
    r = client.post(f"/api/towns/{data['id']}/reconcile", json={})
    assert r.status_code == 400


@pytest.mark.db_isolation
def test_snapshot_row_fields(test_app, client):
    data = _create(client, seed=11)
    with test_app.app_context():
        snap = db.session.get(TownSnapshot, data["id"])
        assert snap.seed == 11 and snap.revision == 1 and snap.state == "generated"
        assert snap.config_version == data["town"]["town"]["configVersion"]
        assert snap.to_town().seed == 11
        assert TownSnapshot.query.count() == 1
