import importlib
import json
import sys

import pytest

# run.py is imported as a module; start_server is patched so no networking starts.


@pytest.fixture()
def run_module():
    if 'run' in sys.modules:
        del sys.modules['run']
    return importlib.import_module('run')


def test_version_flag_outputs_version(run_module, capsys):
    with pytest.raises(SystemExit) as exc:
        run_module.parse_args(['--version'])
    assert exc.value.code == 0
    assert run_module.__version__ in capsys.readouterr().out


def test_default_command_is_serve(run_module):
    assert run_module.parse_args([]).command == 'serve'


def test_serve_invokes_start_server(monkeypatch, run_module):
    calls = {}

    def fake_start_server(host, port, debug, db_uri):
        calls.update(host=host, port=port, debug=debug, db_uri=db_uri)

    monkeypatch.setenv('PORT', '5555')
    monkeypatch.setenv('HOST', '127.0.0.1')
    import towngen.server as server_mod
    monkeypatch.setattr(server_mod, 'start_server', fake_start_server)
    assert run_module.main(['serve', '--debug']) == 0
    assert calls == {'host': '127.0.0.1', 'port': 5555, 'debug': True, 'db_uri': None}


def test_generate_then_import(run_module, tmp_path, monkeypatch):
    monkeypatch.setenv('TOWNGEN_TOWN_SIZE', '5')
    out = tmp_path / "out"
    assert run_module.main(['generate', '--seed', '42', '--out', str(out)]) == 0
    world = json.loads((out / "world.json").read_text())
    assert world["town"]["seed"] == 42
    assert len(world["graph"]["nodes"]) == 5

    dot = (out / "world.dot").read_text()
    root = world["graph"]["root"]
    edited = tmp_path / "edited.dot"
    edited.write_text(dot.rstrip().rstrip("}") + f'    "mill" [id="mill", type="shop"];\n    "{root}" -- "mill";\n}}\n')
    rc = run_module.main(['import', str(edited), '--world', str(out / "world.json"), '--out', str(out)])
    assert rc == 0
    imported = json.loads((out / "imported_world.json").read_text())
    assert imported["town"]["revision"] == 2
    assert "mill" in {b["nodeId"] for b in imported["buildings"]}
    assert (out / "imported_world.dot").exists()


def test_import_errors_return_nonzero(run_module, tmp_path, capsys):
    assert run_module.main(['import', str(tmp_path / "graph.txt"), '--world', 'x.json']) == 2
    out = tmp_path / "out"
    run_module.main(['generate', '--seed', '3', '--size', '4', '--out', str(out)])
    bad = tmp_path / "bad.dot"
    bad.write_text("graph { a -- }")
    rc = run_module.main(['import', str(bad), '--world', str(out / "world.json"), '--out', str(out)])
    assert rc == 1
    assert "import_parse_error" in capsys.readouterr().err
    assert not (out / "imported_world.json").exists()
    assert run_module.main(['import', str(tmp_path / "missing.dot"), '--world', str(out / "world.json")]) == 1
