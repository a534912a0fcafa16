import os
import sys

import pytest

# Ensure repository root importable early
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from towngen import create_app, db  # noqa: E402
from towngen.town import TownConfig, generate_town  # noqa: E402


@pytest.fixture(scope="session")
def test_app(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("db") / "towngen_test.db"
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path.as_posix()}"})
    return app


@pytest.fixture()
def client(test_app):
    return test_app.test_client()


@pytest.fixture(autouse=True)
def _reset_tables(request, test_app):
    """Recreate tables only for tests marked with @pytest.mark.db_isolation."""
    if "db_isolation" in request.keywords:
        with test_app.app_context():
            db.drop_all()
            db.create_all()
    yield


def pytest_configure(config):  # register custom marker
    config.addinivalue_line("markers", "db_isolation: force per-test DB rebuild for this test")


@pytest.fixture()
def small_config():
    """Six sites on a small map: quick to build, still has loops and several rooms."""
    return TownConfig(town_size=6, map_width=100, map_height=100, min_spacing=12.0, extra_edge_ratio=0.4)


@pytest.fixture()
def small_town(small_config):
    return generate_town(small_config, seed=1234)
