"""
project: towngen
module: __init__.py
License: MIT

Flask application factory and core extensions setup.

The generation core lives in ``towngen.town`` and never touches files or the
environment; this module wires it to Flask and SQLAlchemy for the HTTP
service. Configuration is sourced from environment variables (optionally via a
``.env`` file) with defaults suited to local development. A local
``instance/`` directory holds the SQLite database and the server log.
"""

import logging
import os
import uuid
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

# Load .env if present so `TOWNGEN_DATABASE_URL`, `TOWNGEN_TOWN_SIZE`, etc.
# can be supplied without exporting shell variables during development.
load_dotenv()

__version__ = "0.4.0"

db = SQLAlchemy(session_options={"expire_on_commit": False})


def _database_url(app: Flask) -> str:
    database_url = os.getenv("TOWNGEN_DATABASE_URL")
    if database_url:
        return database_url
    # Use POSIX path for SQLAlchemy URI compatibility across OS
    return f"sqlite:///{(Path(app.instance_path) / 'towngen.db').as_posix()}"


def create_app(overrides=None):
    """Build the Flask app, bind the database and register the town API.

    ``overrides`` is applied on top of the environment derived config, which is
    how tests point the app at a throwaway database.
    """
    app = Flask(__name__, instance_relative_config=True)
    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        # read-only checkouts still work with an explicit TOWNGEN_DATABASE_URL
        logging.getLogger(__name__).warning("could not create instance dir %s", app.instance_path)

    app.config.update(
        SECRET_KEY=os.getenv("TOWNGEN_SECRET_KEY", "dev-secret-change-me"),
        SQLALCHEMY_DATABASE_URI=_database_url(app),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        TOWNGEN_WORKERS=int(os.getenv("TOWNGEN_WORKERS", "1") or 1),
        # request bodies are DOT files; keep them bounded
        MAX_CONTENT_LENGTH=2 * 1024 * 1024,
    )
    if overrides:
        app.config.update(overrides)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "connect_args": {
                "timeout": 10,  # busy timeout (seconds) for sqlite
                "check_same_thread": False,
            }
        })

    db.init_app(app)

    from towngen.routes.town_api import bp_town

    app.register_blueprint(bp_town)

    @app.errorhandler(500)
    def internal_error(e):
        error_id = uuid.uuid4().hex[:8]
        logging.exception("Unhandled exception (id=%s)", error_id)
        return jsonify({"error": "internal_error", "message": "unexpected server error", "id": error_id}), 500

    with app.app_context():
        from towngen import models  # noqa: F401  (register tables)

        db.create_all()
    return app
