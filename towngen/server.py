"""
project: towngen
module: server.py
License: MIT

Server bootstrap.

Creates the app, makes sure the tables exist, configures logging to the
console and a rotating file in instance/, then serves the town API.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from towngen import create_app, db


def start_server(host="0.0.0.0", port=5000, debug: bool = False, db_uri=None):  # pragma: no cover (runtime only)
    """Start the HTTP server.

    When debug=True, Flask's debugger and reloader provide verbose tracebacks.
    """
    app = create_app({"SQLALCHEMY_DATABASE_URI": db_uri} if db_uri else None)
    with app.app_context():
        db.create_all()
    _configure_logging(app.instance_path)
    try:
        print(f"[INFO] Starting town server on {host}:{port}")
        app.run(host=host, port=port, debug=debug)
    except KeyboardInterrupt:
        print("\n[INFO] Server stopped by user (Ctrl+C)")
        sys.exit(0)


def _configure_logging(log_dir, level=logging.INFO):
    """Configure logging to both console and a rotating file.

    The file path will be <log_dir>/towngen.log. Retains a few backups to avoid growth.
    """
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        logging.getLogger(__name__).warning("log dir %s unavailable; console logging only", log_dir)
    log_path = os.path.join(log_dir, "towngen.log")

    root = logging.getLogger()
    root.setLevel(level)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    # Avoid duplicate handlers if reconfigured
    for h in list(root.handlers):
        root.removeHandler(h)

    if os.path.isdir(log_dir):
        file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3)
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    # Console handler (for terminals/tasks that show output)
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    root.addHandler(console)
    return log_path
