"""
project: towngen
module: town_api.py
License: MIT

Town generation API routes.

Generates towns, serves their JSON and DOT exports and accepts edited DOT
graphs for reconciliation. A failed reconcile never touches the stored
snapshot.
"""
import json
import logging

from flask import Blueprint, Response, current_app, jsonify, request

from towngen import db
from towngen.models import TownSnapshot
from towngen.settings import load_config
from towngen.town import (
    ConfigError,
    ImportConsistencyError,
    ImportParseError,
    TownGenError,
    generate_town,
    reconcile,
)

bp_town = Blueprint('town_api', __name__, url_prefix='/api/towns')

logger = logging.getLogger(__name__)

DOT_MIMETYPE = "text/vnd.graphviz"


def status_for(err: TownGenError) -> int:
    if isinstance(err, (ImportParseError, ConfigError)):
        return 400
    if isinstance(err, ImportConsistencyError):
        return 409
    return 422


@bp_town.errorhandler(TownGenError)
def _town_error(err):
    logger.warning("town request failed: %s %s", err.code, err)
    return jsonify(err.to_dict()), status_for(err)


def _snapshot_or_404(town_id):
    snap = db.session.get(TownSnapshot, town_id)
    if snap is None:
        return None, (jsonify({"error": "not_found", "message": f"town {town_id} does not exist"}), 404)
    return snap, None


@bp_town.route('', methods=['POST'])
def create_town():
    """Generate and store a new town.

    Body JSON (all optional):
      { "seed": <int|str|null>, "config": { camelCase options } }

    Response 201: { "id", "seed", "revision", "town": <JSON export> }
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ConfigError("request body must be a JSON object")
    overrides = data.get('config') or {}
    if not isinstance(overrides, dict):
        raise ConfigError("config must be a JSON object", option="config")
    config = load_config(overrides)
    town = generate_town(config, seed=data.get('seed'), workers=current_app.config.get('TOWNGEN_WORKERS'))
    snap = TownSnapshot.from_town(town)
    db.session.add(snap)
    db.session.commit()
    logger.info("town %s generated (seed=%s, %d nodes)", snap.id, town.seed, len(town.graph.nodes))
    return jsonify({
        "id": snap.id,
        "seed": snap.seed,
        "revision": snap.revision,
        "town": json.loads(snap.json_export),
    }), 201


@bp_town.route('/<int:town_id>', methods=['GET'])
def get_town(town_id):
    snap, missing = _snapshot_or_404(town_id)
    if missing:
        return missing
    # stored text already has stable key order; serve it as is
    return Response(snap.json_export, mimetype="application/json")


@bp_town.route('/<int:town_id>/graph.dot', methods=['GET'])
def get_town_dot(town_id):
    snap, missing = _snapshot_or_404(town_id)
    if missing:
        return missing
    return Response(snap.dot_export, mimetype=DOT_MIMETYPE)


@bp_town.route('/<int:town_id>/reconcile', methods=['POST'])
def reconcile_town(town_id):
    """Apply an edited DOT graph.

    Body: raw DOT text, or JSON { "dot": "<DOT text>" }.
    Response 200: { "id", "revision", "changed", "diff", "metrics" }
    """
    snap, missing = _snapshot_or_404(town_id)
    if missing:
        return missing
    if request.is_json:
        payload = request.get_json(silent=True) or {}
        dot_text = payload.get('dot') if isinstance(payload, dict) else None
    else:
        dot_text = request.get_data(as_text=True)
    if not dot_text or not isinstance(dot_text, str):
        raise ImportParseError("request body must contain DOT text")

    result = reconcile(snap.to_town(), dot_text, workers=current_app.config.get('TOWNGEN_WORKERS'))
    if result.changed:
        snap.apply(result.town)
        db.session.commit()
        logger.info("town %s reconciled to revision %s", snap.id, snap.revision)
    metrics = {k: result.town.metrics.get(k, 0) for k in ('buildings_rebuilt', 'buildings_preserved')}
    return jsonify({
        "id": snap.id,
        "revision": snap.revision,
        "changed": result.changed,
        "diff": result.diff.summary(),
        "metrics": metrics,
    })
