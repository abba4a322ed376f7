from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
def health():
    """Readiness: is the database reachable right now."""
    return jsonify(current_app.maintenance.health())
