from flask import Blueprint, current_app, jsonify, request

from catalog.errors import ValidationError

bp = Blueprint("instruments", __name__)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be JSON")
    return data


@bp.route("", methods=["GET"])
def list_instruments():
    """List all instruments, ordered by id."""
    return jsonify(current_app.instruments.list_all())


@bp.route("", methods=["POST"])
def upsert_instrument():
    """Create or replace an instrument."""
    data = _json_body()
    if not isinstance(data, dict) or data.get("id") in (None, ""):
        raise ValidationError("ID is required")
    return jsonify(current_app.instruments.upsert(data))


@bp.route("/seed", methods=["POST"])
def seed_instruments():
    """Bulk insert instruments if none are stored yet."""
    data = _json_body()
    if isinstance(data, dict):
        data = data.get("instruments")
    if not isinstance(data, list):
        raise ValidationError("Seed payload must be a list of instruments")

    result = current_app.instruments.seed_if_empty(data)
    return jsonify({"count": result.count, "inserted": result.inserted})


@bp.route("/<int:instrument_id>", methods=["DELETE"])
def delete_instrument(instrument_id: int):
    """Delete an instrument. Deleting an unknown id is not an error."""
    deleted = current_app.instruments.delete_one(instrument_id)
    return jsonify({"success": True, "deleted": deleted})


@bp.route("", methods=["DELETE"])
@bp.route("/purge", methods=["DELETE"])
def purge():
    """Delete every instrument and every stored file."""
    result = current_app.maintenance.purge()
    return jsonify({"success": True, **result})
