# Overview: Small request helpers shared by the API blueprints.

from flask import jsonify, request

from ..errors import ValidationError


def internal_error():
    return jsonify({"success": False, "error": "Internal server error"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def int_arg(name: str, default: int | None = None) -> int | None:
    """Integer query parameter; malformed values are a 400, not a silent default."""
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def bool_arg(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")
