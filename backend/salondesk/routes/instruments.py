# Overview: Flask API route listing payment instruments and their fee schedules.

from flask import Blueprint, jsonify, request

from ..route_helpers import internal_error_response
from ..services.catalog_service import list_instruments


instruments_bp = Blueprint("instruments", __name__, url_prefix="/api/payment-instruments")


@instruments_bp.get("")
def list_instruments_route():
    """
    Query params:
    - include_inactive: Include disabled instruments (default: false)
    """
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        instruments = list_instruments(include_inactive=include_inactive)
        return jsonify({"instruments": [i.to_dict() for i in instruments]}), 200
    except Exception:
        return internal_error_response("Failed to list payment instruments")
