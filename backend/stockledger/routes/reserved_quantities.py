# backend/stockledger/routes/reserved_quantities.py
"""
Reserved quantity routes (soft holds, no physical stock movement).

PUT sets absolute reserved quantities; it never writes a stock movement.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import reserved_quantity_service


reserved_quantities_bp = Blueprint("reserved_quantities", __name__, url_prefix="/api/reserved-quantities")


@reserved_quantities_bp.get("")
def get_reserved_quantities_route():
    try:
        include_all = request.args.get("include_all", "").strip().lower() in ("1", "true", "yes")
        rows = reserved_quantity_service.get_reserved_quantities(
            product_id=request.args.get("product_id"),
            location_id=request.args.get("location_id"),
            include_all=include_all,
        )
        return jsonify({"reserved_quantities": rows}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load reserved quantities")
        return jsonify({"error": "Internal server error"}), 500


@reserved_quantities_bp.put("")
def set_reserved_quantities_route():
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        results = reserved_quantity_service.set_reserved_quantities(data.get("reserved_quantities"))
        return jsonify({"reserved_quantities": results}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set reserved quantities")
        return jsonify({"error": "Internal server error"}), 500
