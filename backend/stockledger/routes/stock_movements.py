# Overview: Flask API routes for the stock movement ledger.

# backend/stockledger/routes/stock_movements.py
"""
Stock movement routes.

POST creates one direct movement (OPENING_STOCK, ADJUSTMENT, TRANSFER,
ORDER_PURCHASE). POS_SALE movements are only written by the sale flow.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_actor
from ..errors import LedgerError, ValidationError
from ..services import stock_movement_service


stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")

MOVEMENT_FIELDS = ("product_id", "location_id", "quantity", "movement_type", "reference_type", "reference_id")


@stock_movements_bp.get("")
def list_movements_route():
    """
    List movements, newest first.

    Query params: product_id, location_id, movement_type, reference_type,
    page, limit.
    """
    try:
        result = stock_movement_service.list_movements(
            product_id=request.args.get("product_id"),
            location_id=request.args.get("location_id"),
            movement_type=request.args.get("movement_type"),
            reference_type=request.args.get("reference_type"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify({
            "stock_movements": [m.to_dict() for m in result["items"]],
            "pagination": result["pagination"],
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_movements_bp.get("/<int:movement_id>")
def get_movement_route(movement_id: int):
    try:
        movement = stock_movement_service.get_movement(movement_id)
        return jsonify({"stock_movement": movement.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load stock movement")
        return jsonify({"error": "Internal server error"}), 500


@stock_movements_bp.post("")
@with_actor
def create_movement_route():
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        unknown = sorted(set(data) - set(MOVEMENT_FIELDS))
        if unknown:
            raise ValidationError(f"Field not allowed: {unknown[0]}")

        movement = stock_movement_service.create_movement(
            **{field: data.get(field) for field in MOVEMENT_FIELDS},
            created_by=g.user_id,
        )
        return jsonify({"stock_movement": movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create stock movement")
        return jsonify({"error": "Internal server error"}), 500
