# Overview: Flask API routes for POS sales; parses input and returns JSON responses.

# backend/stockledger/routes/pos_sales.py
"""POS sale API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_actor
from ..errors import LedgerError
from ..services import pos_sale_service


pos_sales_bp = Blueprint("pos_sales", __name__, url_prefix="/api/pos-sales")

LIST_FILTERS = (
    "company_id", "location_id", "terminal_id", "client_id", "cashier_id",
    "payment_status", "status", "from_date", "to_date", "search", "page", "limit",
)


@pos_sales_bp.get("")
def list_sales_route():
    try:
        result = pos_sale_service.list_sales(**{key: request.args.get(key) for key in LIST_FILTERS})
        return jsonify({
            "pos_sales": [sale.to_dict(include_items=False) for sale in result["items"]],
            "pagination": result["pagination"],
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list POS sales")
        return jsonify({"error": "Internal server error"}), 500


@pos_sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = pos_sale_service.get_sale(sale_id)
        return jsonify({"pos_sale": sale.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load POS sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_sales_bp.post("")
@with_actor
def create_sale_route():
    """
    Create a sale with its items.

    COMPLETED + PAID sales decrement stock and write one POS_SALE movement
    per item in the same transaction. Insufficient stock on any item
    rejects the whole sale (400).
    """
    try:
        data = request.get_json(silent=True)
        sale = pos_sale_service.create_sale(data, user_id=g.user_id)
        return jsonify({"pos_sale": sale.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create POS sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_sales_bp.put("/<int:sale_id>")
@with_actor
def update_sale_route(sale_id: int):
    """Header fields and, when "items" is sent, a full item replacement. Stock is untouched."""
    try:
        data = request.get_json(silent=True)
        sale = pos_sale_service.update_sale(sale_id, data, user_id=g.user_id)
        return jsonify({"pos_sale": sale.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update POS sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_sales_bp.post("/<int:sale_id>/cancel")
@with_actor
def cancel_sale_route(sale_id: int):
    try:
        sale = pos_sale_service.cancel_sale(sale_id, user_id=g.user_id)
        return jsonify({"pos_sale": sale.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel POS sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    try:
        pos_sale_service.delete_sale(sale_id)
        return jsonify({"deleted": True, "sale_id": sale_id}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete POS sale")
        return jsonify({"error": "Internal server error"}), 500
