# backend/stockledger/routes/inventory.py
"""
Inventory read routes.

- Summary: on-hand, reserved and available quantity for one (product, location).
- Reconcile: replays the movement ledger and compares it with the snapshot.

available_quantity is not clamped and may be negative when reservations
exceed on-hand stock.
"""
from flask import Blueprint, current_app, jsonify

from ..errors import LedgerError
from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:product_id>/locations/<int:location_id>")
def get_inventory_route(product_id: int, location_id: int):
    try:
        summary = inventory_service.get_inventory_summary(product_id, location_id)
        return jsonify({"inventory": summary}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:product_id>/locations/<int:location_id>/reconcile")
def reconcile_inventory_route(product_id: int, location_id: int):
    """Read-only: never corrects drift, only reports it."""
    try:
        result = inventory_service.reconcile_inventory(product_id, location_id)
        return jsonify({"reconciliation": result}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reconcile inventory")
        return jsonify({"error": "Internal server error"}), 500
