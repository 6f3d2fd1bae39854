# Overview: Reserved-quantity writer (soft holds) and reader.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import InventoryRecord
from stockledger.time_utils import to_utc_z, utcnow
from ..validation import optional_int, parse_decimal, require_int
from .concurrency import begin_write_transaction
from .inventory_service import ensure_product_at_location, get_or_create_inventory_record


def _validate_entries(entries) -> list[dict]:
    if not isinstance(entries, list):
        raise ValidationError("reserved_quantities array is required")

    cleaned = []
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"reserved_quantities[{index}] must be an object")
        if any(entry.get(key) in (None, "") for key in ("product_id", "location_id", "quantity")):
            raise ValidationError("Each item must have product_id, location_id, and quantity")
        product_id = require_int(entry["product_id"], "product_id")
        location_id = require_int(entry["location_id"], "location_id")
        quantity = parse_decimal(entry["quantity"], "quantity")
        if quantity < 0:
            raise ValidationError(
                f"Reserved quantity cannot be negative for product_id: {product_id}, location_id: {location_id}",
                details={"product_id": product_id, "location_id": location_id},
            )
        cleaned.append({"product_id": product_id, "location_id": location_id, "quantity": quantity})
    return cleaned


def set_reserved_quantities(entries, *, commit: bool = True) -> list[dict]:
    """
    Set reserved_quantity to the given absolute value for each (product, location).

    Every entry is validated before the database is touched. Missing
    InventoryRecords are created with quantity 0. Reservations above on-hand
    are accepted; readers report the negative available quantity.

    With commit=False the changes are only flushed and the caller owns the
    commit. Any failure still rolls the session back.
    """
    cleaned = _validate_entries(entries)

    results = []
    try:
        begin_write_transaction()
        for entry in cleaned:
            ensure_product_at_location(entry["product_id"], entry["location_id"])
            record, created = get_or_create_inventory_record(entry["product_id"], entry["location_id"])
            record.reserved_quantity = entry["quantity"]
            record.last_updated = utcnow()
            results.append({
                "product_id": entry["product_id"],
                "location_id": entry["location_id"],
                "reserved_quantity": str(entry["quantity"]),
                "created": created,
            })
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Reserved quantities set for %d inventory records", len(results))
    return results


def get_reserved_quantities(*, product_id=None, location_id=None, include_all: bool = False) -> list[dict]:
    """
    Inventory records with their reservations.

    Only records with reserved_quantity > 0 unless include_all is set.
    available_quantity is quantity - reserved_quantity and may be negative.
    """
    query = db.session.query(InventoryRecord)

    product_id = optional_int(product_id, "product_id")
    location_id = optional_int(location_id, "location_id")
    if product_id is not None:
        query = query.filter(InventoryRecord.product_id == product_id)
    if location_id is not None:
        query = query.filter(InventoryRecord.location_id == location_id)
    if not include_all:
        query = query.filter(InventoryRecord.reserved_quantity > 0)

    rows = []
    for record in query.order_by(InventoryRecord.product_id.asc(), InventoryRecord.location_id.asc()).all():
        quantity = Decimal(str(record.quantity or 0))
        reserved = Decimal(str(record.reserved_quantity or 0))
        rows.append({
            "inventory_id": record.id,
            "product_id": record.product_id,
            "location_id": record.location_id,
            "quantity": str(quantity),
            "reserved_quantity": str(reserved),
            "available_quantity": str(quantity - reserved),
            "product": {"name": record.product.name, "sku": record.product.sku} if record.product else None,
            "location": {"name": record.location.name} if record.location else None,
            "last_updated": to_utc_z(record.last_updated),
        })
    return rows
