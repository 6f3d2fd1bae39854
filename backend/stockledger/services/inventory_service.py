# Overview: Inventory mutator; the only writer of on-hand quantities and stock movements.

# backend/stockledger/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    InsufficientStock,
    InvalidReferenceType,
    NoInventoryRecord,
    NotFound,
    ValidationError,
)
from ..models import InventoryRecord, Location, Product, StockMovement
from ..models.inventory import (
    ADJUSTMENT,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
    OPENING_STOCK,
    ORDER_PURCHASE,
    POS_RETURN,
    POS_SALE,
    TRANSFER,
    normalize_reference_type,
)
from stockledger.time_utils import utcnow, to_utc_z
from ..validation import parse_quantity, require_int
from .concurrency import lock_for_update
"""
Inventory Ledger Invariants (authoritative)

Storage:
- InventoryRecord holds the current quantity/reserved_quantity snapshot per
  (product_id, location_id). It is created lazily at 0/0 and never deleted.
- StockMovement is the append-only ledger. One row per physical change.

Business invariants:
- quantity >= 0 at all times. Any OUT whose quantity exceeds the current
  quantity fails with InsufficientStock and changes nothing.
- OUT against a pair with no InventoryRecord fails with NoInventoryRecord.
- Replaying the ledger for a pair in creation order (+IN, -OUT) from zero
  equals InventoryRecord.quantity.

Transactions:
- apply_movement() never commits. The snapshot update and the ledger insert
  are flushed into the caller's transaction, so both persist or neither does.
- The InventoryRecord row is read with a write lock before the check, for
  every caller (direct movements and POS sales alike).
"""


# (reference_type, movement_type) -> sign applied to quantity
MOVEMENT_EFFECTS = {
    (OPENING_STOCK, MOVEMENT_IN): 1,
    (ORDER_PURCHASE, MOVEMENT_IN): 1,
    (POS_RETURN, MOVEMENT_IN): 1,
    (POS_SALE, MOVEMENT_OUT): -1,
    (ADJUSTMENT, MOVEMENT_IN): 1,
    (ADJUSTMENT, MOVEMENT_OUT): -1,
    (TRANSFER, MOVEMENT_IN): 1,
    (TRANSFER, MOVEMENT_OUT): -1,
}


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def ensure_product_at_location(product_id: int, location_id: int) -> tuple[Product, Location]:
    """Both collaborators must exist and belong to the same company."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFound("Location not found", details={"location_id": location_id})
    if product.company_id != location.company_id:
        raise ValidationError(
            "Product and location belong to different companies",
            details={"product_id": product_id, "location_id": location_id},
        )
    return product, location


def _record_query(product_id: int, location_id: int):
    return db.session.query(InventoryRecord).filter_by(
        product_id=product_id,
        location_id=location_id,
    )


def get_inventory_record(product_id: int, location_id: int, *, lock: bool = False) -> InventoryRecord | None:
    query = _record_query(product_id, location_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_or_create_inventory_record(product_id: int, location_id: int) -> tuple[InventoryRecord, bool]:
    """
    Locked find-or-create. New records start at quantity 0, reserved 0.

    Returns (record, created). Flushes but never commits. If a concurrent
    writer inserts the same pair first, its row is returned instead.
    """
    record = get_inventory_record(product_id, location_id, lock=True)
    if record is not None:
        return record, False

    record = InventoryRecord(
        product_id=product_id,
        location_id=location_id,
        quantity=Decimal("0"),
        reserved_quantity=Decimal("0"),
        last_updated=utcnow(),
    )
    try:
        with db.session.begin_nested():
            db.session.add(record)
    except IntegrityError:
        # Lost the insert race on uq_inventory_product_location
        existing = get_inventory_record(product_id, location_id, lock=True)
        if existing is None:
            raise
        return existing, False
    return record, True


def resolve_effect(reference_type: str | None, movement_type: str | None) -> int:
    """Return +1/-1 for a supported combination, else raise InvalidReferenceType."""
    normalized = normalize_reference_type(reference_type)
    key = (normalized, (movement_type or "").strip().upper())
    if key not in MOVEMENT_EFFECTS:
        raise InvalidReferenceType(reference_type=reference_type, movement_type=movement_type)
    return MOVEMENT_EFFECTS[key]


def apply_movement(
    *,
    product_id: int,
    location_id: int,
    quantity,
    movement_type: str,
    reference_type: str,
    reference_id: int | None = None,
    created_by: int | None = None,
    product_name: str | None = None,
) -> tuple[InventoryRecord, StockMovement]:
    """
    Apply one stock movement to the snapshot and append it to the ledger.

    Runs inside the caller's transaction (flush only, no commit). The caller
    is responsible for commit/rollback; on any raised error nothing from this
    call may be committed.
    """
    qty = parse_quantity(quantity)
    movement_type = (movement_type or "").strip().upper()
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidReferenceType(reference_type=reference_type, movement_type=movement_type or None)
    normalized = normalize_reference_type(reference_type)
    sign = resolve_effect(normalized, movement_type)

    if sign < 0:
        record = get_inventory_record(product_id, location_id, lock=True)
        if record is None:
            raise NoInventoryRecord(product_id=product_id, location_id=location_id)
        current = _as_decimal(record.quantity)
        if qty > current:
            current_app.logger.warning(
                "Rejected %s OUT of %s for product_id=%s location_id=%s (available %s)",
                normalized, qty, product_id, location_id, current,
            )
            raise InsufficientStock(
                available=current,
                requested=qty,
                product_id=product_id,
                product_name=product_name,
            )
        record.quantity = current - qty
    else:
        record, _ = get_or_create_inventory_record(product_id, location_id)
        record.quantity = _as_decimal(record.quantity) + qty

    record.last_updated = utcnow()

    movement = StockMovement(
        product_id=product_id,
        location_id=location_id,
        quantity=qty,
        movement_type=movement_type,
        reference_type=normalized,
        reference_id=reference_id,
        created_by=created_by,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return record, movement


def get_inventory_quantity(product_id: int, location_id: int) -> Decimal:
    """Current on-hand quantity; 0 for a pair that was never stocked."""
    product_id = require_int(product_id, "product_id")
    location_id = require_int(location_id, "location_id")
    record = get_inventory_record(product_id, location_id)
    return _as_decimal(record.quantity) if record else Decimal("0")


def get_inventory_summary(product_id: int, location_id: int) -> dict:
    product_id = require_int(product_id, "product_id")
    location_id = require_int(location_id, "location_id")
    product, location = ensure_product_at_location(product_id, location_id)

    record = get_inventory_record(product_id, location_id)
    quantity = _as_decimal(record.quantity) if record else Decimal("0")
    reserved = _as_decimal(record.reserved_quantity) if record else Decimal("0")

    return {
        "product_id": product.id,
        "location_id": location.id,
        "sku": product.sku,
        "quantity": str(quantity),
        "reserved_quantity": str(reserved),
        # Not clamped: reservations may exceed on-hand
        "available_quantity": str(quantity - reserved),
        "last_updated": to_utc_z(record.last_updated) if record else None,
        "tracked": record is not None,
    }


def replay_ledger_quantity(product_id: int, location_id: int) -> tuple[Decimal, int]:
    """Sum signed movements for a pair in creation order. Returns (quantity, count)."""
    movements = (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id, location_id=location_id)
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .all()
    )
    total = Decimal("0")
    for movement in movements:
        total += movement.signed_quantity
    return total, len(movements)


def reconcile_inventory(product_id: int, location_id: int) -> dict:
    product_id = require_int(product_id, "product_id")
    location_id = require_int(location_id, "location_id")
    ensure_product_at_location(product_id, location_id)

    ledger_quantity, count = replay_ledger_quantity(product_id, location_id)
    record = get_inventory_record(product_id, location_id)
    recorded = _as_decimal(record.quantity) if record else Decimal("0")

    return {
        "product_id": product_id,
        "location_id": location_id,
        "recorded_quantity": str(recorded),
        "ledger_quantity": str(ledger_quantity),
        "movement_count": count,
        "in_sync": recorded == ledger_quantity,
    }


def find_ledger_drift(company_id: int | None = None) -> list[dict]:
    """Every tracked pair whose snapshot disagrees with its ledger replay."""
    query = db.session.query(InventoryRecord)
    if company_id is not None:
        query = query.join(Location, Location.id == InventoryRecord.location_id).filter(
            Location.company_id == company_id
        )

    drift = []
    for record in query.order_by(InventoryRecord.product_id, InventoryRecord.location_id).all():
        ledger_quantity, count = replay_ledger_quantity(record.product_id, record.location_id)
        recorded = _as_decimal(record.quantity)
        if recorded != ledger_quantity:
            drift.append({
                "product_id": record.product_id,
                "location_id": record.location_id,
                "recorded_quantity": str(recorded),
                "ledger_quantity": str(ledger_quantity),
                "movement_count": count,
            })
    return drift
