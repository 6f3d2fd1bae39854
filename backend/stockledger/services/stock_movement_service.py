# Overview: Public entry point for direct single-item stock movements and ledger reads.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import StockMovement
from ..models.inventory import (
    ADJUSTMENT,
    LEGACY_REFERENCE_ALIASES,
    MOVEMENT_IN,
    MOVEMENT_TYPES,
    OPENING_STOCK,
    ORDER_PURCHASE,
    REFERENCE_TYPES,
    TRANSFER,
    normalize_reference_type,
)
from ..validation import optional_int, parse_quantity, require_choice, require_int
from .concurrency import begin_write_transaction
from .inventory_service import apply_movement, ensure_product_at_location
from .pagination import paginate


# Reference types a user may post directly; POS_SALE / POS_RETURN only come from the sale flow
DIRECT_REFERENCE_TYPES = (OPENING_STOCK, ADJUSTMENT, TRANSFER, ORDER_PURCHASE)
IN_ONLY_REFERENCE_TYPES = (OPENING_STOCK, ORDER_PURCHASE)


def create_movement(
    *,
    product_id,
    location_id,
    quantity,
    movement_type,
    reference_type,
    reference_id=None,
    created_by=None,
) -> StockMovement:
    """
    Validate and apply one direct stock movement in its own transaction.

    Validation happens before any write. Mutator failures (InsufficientStock,
    NoInventoryRecord, InvalidReferenceType) roll the transaction back and
    propagate unchanged.
    """
    product_id = require_int(product_id, "product_id")
    location_id = require_int(location_id, "location_id")
    qty = parse_quantity(quantity)
    movement_type = require_choice(movement_type, "movement_type", MOVEMENT_TYPES)

    if not reference_type:
        raise ValidationError(
            f"reference_type is required ({', '.join(DIRECT_REFERENCE_TYPES)})"
        )
    normalized = normalize_reference_type(reference_type)
    if normalized not in DIRECT_REFERENCE_TYPES:
        raise ValidationError(
            f"Invalid reference_type. Allowed values: {', '.join(DIRECT_REFERENCE_TYPES)}",
            details={"reference_type": reference_type},
        )
    if normalized in IN_ONLY_REFERENCE_TYPES and movement_type != MOVEMENT_IN:
        raise ValidationError(f"{normalized} can only have movement_type IN")

    reference_id = optional_int(reference_id, "reference_id")
    created_by = optional_int(created_by, "created_by")

    try:
        begin_write_transaction()
        product, _ = ensure_product_at_location(product_id, location_id)
        record, movement = apply_movement(
            product_id=product_id,
            location_id=location_id,
            quantity=qty,
            movement_type=movement_type,
            reference_type=normalized,
            reference_id=reference_id,
            created_by=created_by,
            product_name=product.name,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Stock movement %s: %s %s %s product_id=%s location_id=%s -> quantity %s",
        movement.id, normalized, movement_type, qty, product_id, location_id, record.quantity,
    )
    return movement


def get_movement(movement_id) -> StockMovement:
    movement_id = require_int(movement_id, "movement_id")
    movement = db.session.get(StockMovement, movement_id)
    if movement is None:
        raise NotFound("Stock movement not found", details={"movement_id": movement_id})
    return movement


def list_movements(
    *,
    product_id=None,
    location_id=None,
    movement_type=None,
    reference_type=None,
    page=None,
    limit=None,
) -> dict:
    """Newest-first ledger listing with optional filters."""
    query = db.session.query(StockMovement)

    product_id = optional_int(product_id, "product_id")
    location_id = optional_int(location_id, "location_id")
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if location_id is not None:
        query = query.filter(StockMovement.location_id == location_id)
    if movement_type:
        query = query.filter(
            StockMovement.movement_type == require_choice(movement_type, "movement_type", MOVEMENT_TYPES)
        )
    if reference_type:
        normalized = normalize_reference_type(reference_type)
        if normalized not in REFERENCE_TYPES:
            raise ValidationError(f"Invalid reference_type. Allowed values: {', '.join(REFERENCE_TYPES)}")
        # Old rows may still carry a legacy alias of the same type
        aliases = [alias for alias, target in LEGACY_REFERENCE_ALIASES.items() if target == normalized]
        query = query.filter(StockMovement.reference_type.in_([normalized, *aliases]))

    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    return paginate(query, page=page, limit=limit)
