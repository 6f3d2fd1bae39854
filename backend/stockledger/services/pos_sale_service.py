"""
POS Sale Service - atomic sale + inventory posting

WHY: A POS sale is the dominant inventory writer. The header, its lines, the
stock decrements and the POS_SALE ledger rows are one unit: either all of it
commits or none of it does.

Create sequence (one transaction):
1. Validate header and lines (no DB writes).
2. For COMPLETED sales, lock the InventoryRecord rows of every product in the
   cart at the sale's location and check stock for all of them before any
   decrement. First shortfall aborts the whole sale.
3. Allocate the invoice number from the per-company daily counter.
4. Insert header and lines.
5. For COMPLETED + PAID sales, post one POS_SALE/OUT movement per line
   through the inventory mutator.
6. Commit.

Edits, cancellation and deletion never touch inventory or the ledger.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from flask import current_app

from ..extensions import db
from ..errors import ConflictOnUpdate, InsufficientStock, NotFound, ValidationError
from ..models import InventoryRecord, Location, PosSale, PosSaleItem, Product
from ..models.inventory import MOVEMENT_OUT, POS_SALE
from ..models.sales import (
    PAYMENT_PAID,
    PAYMENT_STATUSES,
    SALE_CANCELLED,
    SALE_COMPLETED,
    SALE_STATUSES,
)
from ..validation import (
    optional_int,
    parse_datetime,
    parse_non_negative,
    parse_quantity,
    require_choice,
    require_int,
)
from .concurrency import begin_write_transaction, lock_for_update
from .inventory_service import apply_movement
from .invoice_service import next_invoice_number
from .pagination import paginate


CREATE_FIELDS = {
    "company_id", "location_id", "terminal_id", "client_id", "cashier_id",
    "payment_method_id", "sale_date", "subtotal", "discount", "tax",
    "total_amount", "payment_status", "status", "notes", "items",
}
UPDATE_FIELDS = {
    "location_id", "terminal_id", "client_id", "sale_date", "subtotal",
    "discount", "tax", "total_amount", "payment_method_id", "payment_status",
    "status", "notes", "items",
}
NULLABLE_FIELDS = {"terminal_id", "client_id", "notes"}

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _reject_unknown_fields(data: dict, allowed: set[str]) -> None:
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    for key in data:
        if key not in allowed:
            raise ValidationError(f"Field not allowed: {key}")


def _validate_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one sale item is required")

    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError("Product ID is required for all sale items")

        product_id = require_int(raw.get("product_id"), f"items[{index}].product_id")
        quantity = parse_quantity(raw.get("quantity"), f"items[{index}].quantity")
        if raw.get("unit_price") in (None, ""):
            raise ValidationError(f"items[{index}].unit_price must be 0 or greater")
        unit_price = parse_non_negative(raw.get("unit_price"), f"items[{index}].unit_price")
        discount = parse_non_negative(raw.get("discount"), f"items[{index}].discount", default=ZERO)
        tax = parse_non_negative(raw.get("tax"), f"items[{index}].tax", default=ZERO)

        line_total = (quantity * unit_price - discount + tax).quantize(CENT, rounding=ROUND_HALF_UP)
        if line_total < 0:
            raise ValidationError(f"items[{index}] discount exceeds the line amount")

        items.append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "discount": discount,
            "tax": tax,
            "line_total": line_total,
        })
    return items


def _validate_header_fields(data: dict) -> dict:
    """Coerce whichever header fields are present. Shared by create and update."""
    header: dict = {}
    for key, value in data.items():
        if key == "items":
            continue
        if value is None:
            if key not in NULLABLE_FIELDS:
                raise ValidationError(f"{key} cannot be null")
            header[key] = None
            continue

        if key in ("company_id", "location_id", "cashier_id", "payment_method_id"):
            header[key] = require_int(value, key)
        elif key in ("terminal_id", "client_id"):
            header[key] = optional_int(value, key)
        elif key in ("subtotal", "discount", "tax", "total_amount"):
            header[key] = parse_non_negative(value, key)
        elif key == "payment_status":
            header[key] = require_choice(value, key, PAYMENT_STATUSES)
        elif key == "status":
            header[key] = require_choice(value, key, SALE_STATUSES)
        elif key == "sale_date":
            header[key] = parse_datetime(value, key)
        elif key == "notes":
            header[key] = str(value).strip() or None
    return header


def _validate_create(data: dict) -> tuple[dict, list[dict]]:
    _reject_unknown_fields(data, CREATE_FIELDS)

    for key, label in (
        ("company_id", "Company ID"),
        ("location_id", "Location ID"),
        ("cashier_id", "Cashier ID"),
        ("payment_method_id", "Payment method ID"),
    ):
        if data.get(key) in (None, ""):
            raise ValidationError(f"{label} is required")

    header = _validate_header_fields(data)
    items = _validate_items(data.get("items"))

    header.setdefault("payment_status", PAYMENT_PAID)
    header.setdefault("status", SALE_COMPLETED)

    # Header totals default from the lines when the caller leaves them out
    lines_total = sum((item["line_total"] for item in items), ZERO)
    header.setdefault("subtotal", lines_total)
    header.setdefault("discount", ZERO)
    header.setdefault("tax", ZERO)
    if "total_amount" not in header:
        total = header["subtotal"] - header["discount"] + header["tax"]
        if total < 0:
            raise ValidationError("discount exceeds the sale subtotal")
        header["total_amount"] = total

    return header, items


def _ensure_location(company_id: int, location_id: int) -> Location:
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFound("Location not found", details={"location_id": location_id})
    if location.company_id != company_id:
        raise ValidationError(
            "Location does not belong to company",
            details={"location_id": location_id, "company_id": company_id},
        )
    return location


def _load_products(company_id: int, product_ids) -> dict[int, Product]:
    product_ids = sorted(set(product_ids))
    products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    by_id = {p.id: p for p in products}

    missing = [pid for pid in product_ids if pid not in by_id]
    if missing:
        raise NotFound("Product not found", details={"product_ids": missing})

    foreign = [p.id for p in products if p.company_id != company_id]
    if foreign:
        raise ValidationError(
            "Products do not belong to company",
            details={"product_ids": foreign, "company_id": company_id},
        )
    return by_id


def _check_stock_locked(location_id: int, items: list[dict], products: dict[int, Product]) -> None:
    """
    Lock the cart's InventoryRecord rows and verify every product is covered.

    Quantities are summed per product so a product split across lines is
    checked against its total. Rows are locked in product_id order.
    """
    requested: dict[int, Decimal] = {}
    for item in items:
        requested[item["product_id"]] = requested.get(item["product_id"], ZERO) + item["quantity"]

    records = lock_for_update(
        db.session.query(InventoryRecord)
        .filter(
            InventoryRecord.location_id == location_id,
            InventoryRecord.product_id.in_(list(requested)),
        )
        .order_by(InventoryRecord.product_id)
    ).all()
    by_product = {record.product_id: record for record in records}

    for product_id, quantity in requested.items():
        record = by_product.get(product_id)
        available = Decimal(str(record.quantity)) if record is not None else ZERO
        if record is None or available < quantity:
            current_app.logger.warning(
                "Sale rejected: product_id=%s location_id=%s requested %s, available %s",
                product_id, location_id, quantity, available,
            )
            raise InsufficientStock(
                available=available,
                requested=quantity,
                product_id=product_id,
                product_name=products[product_id].name,
            )


def _get_sale_locked(sale_id: int) -> PosSale:
    sale = lock_for_update(db.session.query(PosSale).filter_by(id=sale_id)).first()
    if sale is None:
        raise NotFound("POS sale not found", details={"sale_id": sale_id})
    return sale


def create_sale(data: dict, user_id: int | None = None) -> PosSale:
    """Create a sale with its lines and, when COMPLETED + PAID, its stock effects."""
    header, items = _validate_create(data)
    user_id = optional_int(user_id, "user_id")

    try:
        begin_write_transaction()
        location = _ensure_location(header["company_id"], header["location_id"])
        products = _load_products(header["company_id"], (item["product_id"] for item in items))

        if header["status"] == SALE_COMPLETED:
            _check_stock_locked(location.id, items, products)

        invoice_number = next_invoice_number(header["company_id"])

        sale = PosSale(**header, invoice_number=invoice_number, created_by=user_id)
        sale.items = [PosSaleItem(**item) for item in items]
        db.session.add(sale)
        db.session.flush()

        if sale.decrements_inventory:
            for item in items:
                apply_movement(
                    product_id=item["product_id"],
                    location_id=location.id,
                    quantity=item["quantity"],
                    movement_type=MOVEMENT_OUT,
                    reference_type=POS_SALE,
                    reference_id=sale.id,
                    created_by=user_id,
                    product_name=products[item["product_id"]].name,
                )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "POS sale %s created (%s/%s, %d items, location_id=%s)",
        sale.invoice_number, sale.status, sale.payment_status, len(items), sale.location_id,
    )
    return sale


def update_sale(sale_id, data: dict, user_id: int | None = None) -> PosSale:
    """
    Replace header fields and, when "items" is supplied, all sale lines.

    Does not recompute or reverse inventory effects of the original sale.
    A cancelled sale can only be moved back to COMPLETED.
    """
    sale_id = require_int(sale_id, "sale_id")
    _reject_unknown_fields(data, UPDATE_FIELDS)
    changes = _validate_header_fields(data)
    items = _validate_items(data["items"]) if data.get("items") is not None else None

    try:
        begin_write_transaction()
        sale = _get_sale_locked(sale_id)

        if sale.status == SALE_CANCELLED and changes.get("status") != SALE_COMPLETED:
            raise ConflictOnUpdate(
                "Cannot update a cancelled sale",
                details={"sale_id": sale.id, "status": sale.status},
            )

        if "location_id" in changes:
            _ensure_location(sale.company_id, changes["location_id"])
        if items is not None:
            _load_products(sale.company_id, (item["product_id"] for item in items))

        for key, value in changes.items():
            setattr(sale, key, value)

        if items is not None:
            # delete-orphan cascade removes the previous lines
            sale.items = [PosSaleItem(**item) for item in items]

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("POS sale %s updated by user_id=%s", sale.invoice_number, user_id)
    return sale


def cancel_sale(sale_id, user_id: int | None = None) -> PosSale:
    """Status-only transition to CANCELLED. Stock is not returned."""
    sale_id = require_int(sale_id, "sale_id")

    try:
        begin_write_transaction()
        sale = _get_sale_locked(sale_id)
        if sale.status == SALE_CANCELLED:
            raise ConflictOnUpdate("Sale is already cancelled", details={"sale_id": sale.id})
        sale.status = SALE_CANCELLED
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("POS sale %s cancelled by user_id=%s", sale.invoice_number, user_id)
    return sale


def delete_sale(sale_id) -> bool:
    """Delete a sale and its lines. COMPLETED + PAID sales cannot be deleted."""
    sale_id = require_int(sale_id, "sale_id")

    try:
        begin_write_transaction()
        sale = _get_sale_locked(sale_id)
        if sale.decrements_inventory:
            raise ConflictOnUpdate(
                "Cannot delete a completed and paid sale",
                details={"sale_id": sale.id},
            )
        invoice_number = sale.invoice_number
        db.session.delete(sale)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("POS sale %s deleted", invoice_number)
    return True


def get_sale(sale_id) -> PosSale:
    sale_id = require_int(sale_id, "sale_id")
    sale = db.session.get(PosSale, sale_id)
    if sale is None:
        raise NotFound("POS sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    *,
    company_id=None,
    location_id=None,
    terminal_id=None,
    client_id=None,
    cashier_id=None,
    payment_status=None,
    status=None,
    from_date=None,
    to_date=None,
    search=None,
    page=None,
    limit=None,
) -> dict:
    """Newest-first sale listing with optional filters."""
    query = db.session.query(PosSale)

    for column, value, field in (
        (PosSale.company_id, company_id, "company_id"),
        (PosSale.location_id, location_id, "location_id"),
        (PosSale.terminal_id, terminal_id, "terminal_id"),
        (PosSale.client_id, client_id, "client_id"),
        (PosSale.cashier_id, cashier_id, "cashier_id"),
    ):
        value = optional_int(value, field)
        if value is not None:
            query = query.filter(column == value)

    if payment_status:
        query = query.filter(PosSale.payment_status == require_choice(payment_status, "payment_status", PAYMENT_STATUSES))
    if status:
        query = query.filter(PosSale.status == require_choice(status, "status", SALE_STATUSES))

    from_dt = parse_datetime(from_date, "from_date")
    to_dt = parse_datetime(to_date, "to_date")
    # Date range is inclusive on both ends
    if from_dt is not None:
        query = query.filter(PosSale.sale_date >= from_dt)
    if to_dt is not None:
        query = query.filter(PosSale.sale_date <= to_dt)

    if search:
        query = query.filter(PosSale.invoice_number.contains(search.strip(), autoescape=True))

    query = query.order_by(PosSale.id.desc())
    return paginate(query, page=page, limit=limit)
