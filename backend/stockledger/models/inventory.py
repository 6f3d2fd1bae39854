from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from stockledger.time_utils import utcnow, to_utc_z


MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)

OPENING_STOCK = "OPENING_STOCK"
ADJUSTMENT = "ADJUSTMENT"
TRANSFER = "TRANSFER"
ORDER_PURCHASE = "ORDER_PURCHASE"
POS_SALE = "POS_SALE"
POS_RETURN = "POS_RETURN"
# Deprecated alias still present in old rows; reported and applied as POS_SALE
ORDER_SELL = "ORDER_SELL"

REFERENCE_TYPES = (OPENING_STOCK, ADJUSTMENT, TRANSFER, ORDER_PURCHASE, POS_SALE, POS_RETURN)
LEGACY_REFERENCE_ALIASES = {ORDER_SELL: POS_SALE}


def normalize_reference_type(value: str | None) -> str | None:
    if not value:
        return value
    value = value.strip().upper()
    return LEGACY_REFERENCE_ALIASES.get(value, value)


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


class InventoryRecord(db.Model):
    """
    Current on-hand snapshot per (product, location).

    INVARIANTS:
    - quantity >= 0, enforced by the inventory mutator before commit
      (not by a CHECK constraint).
    - reserved_quantity >= 0; it may exceed quantity (soft holds), so
      available_quantity can be negative.
    - quantity equals the signed replay of StockMovement rows for the pair.

    Created lazily on the first movement or reservation; never deleted.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location_id", name="uq_inventory_product_location"),
        db.Index("ix_inventory_location_product", "location_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    reserved_quantity = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    location = db.relationship("Location")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_quantity(self) -> Decimal:
        return _decimal(self.quantity) - _decimal(self.reserved_quantity)

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord product_id={self.product_id} location_id={self.location_id} "
            f"quantity={self.quantity} reserved={self.reserved_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": str(_decimal(self.quantity)),
            "reserved_quantity": str(_decimal(self.reserved_quantity)),
            "available_quantity": str(self.available_quantity),
            "last_updated": to_utc_z(self.last_updated),
        }


class StockMovement(db.Model):
    """
    Append-only ledger of physical stock changes.

    - quantity is always positive; direction comes from movement_type.
    - reference_type records why the stock moved; reference_id points at the
      originating sale/adjustment when there is one.
    - Rows are written in the same DB transaction as the InventoryRecord change
      they describe and are never updated or deleted. Corrections are new rows.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_location_created", "product_id", "location_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(15, 2), nullable=False)

    # IN / OUT
    movement_type = db.Column(db.String(8), nullable=False, index=True)
    # OPENING_STOCK, ADJUSTMENT, TRANSFER, ORDER_PURCHASE, POS_SALE, POS_RETURN
    reference_type = db.Column(db.String(32), nullable=False, index=True)
    reference_id = db.Column(db.Integer, nullable=True)

    created_by = db.Column(db.Integer, nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product")
    location = db.relationship("Location")

    @property
    def signed_quantity(self) -> Decimal:
        qty = _decimal(self.quantity)
        return qty if self.movement_type == MOVEMENT_IN else -qty

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} {self.movement_type} {self.quantity} "
            f"{self.reference_type} product_id={self.product_id} location_id={self.location_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": str(_decimal(self.quantity)),
            "movement_type": self.movement_type,
            "reference_type": normalize_reference_type(self.reference_type),
            "reference_id": self.reference_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "product": {"name": self.product.name, "sku": self.product.sku} if self.product else None,
            "location": {"name": self.location.name} if self.location else None,
        }
