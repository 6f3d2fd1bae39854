from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import utcnow, to_utc_z


PAYMENT_PAID = "PAID"
PAYMENT_PENDING = "PENDING"
PAYMENT_STATUSES = (PAYMENT_PAID, PAYMENT_PENDING)

SALE_COMPLETED = "COMPLETED"
SALE_CANCELLED = "CANCELLED"
SALE_PENDING = "PENDING"
SALE_STATUSES = (SALE_COMPLETED, SALE_CANCELLED, SALE_PENDING)


def _money(value) -> str | None:
    return str(value) if value is not None else None


class PosSale(db.Model):
    """
    POS sale header. Owns 1..N PosSaleItem rows.

    Inventory is decremented only when the sale is created with
    status=COMPLETED and payment_status=PAID. Later edits, cancellation and
    deletion never touch inventory or the stock movement ledger.
    """
    __tablename__ = "pos_sales"
    __table_args__ = (
        # Invoice numbers are allocated per company and day
        db.UniqueConstraint("company_id", "invoice_number", name="uq_pos_sales_company_invoice"),
        db.Index("ix_pos_sales_invoice_number", "invoice_number"),
        db.Index("ix_pos_sales_company_status_date", "company_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    # Owned by collaborator tables outside the ledger
    terminal_id = db.Column(db.Integer, nullable=True, index=True)
    client_id = db.Column(db.Integer, nullable=True, index=True)
    cashier_id = db.Column(db.Integer, nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, nullable=False, index=True)

    # Human-readable number (e.g., "POS-20260101-0001")
    invoice_number = db.Column(db.String(50), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    subtotal = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PAID, index=True)
    status = db.Column(db.String(16), nullable=False, default=SALE_COMPLETED, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location")
    items = db.relationship(
        "PosSaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PosSaleItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def decrements_inventory(self) -> bool:
        return self.status == SALE_COMPLETED and self.payment_status == PAYMENT_PAID

    def __repr__(self) -> str:
        return f"<PosSale id={self.id} invoice={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "location_id": self.location_id,
            "terminal_id": self.terminal_id,
            "client_id": self.client_id,
            "cashier_id": self.cashier_id,
            "payment_method_id": self.payment_method_id,
            "invoice_number": self.invoice_number,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal": _money(self.subtotal),
            "discount": _money(self.discount),
            "tax": _money(self.tax),
            "total_amount": _money(self.total_amount),
            "payment_status": self.payment_status,
            "status": self.status,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PosSaleItem(db.Model):
    """Sale line. line_total = quantity * unit_price - discount + tax."""
    __tablename__ = "pos_sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("pos_sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(15, 2), nullable=False)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    discount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(15, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": _money(self.quantity),
            "unit_price": _money(self.unit_price),
            "discount": _money(self.discount),
            "tax": _money(self.tax),
            "line_total": _money(self.line_total),
            "product": {"name": self.product.name, "sku": self.product.sku} if self.product else None,
        }


class InvoiceSequence(db.Model):
    """
    Atomic per-company, per-day invoice counter.

    next_number is advanced with a single UPDATE inside the sale transaction,
    so two concurrent sales can never read the same value.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("company_id", "prefix", "business_date", name="uq_invoice_sequences_company_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    prefix = db.Column(db.String(16), nullable=False)
    # YYYYMMDD
    business_date = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
