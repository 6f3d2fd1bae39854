from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Company(db.Model):
    """
    Multi-tenant root: every location, product and sale belongs to one company.

    Owned by the back-office CRUD layer; the ledger only reads it.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Location(db.Model):
    """
    Stock-holding location (shop floor, warehouse). Second half of the inventory key.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.Index("ix_locations_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("locations", lazy=True))

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "address": self.address,
        }


class Product(db.Model):
    """
    Product master data (read-only for the ledger).

    IDENTITY: product ids are immutable once referenced by a stock movement.
    Prices are decimals with two places, like every monetary column here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(50), nullable=False, default="pcs")

    selling_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    cost_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "selling_price": str(self.selling_price) if self.selling_price is not None else None,
            "cost_price": str(self.cost_price) if self.cost_price is not None else None,
            "is_active": self.is_active,
        }
