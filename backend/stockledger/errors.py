# Overview: Typed error taxonomy for inventory, ledger and sale operations.

"""
Error kinds raised by the service layer.

Every error is raised from inside the owning DB transaction, which is rolled
back before the error reaches the caller. Routes map errors to HTTP status via
``status_code`` instead of inspecting message text; the messages still carry
the legacy substrings ("Insufficient stock", "Available quantity: N",
"No inventory record") for clients that match on them.
"""

from __future__ import annotations

from decimal import Decimal


def format_quantity(value) -> str:
    """Render a quantity without trailing zeros (Decimal("6.00") -> "6")."""
    if value is None:
        return "0"
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    if d == 0:
        return "0"
    return format(d.normalize(), "f")


class LedgerError(Exception):
    """Base class for all expected service-layer failures."""

    kind = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem, raised before any write."""

    kind = "VALIDATION_ERROR"
    status_code = 400


class InsufficientStock(LedgerError):
    """Requested quantity exceeds what is on hand."""

    kind = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(
        self,
        *,
        available,
        requested=None,
        product_id: int | None = None,
        product_name: str | None = None,
    ):
        subject = f" for {product_name}" if product_name else ""
        message = f"Insufficient stock{subject}. Available quantity: {format_quantity(available)}"
        super().__init__(
            message,
            details={
                "product_id": product_id,
                "available": format_quantity(available),
                "requested": format_quantity(requested) if requested is not None else None,
            },
        )
        self.available = available
        self.requested = requested
        self.product_id = product_id


class NoInventoryRecord(LedgerError):
    """OUT movement against a (product, location) pair that was never stocked."""

    kind = "NO_INVENTORY_RECORD"
    status_code = 400

    def __init__(self, *, product_id: int, location_id: int):
        super().__init__(
            "Cannot perform OUT movement: No inventory record exists for this product at this location",
            details={"product_id": product_id, "location_id": location_id},
        )


class InvalidReferenceType(LedgerError):
    """Unsupported (reference_type, movement_type) combination."""

    kind = "INVALID_REFERENCE_TYPE"
    status_code = 400

    def __init__(self, *, reference_type, movement_type):
        super().__init__(
            f"Invalid reference_type: {reference_type} for movement_type {movement_type}",
            details={"reference_type": reference_type, "movement_type": movement_type},
        )


class NotFound(LedgerError):
    kind = "NOT_FOUND"
    status_code = 404


class ConflictOnUpdate(LedgerError):
    """Business rule conflict (e.g., updating a cancelled sale). Reported as 400 like other rule violations."""

    kind = "CONFLICT_ON_UPDATE"
    status_code = 400
