# Overview: Atomic per-company, per-day invoice number allocation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import InvoiceSequence, PosSale
from stockledger.time_utils import business_date_key


def _highest_existing_sequence(company_id: int, prefix: str, date_key: str) -> int:
    """
    Highest NNNN among this company's PREFIX-YYYYMMDD-NNNN invoices.

    Only used to seed a day's counter row, so invoices written before the
    counter existed are never handed out again.
    """
    stem = f"{prefix}-{date_key}-"
    rows = (
        db.session.query(PosSale.invoice_number)
        .filter(
            PosSale.company_id == company_id,
            PosSale.invoice_number.like(f"{stem}%"),
        )
        .all()
    )
    highest = 0
    for (invoice_number,) in rows:
        tail = invoice_number[len(stem):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return highest


def _advance(company_id: int, prefix: str, date_key: str) -> int | None:
    """Atomically bump the counter; returns the number allocated, or None if no row."""
    stmt = (
        update(InvoiceSequence)
        .where(
            InvoiceSequence.company_id == company_id,
            InvoiceSequence.prefix == prefix,
            InvoiceSequence.business_date == date_key,
        )
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(company_id=company_id, prefix=prefix, business_date=date_key)
        .scalar()
    )
    return current - 1


def next_invoice_number(company_id: int, *, date_key: str | None = None) -> str:
    """
    Allocate the next invoice number for a company and calendar day.

    Must run inside the caller's sale transaction; the UPDATE holds the
    counter row until that transaction ends.
    """
    if not company_id:
        raise ValidationError("company_id is required")

    prefix = current_app.config.get("INVOICE_PREFIX", "POS")
    pad = current_app.config.get("INVOICE_SEQUENCE_PAD", 4)
    date_key = date_key or business_date_key()

    number = _advance(company_id, prefix, date_key)
    if number is None:
        number = _highest_existing_sequence(company_id, prefix, date_key) + 1
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(
                    company_id=company_id,
                    prefix=prefix,
                    business_date=date_key,
                    next_number=number + 1,
                ))
        except IntegrityError:
            # Another transaction created today's row first
            number = _advance(company_id, prefix, date_key)
            if number is None:
                raise

    return f"{prefix}-{date_key}-{number:0{pad}d}"
