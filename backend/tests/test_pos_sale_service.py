# Overview: Pytest coverage for POS sale creation, edits, and invoice numbering.

"""
POS Sale Tests

A COMPLETED + PAID sale is one unit: header, items, stock decrements and
POS_SALE ledger rows either all persist or none do.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from stockledger.errors import ConflictOnUpdate, InsufficientStock, NotFound, ValidationError
from stockledger.models import InvoiceSequence, Location, PosSale, PosSaleItem, StockMovement
from stockledger.services import inventory_service, pos_sale_service
from stockledger.time_utils import business_date_key
from stockledger.validation import parse_datetime

from conftest import make_product, sale_payload, stock


def qty(product, location):
    return inventory_service.get_inventory_quantity(product.id, location.id)


class TestCreateSale:
    def test_completed_paid_sale_decrements_every_item(self, db_session, company, location, product, second_product):
        stock(product.id, location.id, 10)
        stock(second_product.id, location.id, 10)

        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 2, "unit_price": "10.00"},
            {"product_id": second_product.id, "quantity": 3, "unit_price": "7.50"},
        ]), user_id=5)

        assert qty(product, location) == Decimal("8")
        assert qty(second_product, location) == Decimal("7")

        movements = db_session.query(StockMovement).filter_by(reference_type="POS_SALE").all()
        assert len(movements) == 2
        assert {m.movement_type for m in movements} == {"OUT"}
        assert {m.reference_id for m in movements} == {sale.id}
        assert {m.created_by for m in movements} == {5}

        assert db_session.query(PosSale).count() == 1
        assert db_session.query(PosSaleItem).count() == 2
        assert sale.invoice_number == f"POS-{business_date_key()}-0001"
        assert sale.status == "COMPLETED"
        assert sale.payment_status == "PAID"

    def test_line_and_header_totals(self, db_session, company, location, product):
        stock(product.id, location.id, 10)

        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 3, "unit_price": "10.00", "discount": "2.00", "tax": "1.50"},
        ]))

        assert sale.items[0].line_total == Decimal("29.50")
        assert sale.subtotal == Decimal("29.50")
        assert sale.total_amount == Decimal("29.50")

    def test_explicit_header_totals_kept(self, db_session, company, location, product):
        stock(product.id, location.id, 10)

        sale = pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 1, "unit_price": "10.00"}],
            subtotal="10.00", discount="1.00", tax="0.50", total_amount="9.50",
        ))

        assert sale.discount == Decimal("1.00")
        assert sale.total_amount == Decimal("9.50")

    def test_failure_on_later_item_persists_nothing(self, db_session, company, location, product, second_product):
        stock(product.id, location.id, 10)
        stock(second_product.id, location.id, 1)

        with pytest.raises(InsufficientStock) as exc:
            pos_sale_service.create_sale(sale_payload(company, location, [
                {"product_id": product.id, "quantity": 2, "unit_price": "10.00"},
                {"product_id": second_product.id, "quantity": 3, "unit_price": "7.50"},
            ]))

        assert "Green Plate" in str(exc.value)
        assert "Available quantity: 1" in str(exc.value)
        assert exc.value.product_id == second_product.id
        assert qty(product, location) == Decimal("10")
        assert qty(second_product, location) == Decimal("1")
        assert db_session.query(StockMovement).filter_by(reference_type="POS_SALE").count() == 0
        assert db_session.query(PosSale).count() == 0
        assert db_session.query(PosSaleItem).count() == 0

    def test_product_split_across_lines_checked_in_total(self, db_session, company, location, product):
        stock(product.id, location.id, 5)

        with pytest.raises(InsufficientStock):
            pos_sale_service.create_sale(sale_payload(company, location, [
                {"product_id": product.id, "quantity": 3, "unit_price": "10.00"},
                {"product_id": product.id, "quantity": 3, "unit_price": "10.00"},
            ]))

        assert qty(product, location) == Decimal("5")

    def test_untracked_product_cannot_be_sold(self, db_session, company, location, product):
        with pytest.raises(InsufficientStock, match="Available quantity: 0"):
            pos_sale_service.create_sale(sale_payload(company, location, [
                {"product_id": product.id, "quantity": 1, "unit_price": "10.00"},
            ]))

    def test_pending_payment_does_not_decrement(self, db_session, company, location, product):
        stock(product.id, location.id, 4)

        sale = pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 2, "unit_price": "10.00"}],
            payment_status="pending",
        ))

        assert sale.payment_status == "PENDING"
        assert qty(product, location) == Decimal("4")
        assert db_session.query(StockMovement).filter_by(reference_type="POS_SALE").count() == 0

    def test_completed_pending_payment_still_checks_stock(self, db_session, company, location, product):
        stock(product.id, location.id, 1)

        with pytest.raises(InsufficientStock):
            pos_sale_service.create_sale(sale_payload(
                company, location,
                [{"product_id": product.id, "quantity": 2, "unit_price": "10.00"}],
                payment_status="PENDING",
            ))

    def test_pending_sale_skips_stock_check(self, db_session, company, location, product):
        sale = pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 2, "unit_price": "10.00"}],
            status="PENDING",
        ))

        assert sale.status == "PENDING"
        assert inventory_service.get_inventory_record(product.id, location.id) is None

    def test_ledger_still_reconciles_after_sales(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        for _ in range(3):
            pos_sale_service.create_sale(sale_payload(company, location, [
                {"product_id": product.id, "quantity": 2, "unit_price": "10.00"},
            ]))

        result = inventory_service.reconcile_inventory(product.id, location.id)
        assert result["in_sync"] is True
        assert Decimal(result["ledger_quantity"]) == Decimal("4")


class TestCreateSaleValidation:
    @pytest.mark.parametrize("missing,message", [
        ("company_id", "Company ID is required"),
        ("location_id", "Location ID is required"),
        ("cashier_id", "Cashier ID is required"),
        ("payment_method_id", "Payment method ID is required"),
    ])
    def test_required_header_fields(self, db_session, company, location, product, missing, message):
        payload = sale_payload(company, location, [{"product_id": product.id, "quantity": 1, "unit_price": 1}])
        del payload[missing]

        with pytest.raises(ValidationError, match=message):
            pos_sale_service.create_sale(payload)

    @pytest.mark.parametrize("items,message", [
        ([], "At least one sale item is required"),
        (None, "At least one sale item is required"),
        ([{"quantity": 1, "unit_price": 1}], "Product ID is required for all sale items"),
        ([{"product_id": 1, "quantity": 0, "unit_price": 1}], "must be greater than 0"),
        ([{"product_id": 1, "quantity": 1, "unit_price": -1}], "must be 0 or greater"),
        ([{"product_id": 1, "quantity": 1}], "must be 0 or greater"),
    ])
    def test_item_validation(self, db_session, company, location, items, message):
        with pytest.raises(ValidationError, match=message):
            pos_sale_service.create_sale(sale_payload(company, location, items))
        assert db_session.query(PosSale).count() == 0

    def test_unknown_field_rejected(self, db_session, company, location, product):
        payload = sale_payload(company, location, [{"product_id": product.id, "quantity": 1, "unit_price": 1}])
        payload["invoice_number"] = "HAND-MADE-1"

        with pytest.raises(ValidationError, match="Field not allowed: invoice_number"):
            pos_sale_service.create_sale(payload)

    def test_invalid_status(self, db_session, company, location, product):
        with pytest.raises(ValidationError, match="Invalid status"):
            pos_sale_service.create_sale(sale_payload(
                company, location,
                [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
                status="SHIPPED",
            ))

    def test_location_of_other_company(self, db_session, company, other_company, product):
        foreign = Location(company_id=other_company.id, name="Elsewhere")
        db_session.add(foreign)
        db_session.commit()

        with pytest.raises(ValidationError, match="Location does not belong to company"):
            pos_sale_service.create_sale(sale_payload(
                company, foreign, [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
            ))

    def test_unknown_product(self, db_session, company, location):
        with pytest.raises(NotFound):
            pos_sale_service.create_sale(sale_payload(
                company, location, [{"product_id": 99999, "quantity": 1, "unit_price": 1}],
            ))


class TestInvoiceNumbers:
    def test_sequential_numbers_increase(self, db_session, company, location, product):
        stock(product.id, location.id, 100)

        numbers = [
            pos_sale_service.create_sale(sale_payload(company, location, [
                {"product_id": product.id, "quantity": 1, "unit_price": "10.00"},
            ])).invoice_number
            for _ in range(5)
        ]

        sequence = [int(number.rsplit("-", 1)[1]) for number in numbers]
        assert sequence == [1, 2, 3, 4, 5]
        assert len(set(numbers)) == 5

    def test_companies_have_independent_sequences(self, db_session, company, other_company, location, product):
        stock(product.id, location.id, 10)
        other_location = Location(company_id=other_company.id, name="Other Shop")
        db_session.add(other_location)
        db_session.commit()
        other_product = make_product(db_session, other_company, "SKU-001", "Blue Mug")
        stock(other_product.id, other_location.id, 10)

        first = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))
        second = pos_sale_service.create_sale(sale_payload(other_company, other_location, [
            {"product_id": other_product.id, "quantity": 1, "unit_price": 1},
        ]))

        assert first.invoice_number == second.invoice_number

    def test_counter_seeded_from_existing_invoices(self, db_session, company, location, product):
        """Invoices written before the counter existed are never reissued."""
        stock(product.id, location.id, 10)
        today = business_date_key()
        db_session.add(PosSale(
            company_id=company.id,
            location_id=location.id,
            cashier_id=1,
            payment_method_id=1,
            invoice_number=f"POS-{today}-0041",
            status="PENDING",
            payment_status="PENDING",
        ))
        db_session.commit()

        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))

        assert sale.invoice_number == f"POS-{today}-0042"
        counter = db_session.query(InvoiceSequence).filter_by(company_id=company.id).one()
        assert counter.next_number == 43

    def test_failed_sale_does_not_consume_number(self, db_session, company, location, product):
        stock(product.id, location.id, 1)

        with pytest.raises(InsufficientStock):
            pos_sale_service.create_sale(sale_payload(company, location, [
                {"product_id": product.id, "quantity": 5, "unit_price": 1},
            ]))
        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))

        assert sale.invoice_number.endswith("-0001")


class TestUpdateSale:
    def _sale(self, company, location, product, **overrides):
        stock(product.id, location.id, 10)
        return pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 2, "unit_price": "10.00"},
        ], **overrides))

    def test_items_replaced_without_inventory_effect(self, db_session, company, location, product, second_product):
        sale = self._sale(company, location, product)

        updated = pos_sale_service.update_sale(sale.id, {
            "notes": "customer swapped item",
            "items": [{"product_id": second_product.id, "quantity": 4, "unit_price": "7.50"}],
        })

        assert updated.notes == "customer swapped item"
        assert [item.product_id for item in updated.items] == [second_product.id]
        assert db_session.query(PosSaleItem).count() == 1
        # The original decrement stands; no new movements
        assert qty(product, location) == Decimal("8")
        assert db_session.query(StockMovement).filter_by(reference_type="POS_SALE").count() == 1

    def test_header_only_update_keeps_items(self, db_session, company, location, product):
        sale = self._sale(company, location, product)

        updated = pos_sale_service.update_sale(sale.id, {"client_id": 9, "sale_date": "2026-01-02T10:00:00Z"})

        assert updated.client_id == 9
        assert updated.sale_date == datetime(2026, 1, 2, 10, 0, 0)
        assert len(updated.items) == 1

    def test_cancelled_sale_only_returns_to_completed(self, db_session, company, location, product):
        sale = self._sale(company, location, product)
        pos_sale_service.cancel_sale(sale.id)

        with pytest.raises(ConflictOnUpdate, match="Cannot update a cancelled sale"):
            pos_sale_service.update_sale(sale.id, {"notes": "late edit"})
        with pytest.raises(ConflictOnUpdate):
            pos_sale_service.update_sale(sale.id, {"status": "PENDING"})

        reopened = pos_sale_service.update_sale(sale.id, {"status": "COMPLETED"})
        assert reopened.status == "COMPLETED"
        assert qty(product, location) == Decimal("8")

    def test_company_cannot_be_changed(self, db_session, company, location, product):
        sale = self._sale(company, location, product)

        with pytest.raises(ValidationError, match="Field not allowed: company_id"):
            pos_sale_service.update_sale(sale.id, {"company_id": 2})

    def test_missing_sale(self, db_session):
        with pytest.raises(NotFound):
            pos_sale_service.update_sale(4242, {"notes": "x"})


class TestCancelAndDelete:
    def test_cancel_keeps_stock_sunk(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 3, "unit_price": 1},
        ]))

        cancelled = pos_sale_service.cancel_sale(sale.id, user_id=2)

        assert cancelled.status == "CANCELLED"
        assert qty(product, location) == Decimal("7")
        assert db_session.query(StockMovement).count() == 2

        with pytest.raises(ConflictOnUpdate, match="already cancelled"):
            pos_sale_service.cancel_sale(sale.id)

    def test_completed_paid_sale_cannot_be_deleted(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))

        with pytest.raises(ConflictOnUpdate):
            pos_sale_service.delete_sale(sale.id)
        assert db_session.query(PosSale).count() == 1

    def test_pending_sale_deleted_with_items(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        sale = pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
            payment_status="PENDING",
        ))

        assert pos_sale_service.delete_sale(sale.id) is True
        assert db_session.query(PosSale).count() == 0
        assert db_session.query(PosSaleItem).count() == 0

    def test_cancelled_sale_can_be_deleted(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))
        pos_sale_service.cancel_sale(sale.id)

        assert pos_sale_service.delete_sale(sale.id) is True
        # Stock stays sunk; the ledger row stays too
        assert db_session.query(StockMovement).filter_by(reference_type="POS_SALE").count() == 1


class TestSaleReads:
    def test_get_sale_includes_items(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": "10.00"},
        ]))

        data = pos_sale_service.get_sale(sale.id).to_dict()

        assert data["invoice_number"] == sale.invoice_number
        assert data["items"][0]["product"]["name"] == "Blue Mug"
        assert data["items"][0]["line_total"] == "10.00"

    def test_get_missing_sale(self, db_session):
        with pytest.raises(NotFound, match="POS sale not found"):
            pos_sale_service.get_sale(31337)

    def test_list_filters(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        paid = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))
        pending = pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
            payment_status="PENDING",
        ))

        everything = pos_sale_service.list_sales(company_id=company.id)
        only_pending = pos_sale_service.list_sales(payment_status="pending")
        by_invoice = pos_sale_service.list_sales(search=paid.invoice_number)

        assert [s.id for s in everything["items"]] == [pending.id, paid.id]
        assert [s.id for s in only_pending["items"]] == [pending.id]
        assert [s.id for s in by_invoice["items"]] == [paid.id]
        assert everything["pagination"]["total"] == 2

    @pytest.mark.parametrize("wildcard", ["%", "_", "POS%", "%-%"])
    def test_search_treats_wildcards_literally(self, db_session, company, location, product, wildcard):
        stock(product.id, location.id, 10)
        sale = pos_sale_service.create_sale(sale_payload(company, location, [
            {"product_id": product.id, "quantity": 1, "unit_price": 1},
        ]))

        matched = pos_sale_service.list_sales(search=wildcard)
        partial = pos_sale_service.list_sales(search=sale.invoice_number[-4:])

        assert matched["pagination"]["total"] == 0
        assert [s.id for s in partial["items"]] == [sale.id]

    def test_list_date_range(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
            sale_date="2026-03-01T12:00:00Z",
        ))

        inside = pos_sale_service.list_sales(from_date="2026-03-01T00:00:00Z", to_date="2026-03-01T23:59:59Z")
        outside = pos_sale_service.list_sales(from_date="2026-03-02T00:00:00Z")

        assert inside["pagination"]["total"] == 1
        assert outside["pagination"]["total"] == 0

    def test_list_date_range_with_aware_datetimes(self, db_session, company, location, product):
        stock(product.id, location.id, 10)
        pos_sale_service.create_sale(sale_payload(
            company, location,
            [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
            sale_date="2026-03-01T12:00:00Z",
        ))
        plus_two = timezone(timedelta(hours=2))

        # 13:30+02:00 is 11:30 UTC, before the sale
        inside = pos_sale_service.list_sales(from_date=datetime(2026, 3, 1, 13, 30, tzinfo=plus_two))
        outside = pos_sale_service.list_sales(to_date=datetime(2026, 3, 1, 13, 30, tzinfo=plus_two))

        assert inside["pagination"]["total"] == 1
        assert outside["pagination"]["total"] == 0

    def test_parse_datetime_normalizes_to_utc(self):
        aware = datetime(2026, 1, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        naive = datetime(2026, 1, 2, 12, 0)

        assert parse_datetime(aware, "sale_date") == datetime(2026, 1, 2, 10, 0)
        assert parse_datetime(aware, "sale_date").tzinfo is None
        assert parse_datetime(naive, "sale_date") is naive
        assert parse_datetime("2026-01-02T12:00:00+02:00", "sale_date") == datetime(2026, 1, 2, 10, 0)
