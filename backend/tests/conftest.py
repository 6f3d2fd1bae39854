"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, company/location/product fixtures, and test client.
"""

from decimal import Decimal

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Company, Location, Product
from stockledger.services import stock_movement_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company(db_session):
    company = Company(name="Acme Retail")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    company = Company(name="Beta Stores")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def location(db_session, company):
    location = Location(company_id=company.id, name="Main Shop")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def second_location(db_session, company):
    location = Location(company_id=company.id, name="Warehouse")
    db_session.add(location)
    db_session.commit()
    return location


def make_product(db_session, company, sku, name, price="10.00"):
    product = Product(
        company_id=company.id,
        sku=sku,
        name=name,
        selling_price=Decimal(price),
        cost_price=Decimal("4.00"),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, company):
    return make_product(db_session, company, "SKU-001", "Blue Mug")


@pytest.fixture(scope='function')
def second_product(db_session, company):
    return make_product(db_session, company, "SKU-002", "Green Plate", price="7.50")


def stock(product_id, location_id, quantity, reference_type="OPENING_STOCK"):
    """Put quantity on hand through the public movement service."""
    return stock_movement_service.create_movement(
        product_id=product_id,
        location_id=location_id,
        quantity=quantity,
        movement_type="IN",
        reference_type=reference_type,
    )


def sale_payload(company, location, items, **overrides):
    payload = {
        "company_id": company.id,
        "location_id": location.id,
        "cashier_id": 7,
        "payment_method_id": 1,
        "items": items,
    }
    payload.update(overrides)
    return payload
