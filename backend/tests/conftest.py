"""
Pytest fixtures for storeapi backend tests.

Provides test database setup, catalog/membership fixtures, and test client.
"""

from datetime import date
from decimal import Decimal

import pytest
from storeapi import create_app
from storeapi.config import TestConfig
from storeapi.extensions import db
from storeapi.models import Customer, Membership, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def engine(app):
    return app.extensions["sale_engine"]


def make_product(session, **overrides) -> Product:
    """Helper to insert a product with sensible defaults."""
    fields = {
        "name": "Ground Coffee",
        "description": "Medium roast ground coffee",
        "category": "Groceries",
        "brand": "Roastery",
        "quantity": 50,
        "price": Decimal("1.80"),
        "points_price": 20,
    }
    fields.update(overrides)
    product = Product(**fields)
    session.add(product)
    session.commit()
    return product


def make_membership(session, code: str = "ABCD1234", points: int = 0, active: bool = True) -> Membership:
    """Helper to insert a membership directly (bypassing code generation)."""
    membership = Membership(code=code, registration_date=date(2026, 1, 1), points=points, active=active)
    session.add(membership)
    session.commit()
    return membership


@pytest.fixture(scope='function')
def coffee(db_session):
    """quantity 50, price 1.80, 20 points per unit."""
    return make_product(db_session)


@pytest.fixture(scope='function')
def mug(db_session):
    """quantity 10, price 25.00, 50 points per unit."""
    return make_product(
        db_session,
        name="Ceramic Mug",
        description="White ceramic mug",
        category="Kitchen",
        brand="Homeware",
        quantity=10,
        price=Decimal("25.00"),
        points_price=50,
    )


@pytest.fixture(scope='function')
def membership(db_session):
    """Active membership with 500 points."""
    return make_membership(db_session, code="MEMB0001", points=500)


@pytest.fixture(scope='function')
def customer(db_session, membership):
    """Customer owning the `membership` fixture."""
    customer = Customer(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        address_first_line="12 St James Square",
        address_city="London",
        membership_code=membership.code,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
