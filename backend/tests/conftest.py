"""
Pytest fixtures for the chopp backend tests.

Provides the in-memory application, a per-test clean database, the test
client and small factories for the rows most tests need.
"""

import pytest
from chopp import create_app
from chopp.extensions import db
from chopp.models import Product, Customer, Asset, Employee, Expense


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
def make_product(db_session):
    """Factory: product with a baseline matching its starting stock."""
    def _make(name="Barril Pilsen 30L", *, price_cents=30000, cost_price_cents=20000,
              liters=30.0, stock_quantity=10, is_active=True, category="chopp"):
        product = Product(
            name=name,
            category=category,
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
            liters=liters,
            stock_quantity=stock_quantity,
            stock_baseline=stock_quantity,
            stock_baseline_movement_id=0,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(full_name="Maria Souza", *, phone="11988887777", address="Rua das Flores, 120"):
        customer = Customer(full_name=full_name, phone=phone, address=address)
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def make_asset(db_session):
    def _make(code="CHP-01", *, model="Chopeira eletrica", status="available"):
        asset = Asset(code=code, model=model, status=status)
        db_session.add(asset)
        db_session.commit()
        return asset
    return _make


@pytest.fixture(scope='function')
def make_employee(db_session):
    def _make(name="Carlos", *, role="deliverer", salary_cents=180000, is_active=True):
        employee = Employee(name=name, role=role, salary_cents=salary_cents, is_active=is_active)
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make


@pytest.fixture(scope='function')
def make_expense(db_session):
    def _make(amount_cents, *, day, category="supplies", description="Gelo"):
        expense = Expense(description=description, category=category, amount_cents=amount_cents, date=day)
        db_session.add(expense)
        db_session.commit()
        return expense
    return _make
