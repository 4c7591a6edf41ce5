"""
Pytest fixtures for back-office checkout tests.

Provides the app on in-memory SQLite, per-test table wipes, seed data
(products, role grants, tax setting) and request header helpers.
"""

from decimal import Decimal

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import AppSetting, Product, UserRole, Voucher


AUTH_HEADER = "X-Authenticated-User"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TAX_RATE_PERCENT': '0',
        'DEFAULT_CURRENCY': 'USD',
        'AUTH_USER_HEADER': AUTH_HEADER,
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
def products(db_session):
    """Two active products and one inactive one."""
    widget = Product(name="Widget", sku="W-001", unit_price=Decimal("10.00"), barcode="1001", is_active=True)
    gadget = Product(name="Gadget", sku="G-001", unit_price=Decimal("5.00"), barcode="1002", is_active=True)
    retired = Product(name="Retired Widget", sku="W-000", unit_price=Decimal("3.00"), barcode="1000", is_active=False)
    db_session.add_all([widget, gadget, retired])
    db_session.commit()
    return {"widget": widget, "gadget": gadget, "retired": retired}


@pytest.fixture(scope='function')
def roles(db_session):
    """One user per role, keyed by role name."""
    users = {
        "admin": "admin-1",
        "manager": "manager-1",
        "cashier": "cashier-1",
        "viewer": "viewer-1",
    }
    for role, user_id in users.items():
        db_session.add(UserRole(user_id=user_id, role=role))
    db_session.commit()
    return users


@pytest.fixture(scope='function')
def tax_7_5(db_session):
    """Store-wide tax rate of 7.5%."""
    db_session.add(AppSetting(key="tax_rate", value="7.5", updated_by="test"))
    db_session.commit()


@pytest.fixture(scope='function')
def make_voucher(db_session):
    """Factory for voucher rows (committed)."""
    def _make(code="SAVE10", *, value="10", is_percentage=True, min_purchase="0",
              max_uses=None, uses_count=0, expires_at=None, is_active=True):
        voucher = Voucher(
            code=code,
            value=Decimal(value),
            is_percentage=is_percentage,
            min_purchase=Decimal(min_purchase),
            max_uses=max_uses,
            uses_count=uses_count,
            expires_at=expires_at,
            is_active=is_active,
            created_by="test",
        )
        db_session.add(voucher)
        db_session.commit()
        return voucher

    return _make


@pytest.fixture(scope='function')
def seed(products, roles, tax_7_5):
    """Products, role grants and a 7.5% tax rate."""
    return {"products": products, "roles": roles}


def user_headers(user_id: str) -> dict:
    """Headers the gateway sets for an authenticated user."""
    return {AUTH_HEADER: user_id}


@pytest.fixture(scope='function')
def cashier_headers(roles):
    return user_headers(roles["cashier"])


@pytest.fixture(scope='function')
def manager_headers(roles):
    return user_headers(roles["manager"])


@pytest.fixture(scope='function')
def viewer_headers(roles):
    return user_headers(roles["viewer"])
