"""
Pytest fixtures for shopstock backend tests.

Provides an in-memory database, a per-test table wipe, catalog fixtures and
an authenticated test client.
"""

import pytest

from shopstock import create_app
from shopstock.extensions import db
from shopstock.models import Category, Product, ProductVariant, User
from shopstock.models.auth import ROLE_ADMIN, ROLE_STAFF
from shopstock.services.auth_service import hash_password
from shopstock.services import session_service


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def _make_user(db_session, username, role):
    user = User(
        username=username,
        name=username.title(),
        email=f"{username}@shop.test",
        # low cost factor keeps the suite fast
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user(db_session, "staff", ROLE_STAFF)


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Áo thun", slug="ao-thun")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def product(db_session, category):
    p = Product(
        sku="TS-001",
        name="Basic Tee",
        category_id=category.id,
        purchase_price_cents=5000,
        sale_price_cents=12000,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def variant(db_session, product):
    """M/Black tee with 10 on hand, minimum 5."""
    v = ProductVariant(product_id=product.id, size="M", color="Black", stock=10, min_stock=5)
    db_session.add(v)
    db_session.commit()
    return v


def _auth_headers(user):
    _, token = session_service.create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _auth_headers(admin_user)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return _auth_headers(staff_user)
