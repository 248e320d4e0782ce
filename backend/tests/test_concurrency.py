"""
Concurrent stock-outs against a file-backed SQLite database.

Each worker runs in its own thread and app context, so each gets its own
session and connection.
"""

import threading

import pytest

from shopstock import create_app
from shopstock.extensions import db
from shopstock.errors import InsufficientStockError
from shopstock.models import Category, Product, ProductVariant, User
from shopstock.services import stock_service
from shopstock.services.stock_service import StockInRequest, StockOutRequest


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'STOCK_RETRY_ATTEMPTS': 5,
    })

    with app.app_context():
        db.create_all()

        user = User(username="worker", name="Worker", email="worker@shop.test", password_hash="x", role="admin")
        category = Category(name="Áo khoác", slug="ao-khoac")
        db.session.add_all([user, category])
        db.session.flush()
        product = Product(sku="CONCUR-1", name="Concurrent Coat", category_id=category.id)
        db.session.add(product)
        db.session.flush()
        variant = ProductVariant(product_id=product.id, size="M", color="Olive", stock=5, min_stock=1)
        db.session.add(variant)
        db.session.commit()

        app.config["TEST_USER_ID"] = user.id
        app.config["TEST_VARIANT_ID"] = variant.id

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_concurrently(app, target, count):
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(count)

    def worker():
        with app.app_context():
            try:
                barrier.wait()
                outcome = target()
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _current_stock(app):
    with app.app_context():
        return db.session.get(ProductVariant, app.config["TEST_VARIANT_ID"]).stock


def test_two_stock_outs_cannot_oversell(file_app):
    variant_id = file_app.config["TEST_VARIANT_ID"]
    user_id = file_app.config["TEST_USER_ID"]

    results = _run_concurrently(
        file_app,
        lambda: stock_service.stock_out(StockOutRequest(variant_id=variant_id, quantity=3), user_id=user_id),
        2,
    )

    successes = [r for r in results if isinstance(r, stock_service.StockOutResult)]
    failures = [r for r in results if isinstance(r, Exception)]

    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)
    assert failures[0].available == 2
    assert _current_stock(file_app) == 2


def test_concurrent_stock_ins_are_all_counted(file_app):
    variant_id = file_app.config["TEST_VARIANT_ID"]
    user_id = file_app.config["TEST_USER_ID"]

    results = _run_concurrently(
        file_app,
        lambda: stock_service.stock_in(StockInRequest(variant_id=variant_id, quantity=1), user_id=user_id),
        4,
    )

    assert not [r for r in results if isinstance(r, Exception)]
    assert _current_stock(file_app) == 9
