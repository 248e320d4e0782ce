"""Ledger query: filters, search, date ranges and pagination."""

from datetime import date, datetime, timedelta

import pytest

from shopstock.extensions import db
from shopstock.errors import InvalidInputError
from shopstock.models import InventoryTransaction, Product, ProductVariant
from shopstock.services import stock_service
from shopstock.services.stock_service import StockAdjustRequest, StockInRequest, StockOutRequest
from shopstock.services.transaction_query import TransactionFilter, list_transactions


@pytest.fixture
def ledger(db_session, product, variant, admin_user, staff_user):
    other_product = Product(sku="JK-9", name="Rain Jacket", category_id=product.category_id)
    db_session.add(other_product)
    db_session.flush()
    jacket = ProductVariant(product_id=other_product.id, size="L", color="Navy", stock=3, min_stock=1)
    db_session.add(jacket)
    db_session.commit()

    stock_service.stock_in(StockInRequest(variant_id=variant.id, quantity=5, reason="Restock from Acme"), user_id=admin_user.id)
    stock_service.stock_out(StockOutRequest(variant_id=variant.id, quantity=2, reason="Damaged"), user_id=staff_user.id)
    stock_service.stock_adjust(StockAdjustRequest(variant_id=jacket.id, target_stock=1), user_id=admin_user.id)
    stock_service.stock_in(StockInRequest(variant_id=jacket.id, quantity=4), user_id=staff_user.id)
    return {"tee": variant, "jacket": jacket, "jacket_product": other_product}


def test_all_rows_newest_first(db_session, ledger):
    page = list_transactions(TransactionFilter())

    assert page.total == 4
    ids = [item["id"] for item in page.items]
    assert ids == sorted(ids, reverse=True)
    first = page.items[0]
    assert first["product"]["name"] == "Rain Jacket"
    assert first["variant"]["current_stock"] == 5
    assert first["user"]["name"] == "Staff"


def test_filter_by_type(db_session, ledger):
    page = list_transactions(TransactionFilter(type="adjustment"))
    assert page.total == 1
    assert page.items[0]["quantity"] == 2


def test_filter_by_variant_product_and_user(db_session, ledger, staff_user):
    assert list_transactions(TransactionFilter(variant_id=ledger["tee"].id)).total == 2
    assert list_transactions(TransactionFilter(product_id=ledger["jacket_product"].id)).total == 2
    assert list_transactions(TransactionFilter(user_id=staff_user.id)).total == 2


def test_search_matches_reason_name_and_sku(db_session, ledger):
    assert list_transactions(TransactionFilter(search="acme")).total == 1
    assert list_transactions(TransactionFilter(search="jacket")).total == 2
    assert list_transactions(TransactionFilter(search="TS-001")).total == 2
    # LIKE wildcards are matched literally
    assert list_transactions(TransactionFilter(search="%")).total == 0


def test_date_range_is_inclusive_calendar_days(db_session, ledger):
    old = db.session.query(InventoryTransaction).order_by(InventoryTransaction.id.asc()).first()
    old.created_at = datetime(2024, 3, 1, 23, 59, 59)
    db.session.commit()

    day = date(2024, 3, 1)
    assert list_transactions(TransactionFilter(start_date=day, end_date=day)).total == 1
    assert list_transactions(TransactionFilter(end_date=day - timedelta(days=1))).total == 0
    assert list_transactions(TransactionFilter(start_date=day + timedelta(days=1))).total == 3


def test_pagination(db_session, ledger):
    first = list_transactions(TransactionFilter(), page=1, limit=3)
    second = list_transactions(TransactionFilter(), page=2, limit=3)

    assert len(first.items) == 3
    assert len(second.items) == 1
    assert first.to_dict()["pagination"] == {"page": 1, "limit": 3, "total": 4, "total_pages": 2}
    assert {i["id"] for i in first.items}.isdisjoint({i["id"] for i in second.items})


@pytest.mark.parametrize("page, limit", [(0, 20), (1, 0), (1, 501)])
def test_bad_pagination_rejected(db_session, page, limit):
    with pytest.raises(InvalidInputError):
        list_transactions(TransactionFilter(), page=page, limit=limit)


def test_bad_filters_rejected(db_session):
    with pytest.raises(InvalidInputError):
        list_transactions(TransactionFilter(type="transfer"))
    with pytest.raises(InvalidInputError):
        list_transactions(TransactionFilter(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1)))


def test_reason_filter_ignores_product_fields(db_session, ledger):
    assert list_transactions(TransactionFilter(reason="damaged")).total == 1
    assert list_transactions(TransactionFilter(reason="Rain")).total == 0
