"""Stock health classification and low-stock alert ranking."""

import pytest

from shopstock.models import Category, Product, ProductVariant
from shopstock.services import alert_service


@pytest.mark.parametrize(
    "stock, min_stock, status, deficit",
    [
        (0, 5, "out_of_stock", 5),
        (0, 0, "out_of_stock", 0),
        (3, 5, "low_stock", 2),
        (5, 5, "low_stock", 0),
        (6, 5, "in_stock", 0),
        (1, 0, "in_stock", 0),
    ],
)
def test_classification(stock, min_stock, status, deficit):
    v = ProductVariant(stock=stock, min_stock=min_stock)
    assert alert_service.stock_status(v) == status
    assert alert_service.deficit(v) == deficit
    # exactly one class holds
    flags = [alert_service.is_out_of_stock(v), alert_service.is_low_stock(v), alert_service.is_in_stock(v)]
    assert flags.count(True) == 1


@pytest.fixture
def catalog(db_session, category):
    jeans = Category(name="Quần jeans", slug="quan-jeans")
    db_session.add(jeans)
    db_session.flush()

    tee = Product(sku="TS-1", name="Alpha Tee", category_id=category.id, purchase_price_cents=100)
    denim = Product(sku="JN-1", name="Beta Jeans", category_id=jeans.id, purchase_price_cents=1000)
    retired = Product(sku="OLD-1", name="Retired", category_id=category.id, is_active=False)
    db_session.add_all([tee, denim, retired])
    db_session.flush()

    variants = {
        "tee_s": ProductVariant(product_id=tee.id, size="S", color="Red", stock=0, min_stock=5),
        "tee_m": ProductVariant(product_id=tee.id, size="M", color="Red", stock=4, min_stock=5),
        "tee_l": ProductVariant(product_id=tee.id, size="L", color="Red", stock=20, min_stock=5),
        "jeans": ProductVariant(product_id=denim.id, size="32", color="Blue", stock=1, min_stock=10),
        "old": ProductVariant(product_id=retired.id, size="M", color="Grey", stock=0, min_stock=5),
    }
    db_session.add_all(variants.values())
    db_session.commit()
    return {"jeans_category": jeans, **variants}


def test_alerts_ranked_by_shortfall(db_session, catalog):
    alerts = alert_service.list_alerts()

    ids = [a["id"] for a in alerts]
    # jeans: 1-10=-9, tee_s: 0-5=-5, tee_m: 4-5=-1; in-stock and inactive excluded
    assert ids == [catalog["jeans"].id, catalog["tee_s"].id, catalog["tee_m"].id]
    assert alerts[0]["deficit"] == 9
    assert alerts[1]["status"] == "out_of_stock"
    assert alerts[2]["status"] == "low_stock"
    assert alerts[0]["product"]["category"] == "Quần jeans"


def test_alerts_filtered_by_category(db_session, catalog):
    alerts = alert_service.list_alerts(category_id=catalog["jeans_category"].id)
    assert [a["id"] for a in alerts] == [catalog["jeans"].id]


def test_summary_counts_active_products_only(db_session, catalog):
    summary = alert_service.stock_health_summary()

    assert summary["total_products"] == 2
    assert summary["total_variants"] == 4
    assert summary["total_stock_units"] == 25
    assert summary["total_stock_value_cents"] == 24 * 100 + 1 * 1000
    assert summary["out_of_stock_count"] == 1
    assert summary["low_stock_count"] == 2
    assert summary["in_stock_count"] == 1


def test_empty_catalog(db_session):
    assert alert_service.list_alerts() == []
    assert alert_service.stock_health_summary()["total_variants"] == 0
