"""Live stock listing of variants (GET /api/inventory/variants)."""

import pytest

from shopstock.models import Category, Product, ProductVariant
from shopstock.services.stock_listing import StockListingFilter, list_stock_variants


@pytest.fixture
def shelf(db_session, category):
    jeans = Category(name="Quần jeans", slug="quan-jeans")
    db_session.add(jeans)
    db_session.flush()

    tee = Product(sku="TS-100", name="Alpha Tee", category_id=category.id)
    denim = Product(sku="JN_100", name="Beta Jeans", category_id=jeans.id)
    retired = Product(sku="OLD-1", name="Aardvark Retired", category_id=category.id, is_active=False)
    db_session.add_all([tee, denim, retired])
    db_session.flush()

    db_session.add_all([
        ProductVariant(product_id=tee.id, size="S", color="White", stock=0, min_stock=5),
        ProductVariant(product_id=tee.id, size="M", color="Black", stock=3, min_stock=5),
        ProductVariant(product_id=tee.id, size="M", color="Blue", stock=20, min_stock=5),
        ProductVariant(product_id=denim.id, size="L", color="Blue", stock=4, min_stock=2),
        ProductVariant(product_id=retired.id, size="M", color="Grey", stock=0, min_stock=5),
    ])
    db_session.commit()
    return {"tee": tee, "denim": denim, "jeans": jeans}


def _labels(page):
    return [(i["product"]["name"], i["size"], i["color"]) for i in page.items]


def test_lists_active_products_in_name_size_color_order(shelf):
    page = list_stock_variants(StockListingFilter())

    assert _labels(page) == [
        ("Alpha Tee", "M", "Black"),
        ("Alpha Tee", "M", "Blue"),
        ("Alpha Tee", "S", "White"),
        ("Beta Jeans", "L", "Blue"),
    ]
    assert page.total == 4
    assert page.items[0]["status"] == "low_stock"
    assert page.items[0]["deficit"] == 2


def test_out_of_stock_filter_wins_over_low_stock(shelf):
    page = list_stock_variants(StockListingFilter(low_stock=True, out_of_stock=True))
    assert _labels(page) == [("Alpha Tee", "S", "White")]


def test_low_stock_filter_excludes_empty_variants(shelf):
    page = list_stock_variants(StockListingFilter(low_stock=True))
    assert {i["status"] for i in page.items} == {"low_stock"}
    assert page.total == 1


def test_search_and_category_filters(shelf):
    by_sku = list_stock_variants(StockListingFilter(search="jn_"))
    assert [i["product"]["sku"] for i in by_sku.items] == ["JN_100"]

    # underscore is literal, not a single-char wildcard
    assert list_stock_variants(StockListingFilter(search="TS_")).total == 0

    by_category = list_stock_variants(StockListingFilter(category_id=shelf["jeans"].id))
    assert by_category.total == 1
    by_name = list_stock_variants(StockListingFilter(category="Quần jeans"))
    assert by_name.total == 1


def test_pagination(shelf):
    page = list_stock_variants(StockListingFilter(), page=2, limit=3)
    assert _labels(page) == [("Beta Jeans", "L", "Blue")]
    assert page.to_dict()["pagination"] == {"page": 2, "limit": 3, "total": 4, "total_pages": 2}


def test_route(client, shelf, admin_headers):
    resp = client.get("/api/inventory/variants?out_of_stock=true", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert [i["product"]["sku"] for i in body["items"]] == ["TS-100"]
    assert body["pagination"]["limit"] == 100

    resp = client.get("/api/inventory/variants?search=alpha&limit=2", headers=admin_headers)
    assert resp.get_json()["pagination"]["total"] == 3
    assert len(resp.get_json()["items"]) == 2


def test_route_rejects_bad_params(client, shelf, admin_headers, staff_headers):
    assert client.get("/api/inventory/variants?page=0", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/variants?limit=0", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/variants?low_stock=maybe", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/variants", headers=staff_headers).status_code == 403
