"""HTTP contract of the inventory routes."""

from shopstock.extensions import db
from shopstock.models import InventoryTransaction, Order, ProductVariant


def _stock(variant_id):
    db.session.expire_all()
    return db.session.get(ProductVariant, variant_id).stock


def test_requires_authentication(client, db_session, variant):
    resp = client.post("/api/inventory/stock-in", json={"variant_id": variant.id, "quantity": 1})
    assert resp.status_code == 401


def test_staff_role_is_forbidden(client, db_session, variant, staff_headers):
    resp = client.post(
        "/api/inventory/stock-in",
        json={"variant_id": variant.id, "quantity": 1},
        headers=staff_headers,
    )
    assert resp.status_code == 403
    assert _stock(variant.id) == 10


def test_stock_in(client, db_session, variant, admin_headers):
    resp = client.post(
        "/api/inventory/stock-in",
        json={"variant_id": variant.id, "quantity": "5", "supplier": "Acme"},
        headers=admin_headers,
    )

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["previous_stock"] == 10
    assert data["added_quantity"] == 5
    assert data["new_stock"] == 15
    assert isinstance(data["transaction_id"], int)


def test_stock_in_rejects_decimal_and_unknown_fields(client, db_session, variant, admin_headers):
    resp = client.post(
        "/api/inventory/stock-in",
        json={"variant_id": variant.id, "quantity": 1.5},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "INVALID_INPUT"

    resp = client.post(
        "/api/inventory/stock-in",
        json={"variant_id": variant.id, "quantity": 1, "stock": 99},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "stock" in resp.get_json()["error"]


def test_stock_out_insufficient(client, db_session, variant, admin_headers):
    resp = client.post(
        "/api/inventory/stock-out",
        json={"variant_id": variant.id, "quantity": 50},
        headers=admin_headers,
    )

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["kind"] == "INSUFFICIENT_STOCK"
    assert body["available"] == 10
    assert body["requested"] == 50
    assert body["error"] == "Insufficient stock. Available: 10, Requested: 50"


def test_stock_out_sale_keyword_creates_order(client, db_session, variant, admin_headers):
    resp = client.post(
        "/api/inventory/stock-out",
        json={"variant_id": variant.id, "quantity": 3, "reason": "Bán hàng"},
        headers=admin_headers,
    )

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["data"]["order_created"] is True
    assert body["message"] == "Stock removed and order created"
    order = db.session.get(Order, body["data"]["order_id"])
    assert order.customer_name == "Khách lẻ"
    assert _stock(variant.id) == 7


def test_stock_out_with_customer_details(client, db_session, variant, admin_headers):
    resp = client.post(
        "/api/inventory/stock-out",
        json={
            "variant_id": variant.id,
            "quantity": 1,
            "customer_name": "Nguyễn Lan",
            "customer_phone": "0901234567",
        },
        headers=admin_headers,
    )
    data = resp.get_json()["data"]
    order = db.session.get(Order, data["order_id"])
    assert order.customer_name == "Nguyễn Lan"
    assert order.customer_phone == "0901234567"


def test_stock_adjust_and_no_op(client, db_session, variant, admin_headers):
    resp = client.post(
        "/api/inventory/stock-adjust",
        json={"variant_id": variant.id, "target_stock": 4, "reason": "Kiểm kê"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"]["change"] == -6

    resp = client.post(
        "/api/inventory/stock-adjust",
        json={"variant_id": variant.id, "target_stock": 4},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["change"] == 0
    assert data["transaction_id"] is None
    assert db.session.query(InventoryTransaction).count() == 1


def test_stock_adjust_unknown_variant(client, db_session, admin_headers):
    resp = client.post(
        "/api/inventory/stock-adjust",
        json={"variant_id": 31337, "target_stock": 4},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.get_json()["kind"] == "NOT_FOUND"


def test_bulk_transaction(client, db_session, product, variant, admin_headers):
    resp = client.post(
        "/api/inventory/bulk-transaction",
        json={
            "supplier": "Acme",
            "transactions": [
                {"product_id": product.id, "size": "M", "color": "Black", "quantity": 2, "type": "OUT"},
                {"product_id": product.id, "size": "XL", "color": "Black", "quantity": 6, "min_stock": 2},
            ],
        },
        headers=admin_headers,
    )

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert [(d["previous_stock"], d["new_stock"]) for d in data] == [(10, 8), (0, 6)]


def test_bulk_transaction_reports_bad_line(client, db_session, product, admin_headers):
    resp = client.post(
        "/api/inventory/bulk-transaction",
        json={"transactions": [
            {"product_id": product.id, "size": "M", "color": "Black", "quantity": 2},
            {"product_id": product.id, "size": "M", "quantity": 2},
        ]},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("transactions[1]")
    assert db.session.query(InventoryTransaction).count() == 0


def test_transactions_listing(client, db_session, variant, admin_headers):
    for qty in (1, 2, 3):
        client.post(
            "/api/inventory/stock-in",
            json={"variant_id": variant.id, "quantity": qty},
            headers=admin_headers,
        )

    resp = client.get("/api/inventory/transactions?type=in&limit=2&page=1", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert [item["quantity"] for item in body["items"]] == [3, 2]
    assert body["items"][0]["created_at"].endswith("Z")


def test_transactions_listing_bad_params(client, db_session, admin_headers):
    assert client.get("/api/inventory/transactions?limit=0", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/transactions?page=0", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/transactions?page=-1", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/transactions?page=abc", headers=admin_headers).status_code == 400
    assert client.get("/api/inventory/transactions?start_date=2024-13-01", headers=admin_headers).status_code == 400


def test_summary(client, db_session, variant, admin_headers):
    resp = client.get("/api/inventory/summary", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["summary"]["total_variants"] == 1
    assert body["summary"]["total_stock_value_cents"] == 10 * 5000
    assert body["categories"][0]["category_name"] == "Áo thun"
    assert body["recent_transactions"] == []


def test_low_stock_alerts_route(client, db_session, variant, admin_headers):
    client.post(
        "/api/inventory/stock-out",
        json={"variant_id": variant.id, "quantity": 7},
        headers=admin_headers,
    )
    resp = client.get("/api/variants/alerts/low-stock", headers=admin_headers)
    assert resp.status_code == 200
    alerts = resp.get_json()["alerts"]
    assert len(alerts) == 1
    assert alerts[0]["deficit"] == 2
    assert alerts[0]["status"] == "low_stock"
