# Overview: Service-layer operations for inventory reporting and Excel export.

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from sqlalchemy import case, func

from ..extensions import db
from ..errors import InvalidInputError
from ..models import Category, Order, OrderItem, Product, ProductVariant, User
from ..models.orders import ORDER_STATUSES
from ..models.inventory import TRANSACTION_TYPES
from ..time_utils import day_bounds, to_utc_z, utcnow
from .alert_service import (
    ALERT_SQL,
    OUT_OF_STOCK_SQL,
    SEVERITY_SQL,
    LOW_STOCK_SQL,
    stock_health_summary,
    stock_status,
)
from .transaction_query import TransactionFilter, query_rows, format_row, recent_transactions


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")


def category_breakdown(category_id: int | None = None) -> list[dict]:
    """Per-category variant counts, units and stock value over active products."""
    q = db.session.query(
        Category.id,
        Category.name,
        func.count(ProductVariant.id).label("variant_count"),
        func.coalesce(func.sum(ProductVariant.stock), 0).label("total_stock"),
        func.coalesce(func.sum(ProductVariant.stock * Product.purchase_price_cents), 0).label("stock_value_cents"),
        func.coalesce(func.sum(case((LOW_STOCK_SQL, 1), else_=0)), 0).label("low_stock_count"),
        func.coalesce(func.sum(case((OUT_OF_STOCK_SQL, 1), else_=0)), 0).label("out_of_stock_count"),
    ).select_from(Category).join(
        Product, Product.category_id == Category.id
    ).join(
        ProductVariant, ProductVariant.product_id == Product.id
    ).filter(Product.is_active.is_(True))

    if category_id is not None:
        q = q.filter(Category.id == category_id)

    rows = q.group_by(Category.id, Category.name).order_by(Category.name.asc()).all()
    return [
        {
            "category_id": r.id,
            "category_name": r.name,
            "variant_count": int(r.variant_count or 0),
            "total_stock": int(r.total_stock or 0),
            "stock_value_cents": int(r.stock_value_cents or 0),
            "low_stock_count": int(r.low_stock_count or 0),
            "out_of_stock_count": int(r.out_of_stock_count or 0),
        }
        for r in rows
    ]


def inventory_summary() -> dict:
    return {
        "summary": stock_health_summary(),
        "categories": category_breakdown(),
        "recent_transactions": recent_transactions(10),
    }


def inventory_report(
    *,
    category_id: int | None = None,
    low_stock_only: bool = False,
    out_of_stock_only: bool = False,
) -> dict:
    """Per-variant stock rows ordered out of stock, then low, then in stock."""
    q = db.session.query(ProductVariant, Product, Category).join(
        Product, ProductVariant.product_id == Product.id
    ).join(
        Category, Product.category_id == Category.id
    ).filter(Product.is_active.is_(True))

    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if out_of_stock_only:
        q = q.filter(OUT_OF_STOCK_SQL)
    elif low_stock_only:
        q = q.filter(ALERT_SQL)

    rows = q.order_by(
        SEVERITY_SQL,
        Product.name.asc(),
        ProductVariant.size.asc(),
        ProductVariant.color.asc(),
    ).all()

    items = [
        {
            "variant_id": variant.id,
            "product_id": product.id,
            "product_name": product.name,
            "sku": product.sku,
            "category_name": category.name,
            "size": variant.size,
            "color": variant.color,
            "stock": variant.stock,
            "min_stock": variant.min_stock,
            "purchase_price_cents": product.purchase_price_cents,
            "sale_price_cents": product.sale_price_cents,
            "stock_value_cents": variant.stock * (product.purchase_price_cents or 0),
            "status": stock_status(variant),
        }
        for variant, product, category in rows
    ]

    return {
        "items": items,
        "summary": stock_health_summary(category_id),
        "categories": category_breakdown(category_id),
    }


def transactions_report(filters: TransactionFilter) -> dict:
    """Every ledger row matching the filter, with quantity totals per kind."""
    rows = query_rows(filters).all()
    items = []
    totals = {t: {"count": 0, "quantity": 0} for t in TRANSACTION_TYPES}
    for tx, variant, product, category, user in rows:
        items.append(format_row(tx, variant, product, category, user))
        bucket = totals[tx.type]
        bucket["count"] += 1
        bucket["quantity"] += tx.quantity

    order_ids = {item["order_id"] for item in items if item["order_id"]}
    order_numbers = {}
    if order_ids:
        order_numbers = dict(
            db.session.query(Order.id, Order.order_number).filter(Order.id.in_(order_ids)).all()
        )
    for item in items:
        item["order_number"] = order_numbers.get(item["order_id"])

    return {"items": items, "totals": totals, "total": len(items)}


# =============================================================================
# SALES / PROFIT / ORDERS
# =============================================================================

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%G-W%V",
    "month": "%Y-%m",
    "year": "%Y",
}

TOP_PRODUCTS_LIMIT = 10
TOP_PROFIT_PRODUCTS_LIMIT = 20


@dataclass(frozen=True)
class SalesFilter:
    """
    Date range over order line creation (calendar days, both inclusive).
    group_by is one of day | week (ISO) | month | year.
    """
    start_date: date | None = None
    end_date: date | None = None
    category_id: int | None = None
    product_id: int | None = None
    group_by: str = "day"


def _check_range(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise InvalidInputError("start_date must not be after end_date")


def _period(created_at: datetime, group_by: str) -> str:
    return created_at.strftime(PERIOD_FORMATS[group_by])


def _sold_lines(filters: SalesFilter):
    """(item, order, product, category) for every order line in range."""
    _check_range(filters.start_date, filters.end_date)
    if filters.group_by not in PERIOD_FORMATS:
        raise InvalidInputError(f"group_by must be one of {', '.join(PERIOD_FORMATS)}")
    q = db.session.query(OrderItem, Order, Product, Category).join(
        Order, OrderItem.order_id == Order.id
    ).join(
        ProductVariant, OrderItem.variant_id == ProductVariant.id
    ).join(
        Product, ProductVariant.product_id == Product.id
    ).join(
        Category, Product.category_id == Category.id
    )

    start_dt, end_dt = day_bounds(filters.start_date, filters.end_date)
    if start_dt is not None:
        q = q.filter(OrderItem.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(OrderItem.created_at < end_dt)
    if filters.category_id is not None:
        q = q.filter(Product.category_id == filters.category_id)
    if filters.product_id is not None:
        q = q.filter(Product.id == filters.product_id)

    return q.order_by(OrderItem.created_at.asc(), OrderItem.id.asc()).all()


def _margin(profit: int, revenue: int) -> float:
    return round(profit * 100.0 / revenue, 2) if revenue else 0.0


def sales_report(filters: SalesFilter) -> dict:
    """Revenue, units and orders per period, plus top products and categories."""
    lines = _sold_lines(filters)

    periods: dict[str, dict] = {}
    products: dict[int, dict] = {}
    categories: dict[int, dict] = {}
    order_ids: set[int] = set()

    for item, order, product, category in lines:
        key = _period(item.created_at, filters.group_by)
        bucket = periods.setdefault(key, {
            "period": key, "orders": set(), "products": set(),
            "total_units_sold": 0, "total_revenue_cents": 0,
        })
        bucket["orders"].add(order.id)
        bucket["products"].add(product.id)
        bucket["total_units_sold"] += item.quantity
        bucket["total_revenue_cents"] += item.line_total_cents
        order_ids.add(order.id)

        prod = products.setdefault(product.id, {
            "product_id": product.id, "name": product.name, "sku": product.sku,
            "category_name": category.name, "total_sold": 0, "total_revenue_cents": 0,
        })
        prod["total_sold"] += item.quantity
        prod["total_revenue_cents"] += item.line_total_cents

        cat = categories.setdefault(category.id, {
            "category_id": category.id, "category_name": category.name, "products": set(),
            "total_sold": 0, "total_revenue_cents": 0,
        })
        cat["products"].add(product.id)
        cat["total_sold"] += item.quantity
        cat["total_revenue_cents"] += item.line_total_cents

    sales_over_time = []
    for key in sorted(periods, reverse=True):
        bucket = periods[key]
        sales_over_time.append({
            "period": key,
            "total_orders": len(bucket["orders"]),
            "total_units_sold": bucket["total_units_sold"],
            "total_revenue_cents": bucket["total_revenue_cents"],
            "unique_products_sold": len(bucket["products"]),
        })

    top_products = sorted(
        products.values(), key=lambda p: (-p["total_sold"], p["name"])
    )[:TOP_PRODUCTS_LIMIT]

    category_performance = [
        {
            "category_id": c["category_id"],
            "category_name": c["category_name"],
            "product_count": len(c["products"]),
            "total_sold": c["total_sold"],
            "total_revenue_cents": c["total_revenue_cents"],
        }
        for c in sorted(categories.values(), key=lambda c: (-c["total_revenue_cents"], c["category_name"]))
    ]

    total_revenue = sum(item.line_total_cents for item, _, _, _ in lines)
    total_orders = len(order_ids)
    return {
        "sales_over_time": sales_over_time,
        "top_products": top_products,
        "category_performance": category_performance,
        "summary": {
            "total_orders": total_orders,
            "total_units_sold": sum(item.quantity for item, _, _, _ in lines),
            "total_revenue_cents": total_revenue,
            "average_order_value_cents": total_revenue // total_orders if total_orders else 0,
        },
    }


def profit_report(filters: SalesFilter) -> dict:
    """
    Revenue minus cost per period and per product.

    Cost is the product's current purchase price times units sold.
    """
    lines = _sold_lines(filters)

    periods: dict[str, dict] = defaultdict(lambda: {"units_sold": 0, "revenue_cents": 0, "cost_cents": 0})
    products: dict[int, dict] = {}

    for item, _order, product, category in lines:
        cost = (product.purchase_price_cents or 0) * item.quantity
        bucket = periods[_period(item.created_at, filters.group_by)]
        bucket["units_sold"] += item.quantity
        bucket["revenue_cents"] += item.line_total_cents
        bucket["cost_cents"] += cost

        prod = products.setdefault(product.id, {
            "product_id": product.id, "name": product.name, "sku": product.sku,
            "category_name": category.name,
            "purchase_price_cents": product.purchase_price_cents,
            "sale_price_cents": product.sale_price_cents,
            "units_sold": 0, "revenue_cents": 0, "cost_cents": 0,
        })
        prod["units_sold"] += item.quantity
        prod["revenue_cents"] += item.line_total_cents
        prod["cost_cents"] += cost

    profit_over_time = []
    for key in sorted(periods, reverse=True):
        bucket = periods[key]
        profit = bucket["revenue_cents"] - bucket["cost_cents"]
        profit_over_time.append({
            "period": key,
            **bucket,
            "profit_cents": profit,
            "margin_percentage": _margin(profit, bucket["revenue_cents"]),
        })

    for prod in products.values():
        prod["profit_cents"] = prod["revenue_cents"] - prod["cost_cents"]
        prod["margin_percentage"] = _margin(prod["profit_cents"], prod["revenue_cents"])
    product_profitability = sorted(
        products.values(), key=lambda p: (-p["profit_cents"], p["name"])
    )[:TOP_PROFIT_PRODUCTS_LIMIT]

    revenue = sum(b["revenue_cents"] for b in profit_over_time)
    cost = sum(b["cost_cents"] for b in profit_over_time)
    return {
        "profit_over_time": profit_over_time,
        "product_profitability": product_profitability,
        "summary": {
            "units_sold": sum(b["units_sold"] for b in profit_over_time),
            "revenue_cents": revenue,
            "cost_cents": cost,
            "profit_cents": revenue - cost,
            "margin_percentage": _margin(revenue - cost, revenue),
        },
    }


def orders_report(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
) -> list[dict]:
    """Orders in range, newest first, each with its lines joined into one text."""
    _check_range(start_date, end_date)
    if status is not None and status not in ORDER_STATUSES:
        raise InvalidInputError(f"status must be one of {', '.join(ORDER_STATUSES)}")

    q = db.session.query(Order, User).outerjoin(User, Order.user_id == User.id)
    start_dt, end_dt = day_bounds(start_date, end_date)
    if start_dt is not None:
        q = q.filter(Order.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(Order.created_at < end_dt)
    if status:
        q = q.filter(Order.status == status)

    rows = []
    for order, user in q.order_by(Order.created_at.desc(), Order.id.desc()).all():
        lines = [
            f"{item.variant.product.name} ({item.variant.size}/{item.variant.color}) x{item.quantity}"
            for item in sorted(order.items, key=lambda i: i.id)
        ]
        rows.append({
            "order_id": order.id,
            "order_number": order.order_number,
            "created_at": to_utc_z(order.created_at),
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "customer_email": order.customer_email,
            "total_amount_cents": order.total_amount_cents,
            "status": order.status,
            "payment_status": order.payment_status,
            "staff_name": user.name if user is not None else None,
            "items": "; ".join(lines),
        })
    return rows


# =============================================================================
# EXCEL EXPORT
# =============================================================================

def _write_sheet(ws, columns: list[tuple[str, str, int]], rows: list[dict]) -> None:
    ws.append([header for header, _, _ in columns])
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL

    for row in rows:
        ws.append([row.get(key) for _, key, _ in columns])

    for idx, (_, _, width) in enumerate(columns, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = width
    ws.freeze_panes = "A2"


def _to_bytes(wb: Workbook) -> bytes:
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


INVENTORY_COLUMNS = [
    ("Product", "product_name", 25),
    ("SKU", "sku", 15),
    ("Category", "category_name", 15),
    ("Size", "size", 10),
    ("Color", "color", 12),
    ("Stock", "stock", 10),
    ("Min stock", "min_stock", 12),
    ("Purchase price (cents)", "purchase_price_cents", 18),
    ("Sale price (cents)", "sale_price_cents", 18),
    ("Stock value (cents)", "stock_value_cents", 20),
    ("Status", "status", 14),
]

TRANSACTION_COLUMNS = [
    ("Created at", "created_at", 22),
    ("Type", "type", 12),
    ("Product", "product_name", 25),
    ("SKU", "sku", 15),
    ("Category", "category_name", 15),
    ("Size", "size", 10),
    ("Color", "color", 12),
    ("Quantity", "quantity", 10),
    ("Reason", "reason", 25),
    ("Supplier", "supplier", 18),
    ("User", "user_name", 18),
    ("Order", "order_number", 22),
]

ORDER_COLUMNS = [
    ("Order number", "order_number", 24),
    ("Created at", "created_at", 22),
    ("Customer", "customer_name", 20),
    ("Phone", "customer_phone", 15),
    ("Email", "customer_email", 25),
    ("Total (cents)", "total_amount_cents", 15),
    ("Status", "status", 14),
    ("Payment", "payment_status", 14),
    ("Staff", "staff_name", 18),
    ("Items", "items", 40),
]


def inventory_report_xlsx(**filters) -> bytes:
    report = inventory_report(**filters)
    wb = Workbook()
    ws = wb.active
    ws.title = "Inventory"
    _write_sheet(ws, INVENTORY_COLUMNS, report["items"])
    return _to_bytes(wb)


def transactions_report_xlsx(filters: TransactionFilter) -> bytes:
    report = transactions_report(filters)
    flat = [
        {
            "created_at": item["created_at"],
            "type": item["type"],
            "product_name": item["product"]["name"],
            "sku": item["product"]["sku"],
            "category_name": item["product"]["category"],
            "size": item["variant"]["size"],
            "color": item["variant"]["color"],
            "quantity": item["quantity"],
            "reason": item["reason"],
            "supplier": item["supplier"],
            "user_name": item["user"]["name"] if item["user"] else None,
            "order_number": item["order_number"],
        }
        for item in report["items"]
    ]
    wb = Workbook()
    ws = wb.active
    ws.title = "Transactions"
    _write_sheet(ws, TRANSACTION_COLUMNS, flat)
    return _to_bytes(wb)


def orders_report_xlsx(**filters) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Orders"
    _write_sheet(ws, ORDER_COLUMNS, orders_report(**filters))
    return _to_bytes(wb)


def export_filename(prefix: str) -> str:
    return f"{prefix}_{utcnow():%Y%m%d_%H%M%S}.xlsx"
