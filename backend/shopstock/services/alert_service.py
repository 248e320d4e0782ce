# Overview: Read-only stock health classification and low-stock alerts.

"""
Stock health (authoritative)

    out_of_stock:  stock == 0
    low_stock:     0 < stock <= min_stock
    in_stock:      stock > min_stock
    deficit:       max(0, min_stock - stock)

Alerts are variants with stock <= min_stock (out-of-stock ones included),
ranked most severe first: ascending (stock - min_stock), then product name,
size, color. Only active products are considered.

Nothing in this module writes.
"""

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Category, Product, ProductVariant


STATUS_OUT_OF_STOCK = "out_of_stock"
STATUS_LOW_STOCK = "low_stock"
STATUS_IN_STOCK = "in_stock"


def is_out_of_stock(variant) -> bool:
    return variant.stock == 0


def is_low_stock(variant) -> bool:
    return 0 < variant.stock <= variant.min_stock


def is_in_stock(variant) -> bool:
    return variant.stock > variant.min_stock


def deficit(variant) -> int:
    return max(0, variant.min_stock - variant.stock)


def stock_status(variant) -> str:
    if is_out_of_stock(variant):
        return STATUS_OUT_OF_STOCK
    if is_low_stock(variant):
        return STATUS_LOW_STOCK
    return STATUS_IN_STOCK


# SQL mirrors of the predicates above, for aggregate queries
OUT_OF_STOCK_SQL = ProductVariant.stock == 0
LOW_STOCK_SQL = (ProductVariant.stock > 0) & (ProductVariant.stock <= ProductVariant.min_stock)
IN_STOCK_SQL = ProductVariant.stock > ProductVariant.min_stock
ALERT_SQL = ProductVariant.stock <= ProductVariant.min_stock

# 1 = out of stock, 2 = low stock, 3 = in stock
SEVERITY_SQL = case(
    (OUT_OF_STOCK_SQL, 1),
    (ALERT_SQL, 2),
    else_=3,
)


def _count(predicate):
    return func.coalesce(func.sum(case((predicate, 1), else_=0)), 0)


def list_alerts(category_id: int | None = None) -> list[dict]:
    """Low and out-of-stock variants, most deficient first."""
    q = (
        db.session.query(ProductVariant, Product, Category)
        .join(Product, ProductVariant.product_id == Product.id)
        .join(Category, Product.category_id == Category.id)
        .filter(Product.is_active.is_(True), ALERT_SQL)
    )
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)

    rows = q.order_by(
        (ProductVariant.stock - ProductVariant.min_stock).asc(),
        Product.name.asc(),
        ProductVariant.size.asc(),
        ProductVariant.color.asc(),
    ).all()

    return [
        {
            "id": variant.id,
            "size": variant.size,
            "color": variant.color,
            "stock": variant.stock,
            "min_stock": variant.min_stock,
            "deficit": deficit(variant),
            "status": stock_status(variant),
            "product": {
                "id": product.id,
                "name": product.name,
                "sku": product.sku,
                "category": category.name,
            },
        }
        for variant, product, category in rows
    ]


def stock_health_summary(category_id: int | None = None) -> dict:
    """Counts and stock value (cents) over active products' variants."""
    q = db.session.query(
        func.count(func.distinct(Product.id)).label("total_products"),
        func.count(ProductVariant.id).label("total_variants"),
        func.coalesce(func.sum(ProductVariant.stock), 0).label("total_stock_units"),
        func.coalesce(func.sum(ProductVariant.stock * Product.purchase_price_cents), 0).label("total_stock_value_cents"),
        _count(OUT_OF_STOCK_SQL).label("out_of_stock_count"),
        _count(LOW_STOCK_SQL).label("low_stock_count"),
        _count(IN_STOCK_SQL).label("in_stock_count"),
    ).select_from(ProductVariant).join(
        Product, ProductVariant.product_id == Product.id
    ).filter(Product.is_active.is_(True))

    if category_id is not None:
        q = q.filter(Product.category_id == category_id)

    row = q.one()
    return {
        "category_id": category_id,
        "total_products": int(row.total_products or 0),
        "total_variants": int(row.total_variants or 0),
        "total_stock_units": int(row.total_stock_units or 0),
        "total_stock_value_cents": int(row.total_stock_value_cents or 0),
        "out_of_stock_count": int(row.out_of_stock_count or 0),
        "low_stock_count": int(row.low_stock_count or 0),
        "in_stock_count": int(row.in_stock_count or 0),
    }


def alert_overview(category_id: int | None = None) -> dict:
    return {
        "summary": stock_health_summary(category_id),
        "alerts": list_alerts(category_id),
    }
