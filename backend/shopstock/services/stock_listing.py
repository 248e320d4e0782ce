# Overview: Live stock listing of active variants with health filters.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product, ProductVariant
from ..errors import InvalidInputError
from .alert_service import LOW_STOCK_SQL, OUT_OF_STOCK_SQL, deficit, stock_status
from .transaction_query import TransactionPage, _like


DEFAULT_LISTING_PAGE_SIZE = 100


@dataclass(frozen=True)
class StockListingFilter:
    """
    search matches product name or SKU (case-insensitive substring).
    out_of_stock wins over low_stock when both are set.
    """
    search: str | None = None
    category_id: int | None = None
    category: str | None = None
    low_stock: bool = False
    out_of_stock: bool = False


def _listing_query(filters: StockListingFilter, *entities):
    q = (
        db.session.query(*entities)
        .select_from(ProductVariant)
        .join(Product, ProductVariant.product_id == Product.id)
        .join(Category, Product.category_id == Category.id)
        .filter(Product.is_active.is_(True))
    )

    search = (filters.search or "").strip()
    if search:
        pattern = _like(search)
        q = q.filter(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.sku.ilike(pattern, escape="\\"),
        ))
    if filters.category_id is not None:
        q = q.filter(Product.category_id == filters.category_id)
    category = (filters.category or "").strip()
    if category:
        q = q.filter(Category.name == category)

    if filters.out_of_stock:
        q = q.filter(OUT_OF_STOCK_SQL)
    elif filters.low_stock:
        q = q.filter(LOW_STOCK_SQL)
    return q


def _format_variant(variant, product, category) -> dict:
    return {
        "id": variant.id,
        "size": variant.size,
        "color": variant.color,
        "stock": variant.stock,
        "min_stock": variant.min_stock,
        "status": stock_status(variant),
        "deficit": deficit(variant),
        "product": {
            "id": product.id,
            "name": product.name,
            "sku": product.sku,
            "category": category.name,
        },
    }


def list_stock_variants(
    filters: StockListingFilter,
    *,
    page: int = 1,
    limit: int = DEFAULT_LISTING_PAGE_SIZE,
    max_limit: int = 500,
) -> TransactionPage:
    """Variants of active products ordered by product name, size, color."""
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise InvalidInputError("page must be a positive integer")
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1 or limit > max_limit:
        raise InvalidInputError(f"limit must be between 1 and {max_limit}")

    rows = (
        _listing_query(filters, ProductVariant, Product, Category)
        .order_by(
            Product.name.asc(),
            ProductVariant.size.asc(),
            ProductVariant.color.asc(),
            ProductVariant.id.asc(),
        )
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    total = _listing_query(filters, func.count(ProductVariant.id)).scalar()

    return TransactionPage(
        items=[_format_variant(*row) for row in rows],
        page=page,
        limit=limit,
        total=int(total or 0),
    )
