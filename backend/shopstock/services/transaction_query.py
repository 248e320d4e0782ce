# Overview: Read-only, filtered and paginated access to the stock ledger.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, InventoryTransaction, Product, ProductVariant, User
from ..models.inventory import TRANSACTION_TYPES
from ..errors import InvalidInputError
from ..time_utils import day_bounds, to_utc_z


DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class TransactionFilter:
    """
    All fields optional; set fields are AND-ed.

    start_date / end_date are calendar days, both inclusive.
    reason matches the ledger reason only; search also matches product name
    and SKU. Both are case-insensitive substrings.
    """
    type: str | None = None
    product_id: int | None = None
    variant_id: int | None = None
    user_id: int | None = None
    category_id: int | None = None
    reason: str | None = None
    search: str | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class TransactionPage:
    items: list[dict]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def to_dict(self) -> dict:
        return {
            "items": self.items,
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
        }


def _like(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_predicates(filters: TransactionFilter) -> list:
    """Translate a filter into SQLAlchemy criteria (bound parameters only)."""
    if filters.type is not None and filters.type not in TRANSACTION_TYPES:
        raise InvalidInputError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise InvalidInputError("start_date must not be after end_date")

    criteria = []
    if filters.type:
        criteria.append(InventoryTransaction.type == filters.type)
    if filters.product_id is not None:
        criteria.append(Product.id == filters.product_id)
    if filters.variant_id is not None:
        criteria.append(InventoryTransaction.variant_id == filters.variant_id)
    if filters.user_id is not None:
        criteria.append(InventoryTransaction.user_id == filters.user_id)
    if filters.category_id is not None:
        criteria.append(Product.category_id == filters.category_id)

    reason = (filters.reason or "").strip()
    if reason:
        criteria.append(InventoryTransaction.reason.ilike(_like(reason), escape="\\"))

    search = (filters.search or "").strip()
    if search:
        pattern = _like(search)
        criteria.append(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.sku.ilike(pattern, escape="\\"),
            InventoryTransaction.reason.ilike(pattern, escape="\\"),
        ))

    start_dt, end_dt = day_bounds(filters.start_date, filters.end_date)
    if start_dt is not None:
        criteria.append(InventoryTransaction.created_at >= start_dt)
    if end_dt is not None:
        criteria.append(InventoryTransaction.created_at < end_dt)

    return criteria


def _base_query(*entities):
    return (
        db.session.query(*entities)
        .select_from(InventoryTransaction)
        .join(ProductVariant, InventoryTransaction.variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .join(Category, Product.category_id == Category.id)
    )


def query_rows(filters: TransactionFilter):
    """Unpaginated (tx, variant, product, category, user) rows, newest first."""
    q = _base_query(InventoryTransaction, ProductVariant, Product, Category, User).outerjoin(
        User, InventoryTransaction.user_id == User.id
    )
    for criterion in build_predicates(filters):
        q = q.filter(criterion)
    return q.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())


def count_transactions(filters: TransactionFilter) -> int:
    q = _base_query(db.func.count(InventoryTransaction.id))
    for criterion in build_predicates(filters):
        q = q.filter(criterion)
    return int(q.scalar() or 0)


def format_row(tx, variant, product, category, user) -> dict:
    return {
        "id": tx.id,
        "type": tx.type,
        "quantity": tx.quantity,
        "reason": tx.reason,
        "supplier": tx.supplier,
        "order_id": tx.order_id,
        "created_at": to_utc_z(tx.created_at),
        "variant": {
            "id": variant.id,
            "size": variant.size,
            "color": variant.color,
            "current_stock": variant.stock,
        },
        "product": {
            "id": product.id,
            "name": product.name,
            "sku": product.sku,
            "category": category.name,
        },
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
        } if user is not None else None,
    }


def list_transactions(
    filters: TransactionFilter,
    *,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    max_limit: int = 500,
) -> TransactionPage:
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise InvalidInputError("page must be a positive integer")
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1 or limit > max_limit:
        raise InvalidInputError(f"limit must be between 1 and {max_limit}")

    rows = query_rows(filters).limit(limit).offset((page - 1) * limit).all()
    return TransactionPage(
        items=[format_row(*row) for row in rows],
        page=page,
        limit=limit,
        total=count_transactions(filters),
    )


def recent_transactions(limit: int = 10) -> list[dict]:
    rows = query_rows(TransactionFilter()).limit(limit).all()
    return [format_row(*row) for row in rows]
