# Overview: Service-layer operations for product variants (size/color combinations).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderItem, Product, ProductVariant
from ..errors import ConflictError, IntegrityViolationError, InvalidInputError, NotFoundError
from .alert_service import deficit, stock_status


def variant_to_dict(variant: ProductVariant, *, include_product: bool = True) -> dict:
    data = variant.to_dict()
    data["status"] = stock_status(variant)
    data["deficit"] = deficit(variant)
    if include_product and variant.product is not None:
        data["product"] = {
            "id": variant.product.id,
            "name": variant.product.name,
            "sku": variant.product.sku,
            "sale_price_cents": variant.product.sale_price_cents,
        }
    return data


def get_variant(variant_id: int) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise NotFoundError("Product variant not found", details={"variant_id": variant_id})
    return variant


def list_variants(product_id: int) -> list[ProductVariant]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return (
        db.session.query(ProductVariant)
        .filter_by(product_id=product_id)
        .order_by(ProductVariant.size.asc(), ProductVariant.color.asc())
        .all()
    )


def _ensure_unique_combination(product_id: int, size: str, color: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(ProductVariant.id).filter_by(product_id=product_id, size=size, color=color)
    if exclude_id is not None:
        q = q.filter(ProductVariant.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(
            "Variant with this size and color already exists",
            details={"product_id": product_id, "size": size, "color": color},
        )


def create_variant(patch: dict) -> ProductVariant:
    """
    Create a variant from a validated patch.

    Opening stock is a plain column value here; it is not a ledger movement.
    """
    product_id = patch["product_id"]
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})

    _ensure_unique_combination(product_id, patch["size"], patch["color"])

    variant = ProductVariant(
        product_id=product_id,
        size=patch["size"],
        color=patch["color"],
        stock=patch.get("stock") or 0,
        min_stock=patch.get("min_stock") or 0,
    )
    db.session.add(variant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Variant with this size and color already exists")
    return variant


def update_variant(variant_id: int, patch: dict) -> ProductVariant:
    """Update size, color or min_stock. Stock moves only through the ledger."""
    if "stock" in patch:
        raise InvalidInputError("stock can only be changed through stock operations")

    variant = get_variant(variant_id)
    size = patch.get("size", variant.size)
    color = patch.get("color", variant.color)
    if (size, color) != (variant.size, variant.color):
        _ensure_unique_combination(variant.product_id, size, color, exclude_id=variant.id)

    for key, value in patch.items():
        setattr(variant, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Variant with this size and color already exists")
    return variant


def delete_variant(variant_id: int) -> None:
    """
    Delete a variant and its ledger history.

    Refused while any order item references the variant.
    """
    variant = get_variant(variant_id)
    referenced = db.session.query(OrderItem.id).filter_by(variant_id=variant.id).first()
    if referenced is not None:
        raise IntegrityViolationError(
            "Cannot delete variant that has been ordered",
            details={"variant_id": variant.id},
        )

    db.session.delete(variant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise IntegrityViolationError(
            "Cannot delete variant that is still referenced",
            details={"variant_id": variant_id},
        )
