# backend/shopstock/routes/variants.py
"""
Product variant routes.

Reads require authentication; writes and alerts require admin or manager.
Stock itself is never writable here; use the inventory routes.
"""
from flask import Blueprint, request, current_app, g

from ..decorators import require_auth, require_inventory_role
from ..models import ProductVariant
from ..services import catalog_service
from ..services.alert_service import alert_overview
from ..validation import (
    VARIANT_CREATE_POLICY,
    VARIANT_UPDATE_POLICY,
    parse_optional_int_arg,
    validate_payload,
)


variants_bp = Blueprint("variants", __name__, url_prefix="/api/variants")


@variants_bp.get("/alerts/low-stock")
@require_auth
@require_inventory_role
def low_stock_alerts_route():
    """Variants at or below their minimum, most deficient first."""
    category_id = parse_optional_int_arg(request.args, "category_id")
    return alert_overview(category_id), 200


@variants_bp.get("/product/<int:product_id>")
@require_auth
def list_product_variants_route(product_id: int):
    variants = catalog_service.list_variants(product_id)
    return {"items": [catalog_service.variant_to_dict(v, include_product=False) for v in variants]}, 200


@variants_bp.get("/<int:variant_id>")
@require_auth
def get_variant_route(variant_id: int):
    variant = catalog_service.get_variant(variant_id)
    return catalog_service.variant_to_dict(variant), 200


@variants_bp.post("")
@require_auth
@require_inventory_role
def create_variant_route():
    patch = validate_payload(
        model=ProductVariant,
        payload=request.get_json(silent=True),
        policy=VARIANT_CREATE_POLICY,
        partial=False,
    )
    variant = catalog_service.create_variant(patch)
    current_app.logger.info(
        "variant created id=%s product=%s %s/%s user=%s",
        variant.id, variant.product_id, variant.size, variant.color, g.current_user.id,
    )
    return catalog_service.variant_to_dict(variant), 201


@variants_bp.put("/<int:variant_id>")
@require_auth
@require_inventory_role
def update_variant_route(variant_id: int):
    patch = validate_payload(
        model=ProductVariant,
        payload=request.get_json(silent=True),
        policy=VARIANT_UPDATE_POLICY,
        partial=True,
    )
    variant = catalog_service.update_variant(variant_id, patch)
    return catalog_service.variant_to_dict(variant), 200


@variants_bp.delete("/<int:variant_id>")
@require_auth
@require_inventory_role
def delete_variant_route(variant_id: int):
    catalog_service.delete_variant(variant_id)
    current_app.logger.info("variant deleted id=%s user=%s", variant_id, g.current_user.id)
    return {"message": "Variant deleted"}, 200
