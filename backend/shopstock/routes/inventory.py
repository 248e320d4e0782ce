# backend/shopstock/routes/inventory.py
"""
Stock ledger routes.

SECURITY: All routes require authentication and the admin or manager role.

Every mutation is one atomic unit in the service layer; failures are raised
as StockError subclasses and rendered by the application error handler.

Time semantics:
- start_date / end_date are calendar days (YYYY-MM-DD), both inclusive.
- Timestamps are returned as ISO-8601 UTC with a trailing Z.
"""
from flask import Blueprint, request, current_app, g

from ..decorators import require_auth, require_inventory_role
from ..services import stock_service
from ..services.reporting_service import inventory_summary
from ..services.stock_listing import DEFAULT_LISTING_PAGE_SIZE, list_stock_variants
from ..services.transaction_query import list_transactions
from ..validation import (
    parse_bulk_payload,
    parse_pagination,
    parse_stock_adjust_payload,
    parse_stock_in_payload,
    parse_stock_listing_filters,
    parse_stock_out_payload,
    parse_transaction_filters,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/stock-in")
@require_auth
@require_inventory_role
def stock_in_route():
    """Add units to a variant."""
    req = parse_stock_in_payload(request.get_json(silent=True))
    result = stock_service.stock_in(req, user_id=g.current_user.id)

    current_app.logger.info(
        "stock-in variant=%s qty=%s %s->%s user=%s tx=%s",
        req.variant_id, req.quantity, result.previous_stock, result.new_stock,
        g.current_user.id, result.transaction_id,
    )
    return {"message": "Stock added successfully", "data": result.to_dict()}, 201


@inventory_bp.post("/stock-out")
@require_auth
@require_inventory_role
def stock_out_route():
    """
    Remove units from a variant.

    A completed order is created when create_order is set, customer details
    are given, or the reason names a sale (configurable policy).
    """
    req = parse_stock_out_payload(request.get_json(silent=True))
    result = stock_service.stock_out(req, user_id=g.current_user.id)

    current_app.logger.info(
        "stock-out variant=%s qty=%s %s->%s user=%s tx=%s order=%s created=%s",
        req.variant_id, req.quantity, result.previous_stock, result.new_stock,
        g.current_user.id, result.transaction_id, result.order_id, result.order_created,
    )
    message = "Stock removed and order created" if result.order_created else "Stock removed successfully"
    return {"message": message, "data": result.to_dict()}, 201


@inventory_bp.post("/stock-adjust")
@require_auth
@require_inventory_role
def stock_adjust_route():
    """Set a variant's stock to an exact count."""
    req = parse_stock_adjust_payload(request.get_json(silent=True))
    result = stock_service.stock_adjust(req, user_id=g.current_user.id)

    if result.change == 0:
        return {"message": "No stock change", "data": result.to_dict()}, 200

    current_app.logger.info(
        "stock-adjust variant=%s %s->%s change=%s user=%s tx=%s",
        req.variant_id, result.previous_stock, result.new_stock, result.change,
        g.current_user.id, result.transaction_id,
    )
    return {"message": "Stock adjusted successfully", "data": result.to_dict()}, 201


@inventory_bp.post("/bulk-transaction")
@require_auth
@require_inventory_role
def bulk_transaction_route():
    """Apply a batch of in/out lines; all or nothing."""
    req = parse_bulk_payload(request.get_json(silent=True))
    results = stock_service.bulk_apply(req, user_id=g.current_user.id)

    current_app.logger.info(
        "bulk-transaction entries=%s written=%s user=%s",
        len(results), sum(1 for r in results if r.transaction_id), g.current_user.id,
    )
    return {
        "message": f"Applied {len(results)} transactions",
        "data": [r.to_dict() for r in results],
    }, 201


@inventory_bp.get("/transactions")
@require_auth
@require_inventory_role
def list_transactions_route():
    """
    Query ledger rows, newest first.

    Query params: type, product_id, variant_id, user_id, category_id, search,
    start_date, end_date, page (default 1), limit (default 20).
    """
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 500)
    filters = parse_transaction_filters(request.args)
    page, limit = parse_pagination(request.args, max_limit=max_limit)
    result = list_transactions(filters, page=page, limit=limit, max_limit=max_limit)
    return result.to_dict(), 200


@inventory_bp.get("/summary")
@require_auth
@require_inventory_role
def inventory_summary_route():
    return inventory_summary(), 200


@inventory_bp.get("/variants")
@require_auth
@require_inventory_role
def list_stock_variants_route():
    """
    Live stock of active products' variants.

    Query params: search (name/SKU), category_id, category (name), low_stock,
    out_of_stock, page (default 1), limit (default 100).
    """
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 500)
    filters = parse_stock_listing_filters(request.args)
    page, limit = parse_pagination(
        request.args, max_limit=max_limit, default_limit=DEFAULT_LISTING_PAGE_SIZE
    )
    result = list_stock_variants(filters, page=page, limit=limit, max_limit=max_limit)
    return result.to_dict(), 200
