# backend/shopstock/routes/reports.py
"""
Inventory, sales and profit reporting routes (admin or manager).

JSON endpoints return report data; the /export variants return .xlsx.
"""
from io import BytesIO

from flask import Blueprint, request, send_file

from ..decorators import require_auth, require_inventory_role
from ..services import reporting_service
from ..validation import (
    parse_flag_arg,
    parse_optional_int_arg,
    parse_order_report_filters,
    parse_sales_filters,
    parse_transaction_filters,
)


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _inventory_filters() -> dict:
    return {
        "category_id": parse_optional_int_arg(request.args, "category_id"),
        "low_stock_only": parse_flag_arg(request.args, "low_stock"),
        "out_of_stock_only": parse_flag_arg(request.args, "out_of_stock"),
    }


def _xlsx_response(data: bytes, prefix: str):
    return send_file(
        BytesIO(data),
        mimetype=reporting_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=reporting_service.export_filename(prefix),
    )


@reports_bp.get("/inventory")
@require_auth
@require_inventory_role
def inventory_report_route():
    return reporting_service.inventory_report(**_inventory_filters()), 200


@reports_bp.get("/inventory/export")
@require_auth
@require_inventory_role
def inventory_report_export_route():
    data = reporting_service.inventory_report_xlsx(**_inventory_filters())
    return _xlsx_response(data, "inventory_report")


@reports_bp.get("/transactions")
@require_auth
@require_inventory_role
def transactions_report_route():
    filters = parse_transaction_filters(request.args)
    return reporting_service.transactions_report(filters), 200


@reports_bp.get("/transactions/export")
@require_auth
@require_inventory_role
def transactions_report_export_route():
    filters = parse_transaction_filters(request.args)
    data = reporting_service.transactions_report_xlsx(filters)
    return _xlsx_response(data, "transactions_report")


@reports_bp.get("/sales")
@require_auth
@require_inventory_role
def sales_report_route():
    """Query params: start_date, end_date, category_id, product_id, group_by (default day)."""
    filters = parse_sales_filters(request.args)
    return reporting_service.sales_report(filters), 200


@reports_bp.get("/profit")
@require_auth
@require_inventory_role
def profit_report_route():
    """Query params: start_date, end_date, group_by (default month)."""
    filters = parse_sales_filters(request.args, default_group_by="month")
    return reporting_service.profit_report(filters), 200


@reports_bp.get("/orders")
@require_auth
@require_inventory_role
def orders_report_route():
    rows = reporting_service.orders_report(**parse_order_report_filters(request.args))
    return {"items": rows, "total": len(rows)}, 200


@reports_bp.get("/orders/export")
@require_auth
@require_inventory_role
def orders_report_export_route():
    data = reporting_service.orders_report_xlsx(**parse_order_report_filters(request.args))
    return _xlsx_response(data, "orders_report")
