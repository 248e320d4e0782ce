from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidInputError
from .time_utils import parse_calendar_date
from .services.order_service import OrderContext
from .services.stock_service import (
    BulkEntry,
    BulkRequest,
    StockAdjustRequest,
    StockInRequest,
    StockOutRequest,
    DEFAULT_ADJUST_REASON,
    DEFAULT_STOCK_IN_REASON,
    DEFAULT_STOCK_OUT_REASON,
)
from .services.reporting_service import SalesFilter
from .services.stock_listing import StockListingFilter
from .services.transaction_query import TransactionFilter, DEFAULT_PAGE_SIZE


class ValidationError(InvalidInputError):
    """400-level input problem found at the HTTP boundary."""


@dataclass(frozen=True)
class RequestPolicy:
    """
    Allowlist for a JSON body:
    - allowed_fields: keys a client may send (anything else is rejected)
    - required: keys that must be present
    """
    allowed_fields: frozenset[str]
    required: frozenset[str] = frozenset()

    def check(self, payload: Any) -> dict:
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        for key in payload.keys():
            if key not in self.allowed_fields:
                raise ValidationError(f"Field not allowed: {key}")

        missing = sorted(f for f in self.required if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        return payload


STOCK_IN_POLICY = RequestPolicy(
    allowed_fields=frozenset({"variant_id", "quantity", "reason", "supplier"}),
    required=frozenset({"variant_id", "quantity"}),
)

STOCK_OUT_POLICY = RequestPolicy(
    allowed_fields=frozenset({
        "variant_id", "quantity", "reason", "order_id", "create_order",
        "customer_name", "customer_phone", "customer_email",
    }),
    required=frozenset({"variant_id", "quantity"}),
)

STOCK_ADJUST_POLICY = RequestPolicy(
    allowed_fields=frozenset({"variant_id", "target_stock", "reason"}),
    required=frozenset({"variant_id", "target_stock"}),
)

BULK_POLICY = RequestPolicy(
    allowed_fields=frozenset({"transactions", "supplier", "reason"}),
    required=frozenset({"transactions"}),
)

BULK_ENTRY_POLICY = RequestPolicy(
    allowed_fields=frozenset({"product_id", "size", "color", "quantity", "min_stock", "type"}),
    required=frozenset({"product_id", "size", "color", "quantity"}),
)


# =============================================================================
# COERCION
# =============================================================================

def coerce_int(value: Any, name: str) -> int | None:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals and
    scientific notation ("1e3") so a typo never becomes a stock change.
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def coerce_text(value: Any, name: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{name} must be a string")
    text = str(value).strip()
    if max_length and len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return text


def coerce_bool(value: Any, name: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no", ""}:
        return False
    raise ValidationError(f"{name} must be a boolean")


# =============================================================================
# STOCK PAYLOADS
# =============================================================================

def parse_stock_in_payload(payload: Any) -> StockInRequest:
    data = STOCK_IN_POLICY.check(payload)
    return StockInRequest(
        variant_id=coerce_int(data["variant_id"], "variant_id"),
        quantity=coerce_int(data["quantity"], "quantity"),
        reason=coerce_text(data.get("reason"), "reason", max_length=255) or DEFAULT_STOCK_IN_REASON,
        supplier=coerce_text(data.get("supplier"), "supplier", max_length=100) or None,
    )


def parse_stock_out_payload(payload: Any) -> StockOutRequest:
    data = STOCK_OUT_POLICY.check(payload)
    order = OrderContext(
        order_id=coerce_int(data.get("order_id"), "order_id"),
        create_order=coerce_bool(data.get("create_order"), "create_order"),
        customer_name=coerce_text(data.get("customer_name"), "customer_name", max_length=100) or "",
        customer_phone=coerce_text(data.get("customer_phone"), "customer_phone", max_length=20) or "",
        customer_email=coerce_text(data.get("customer_email"), "customer_email", max_length=100) or "",
    )
    return StockOutRequest(
        variant_id=coerce_int(data["variant_id"], "variant_id"),
        quantity=coerce_int(data["quantity"], "quantity"),
        reason=coerce_text(data.get("reason"), "reason", max_length=255) or DEFAULT_STOCK_OUT_REASON,
        order=order,
    )


def parse_stock_adjust_payload(payload: Any) -> StockAdjustRequest:
    data = STOCK_ADJUST_POLICY.check(payload)
    return StockAdjustRequest(
        variant_id=coerce_int(data["variant_id"], "variant_id"),
        target_stock=coerce_int(data["target_stock"], "target_stock"),
        reason=coerce_text(data.get("reason"), "reason", max_length=255) or DEFAULT_ADJUST_REASON,
    )


def parse_bulk_payload(payload: Any) -> BulkRequest:
    data = BULK_POLICY.check(payload)
    raw_entries = data["transactions"]
    if not isinstance(raw_entries, list) or not raw_entries:
        raise ValidationError("transactions must be a non-empty list")

    entries = []
    for index, raw in enumerate(raw_entries):
        try:
            item = BULK_ENTRY_POLICY.check(raw)
            entry_type = coerce_text(item.get("type"), "type") or "in"
            entries.append(BulkEntry(
                product_id=coerce_int(item["product_id"], "product_id"),
                size=coerce_text(item["size"], "size", max_length=20),
                color=coerce_text(item["color"], "color", max_length=50),
                quantity=coerce_int(item["quantity"], "quantity"),
                min_stock=coerce_int(item.get("min_stock"), "min_stock"),
                type=entry_type.lower(),
            ))
        except ValidationError as e:
            raise ValidationError(f"transactions[{index}]: {e.message}")

    return BulkRequest(
        entries=entries,
        supplier=coerce_text(data.get("supplier"), "supplier", max_length=100),
        reason=coerce_text(data.get("reason"), "reason", max_length=255),
    )


# =============================================================================
# QUERY STRINGS
# =============================================================================

def _parse_date_arg(args, name: str):
    raw = args.get(name)
    if not raw:
        return None
    try:
        return parse_calendar_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD")


def parse_transaction_filters(args) -> TransactionFilter:
    tx_type = (args.get("type") or "").strip().lower() or None
    return TransactionFilter(
        type=tx_type,
        product_id=coerce_int(args.get("product_id") or None, "product_id"),
        variant_id=coerce_int(args.get("variant_id") or None, "variant_id"),
        user_id=coerce_int(args.get("user_id") or None, "user_id"),
        category_id=coerce_int(args.get("category_id") or None, "category_id"),
        reason=(args.get("reason") or "").strip() or None,
        search=(args.get("search") or "").strip() or None,
        start_date=_parse_date_arg(args, "start_date"),
        end_date=_parse_date_arg(args, "end_date"),
    )


def parse_sales_filters(args, *, default_group_by: str = "day") -> SalesFilter:
    return SalesFilter(
        start_date=_parse_date_arg(args, "start_date"),
        end_date=_parse_date_arg(args, "end_date"),
        category_id=coerce_int(args.get("category_id") or None, "category_id"),
        product_id=coerce_int(args.get("product_id") or None, "product_id"),
        group_by=(args.get("group_by") or "").strip().lower() or default_group_by,
    )


def parse_order_report_filters(args) -> dict:
    return {
        "start_date": _parse_date_arg(args, "start_date"),
        "end_date": _parse_date_arg(args, "end_date"),
        "status": (args.get("status") or "").strip().lower() or None,
    }


def parse_stock_listing_filters(args) -> StockListingFilter:
    return StockListingFilter(
        search=(args.get("search") or "").strip() or None,
        category_id=coerce_int(args.get("category_id") or None, "category_id"),
        category=(args.get("category") or "").strip() or None,
        low_stock=coerce_bool(args.get("low_stock"), "low_stock"),
        out_of_stock=coerce_bool(args.get("out_of_stock"), "out_of_stock"),
    )


def _int_arg_or_default(args, name: str, default: int) -> int:
    raw = args.get(name)
    if raw in (None, ""):
        return default
    return coerce_int(raw, name)


def parse_pagination(args, *, max_limit: int, default_limit: int = DEFAULT_PAGE_SIZE) -> tuple[int, int]:
    # an explicit 0 is rejected below, only a missing arg takes the default
    page = _int_arg_or_default(args, "page", 1)
    limit = _int_arg_or_default(args, "limit", default_limit)
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")
    return page, limit


def parse_optional_int_arg(args, name: str) -> int | None:
    return coerce_int(args.get(name) or None, name)


def parse_flag_arg(args, name: str) -> bool:
    return coerce_bool(args.get(name), name)


# =============================================================================
# MODEL PAYLOADS (variant create / update)
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


VARIANT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"product_id", "size", "color", "stock", "min_stock"}),
    required_on_create=frozenset({"product_id", "size", "color"}),
)

# stock is changed only through the ledger operations
VARIANT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"size", "color", "min_stock"}),
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _coerce_column(col, value: Any):
    if value is None:
        return None
    if isinstance(col.type, Integer):
        return coerce_int(value, col.key)
    if isinstance(col.type, Boolean):
        return coerce_bool(value, col.key)
    if isinstance(col.type, (String, Text)):
        return coerce_text(value, col.key)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against column metadata and a policy
    allowlist. Returns a patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_column(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank")
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")
        if isinstance(val, int) and not isinstance(val, bool) and k in {"stock", "min_stock"} and val < 0:
            raise ValidationError(f"{k} must be >= 0")

        patch[k] = val

    return patch
