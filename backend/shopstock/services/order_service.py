# Overview: Service-layer order derivation for stock-outs; decides and builds point-of-sale orders.

"""
Order derivation rules (authoritative)

A stock-out may represent a sale. When it does, an Order and a single
OrderItem are created in the same unit of work as the stock update, and the
ledger entry points at the new order.

Keyword rule (default, kept for compatibility with existing clients):
    create_order flag
    OR customer_name non-empty
    OR customer_phone non-empty
    OR (no order_id supplied AND reason contains a sale keyword)

Flag-only rule: the keyword clause is dropped. Select with
ORDER_DERIVATION_MODE=flag_only.

Synthesized orders are immediate point-of-sale deductions: status
"completed", payment "paid", total = sale price * quantity.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Iterable

from ..extensions import db
from ..models import Order, OrderItem, ProductVariant
from ..errors import InvalidInputError
from ..time_utils import utcnow


ORDER_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_PAID = "paid"


@dataclass(frozen=True)
class OrderContext:
    """Order-related fields of a stock-out request."""
    order_id: int | None = None
    create_order: bool = False
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""


def _normalize(text: str | None) -> str:
    return unicodedata.normalize("NFC", (text or "").strip()).lower()


class OrderDerivationPolicy:
    """Decides whether a stock-out should synthesize an order."""

    def should_create(self, context: OrderContext, reason: str) -> bool:
        raise NotImplementedError


class FlagOnlyOrderPolicy(OrderDerivationPolicy):
    """Explicit flag or customer details only."""

    def should_create(self, context: OrderContext, reason: str) -> bool:
        return bool(
            context.create_order
            or (context.customer_name or "").strip()
            or (context.customer_phone or "").strip()
        )


class KeywordOrderPolicy(FlagOnlyOrderPolicy):
    """Flag-only rule plus a sale-keyword match on the free-text reason."""

    def __init__(self, keywords: Iterable[str] = ("bán",)):
        self.keywords = tuple(_normalize(k) for k in keywords if k and k.strip())

    def should_create(self, context: OrderContext, reason: str) -> bool:
        if super().should_create(context, reason):
            return True
        if context.order_id:
            return False
        text = _normalize(reason)
        return any(keyword in text for keyword in self.keywords)


def policy_from_config(config) -> OrderDerivationPolicy:
    mode = (config.get("ORDER_DERIVATION_MODE") or "keyword").lower()
    if mode == "flag_only":
        return FlagOnlyOrderPolicy()
    if mode == "keyword":
        return KeywordOrderPolicy(config.get("SALE_KEYWORDS") or ("bán",))
    raise ValueError(f"unknown ORDER_DERIVATION_MODE: {mode}")


def generate_order_number() -> str:
    """
    Time-derived order number (microsecond resolution).

    A clash is possible in theory; the unique constraint turns it into a
    ConflictError the caller may retry.
    """
    return f"ORD-{utcnow():%Y%m%d%H%M%S%f}"


def create_point_of_sale_order(
    *,
    variant: ProductVariant,
    quantity: int,
    context: OrderContext,
    user_id: int | None,
    walk_in_name: str,
) -> Order:
    """
    Create a completed, paid order with one item for `quantity` of `variant`.

    Does not commit; the caller owns the unit of work.
    """
    if quantity <= 0:
        raise InvalidInputError("quantity must be > 0")

    unit_price = variant.product.sale_price_cents or 0
    line_total = unit_price * quantity

    order = Order(
        order_number=generate_order_number(),
        customer_name=(context.customer_name or "").strip() or walk_in_name,
        customer_phone=(context.customer_phone or "").strip(),
        customer_email=(context.customer_email or "").strip(),
        total_amount_cents=line_total,
        status=ORDER_STATUS_COMPLETED,
        payment_status=PAYMENT_STATUS_PAID,
        user_id=user_id,
    )
    db.session.add(order)
    db.session.flush()

    item = OrderItem(
        order_id=order.id,
        variant_id=variant.id,
        quantity=quantity,
        unit_price_cents=unit_price,
        line_total_cents=line_total,
    )
    db.session.add(item)
    db.session.flush()
    return order
