# Overview: Service-layer stock ledger; the only code that writes ProductVariant.stock.

"""
Stock Ledger Invariants (authoritative)

Stock model:
- ProductVariant.stock is the current quantity on hand; it is never negative.
- Every change to it is paired with exactly one InventoryTransaction written
  in the same DB transaction. Ledger rows are append-only.
- InventoryTransaction.quantity is the magnitude of the change; the type
  (in | out | adjustment) implies the direction.

Units of work:
- stock_in / stock_out / stock_adjust: {variant update, ledger insert,
  optional order + item} commit together or not at all.
- bulk_apply: the whole batch commits together or not at all.
- Current stock is re-read (locked where supported) inside every unit before
  the new value is computed. Concurrent writers on the same variant are
  caught by the version counter and the unit is retried from the read.

Business rules:
- stock_out refuses to go below zero (InsufficientStockError).
- bulk_apply "out" clamps at zero instead (bulk import tolerance).
- stock_adjust to the current value is a no-op: no ledger row, change 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict

from flask import current_app

from ..extensions import db
from ..models import InventoryTransaction, Order, Product, ProductVariant
from ..models.inventory import TRANSACTION_ADJUSTMENT, TRANSACTION_IN, TRANSACTION_OUT
from ..errors import InvalidInputError, NotFoundError, InsufficientStockError
from .concurrency import lock_for_update, run_with_retry
from .order_service import (
    OrderContext,
    OrderDerivationPolicy,
    create_point_of_sale_order,
    policy_from_config,
)


DEFAULT_STOCK_IN_REASON = "Stock replenishment"
DEFAULT_STOCK_OUT_REASON = "Manual adjustment"
DEFAULT_ADJUST_REASON = "Stock adjustment"

BULK_TYPES = (TRANSACTION_IN, TRANSACTION_OUT)


# =============================================================================
# REQUESTS
# =============================================================================

@dataclass(frozen=True)
class StockInRequest:
    variant_id: int
    quantity: int
    reason: str = DEFAULT_STOCK_IN_REASON
    supplier: str | None = None


@dataclass(frozen=True)
class StockOutRequest:
    variant_id: int
    quantity: int
    reason: str = DEFAULT_STOCK_OUT_REASON
    order: OrderContext = field(default_factory=OrderContext)


@dataclass(frozen=True)
class StockAdjustRequest:
    variant_id: int
    target_stock: int
    reason: str = DEFAULT_ADJUST_REASON


@dataclass(frozen=True)
class BulkEntry:
    """One line of a bulk transaction. The variant is found by (product, size, color)."""
    product_id: int
    size: str
    color: str
    quantity: int
    min_stock: int | None = None
    type: str = TRANSACTION_IN


@dataclass(frozen=True)
class BulkRequest:
    entries: list[BulkEntry]
    supplier: str | None = None
    reason: str | None = None


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class StockInResult:
    transaction_id: int
    previous_stock: int
    added_quantity: int
    new_stock: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StockOutResult:
    transaction_id: int
    previous_stock: int
    removed_quantity: int
    new_stock: int
    order_id: int | None
    order_created: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StockAdjustResult:
    previous_stock: int
    new_stock: int
    change: int
    transaction_id: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BulkEntryResult:
    variant_id: int
    transaction_id: int | None
    previous_stock: int
    new_stock: int
    quantity: int

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# VALIDATION
# =============================================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_positive_int(value, name: str) -> int:
    if not _is_int(value) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive integer")
    return value


def _require_non_negative_int(value, name: str) -> int:
    if not _is_int(value) or value < 0:
        raise InvalidInputError(f"{name} must be a non-negative integer")
    return value


def _require_user(user_id) -> int:
    if not _is_int(user_id):
        raise InvalidInputError("acting user is required")
    return user_id


def _require_reason(reason, default: str) -> str:
    text = (reason or "").strip()
    return text or default


def validate_bulk_entry(entry: BulkEntry, index: int) -> None:
    """Raise InvalidInputError naming the offending line."""
    where = f"transactions[{index}]"
    if not _is_int(entry.product_id) or entry.product_id <= 0:
        raise InvalidInputError(f"{where}: product_id is required")
    if not (entry.size or "").strip():
        raise InvalidInputError(f"{where}: size is required")
    if not (entry.color or "").strip():
        raise InvalidInputError(f"{where}: color is required")
    if not _is_int(entry.quantity) or entry.quantity <= 0:
        raise InvalidInputError(f"{where}: quantity must be a positive integer")
    if entry.min_stock is not None and (not _is_int(entry.min_stock) or entry.min_stock < 0):
        raise InvalidInputError(f"{where}: min_stock must be a non-negative integer")
    if entry.type not in BULK_TYPES:
        raise InvalidInputError(f"{where}: type must be one of {', '.join(BULK_TYPES)}")


# =============================================================================
# INTERNALS
# =============================================================================

def _load_variant(variant_id: int) -> ProductVariant:
    """Fresh, locked read of the variant row. Never served from the identity map."""
    query = db.session.query(ProductVariant).filter_by(id=variant_id).populate_existing()
    variant = lock_for_update(query).first()
    if variant is None:
        raise NotFoundError("Product variant not found", details={"variant_id": variant_id})
    return variant


def _record_transaction(
    *,
    variant: ProductVariant,
    kind: str,
    quantity: int,
    reason: str,
    user_id: int | None,
    supplier: str | None = None,
    order_id: int | None = None,
) -> InventoryTransaction:
    """Append one ledger row. Flushes, so the variant update is checked here too."""
    tx = InventoryTransaction(
        variant_id=variant.id,
        type=kind,
        quantity=quantity,
        reason=reason,
        supplier=supplier or None,
        order_id=order_id,
        user_id=user_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def _default_policy() -> OrderDerivationPolicy:
    return policy_from_config(current_app.config)


# =============================================================================
# OPERATIONS
# =============================================================================

def stock_in(request: StockInRequest, *, user_id: int) -> StockInResult:
    """Add `quantity` units to a variant."""
    quantity = _require_positive_int(request.quantity, "quantity")
    _require_positive_int(request.variant_id, "variant_id")
    _require_user(user_id)
    reason = _require_reason(request.reason, DEFAULT_STOCK_IN_REASON)

    def _op():
        variant = _load_variant(request.variant_id)
        previous = variant.stock
        variant.stock = previous + quantity

        tx = _record_transaction(
            variant=variant,
            kind=TRANSACTION_IN,
            quantity=quantity,
            reason=reason,
            supplier=request.supplier,
            user_id=user_id,
        )
        db.session.commit()
        return StockInResult(
            transaction_id=tx.id,
            previous_stock=previous,
            added_quantity=quantity,
            new_stock=previous + quantity,
        )

    return run_with_retry(_op)


def stock_out(
    request: StockOutRequest,
    *,
    user_id: int,
    policy: OrderDerivationPolicy | None = None,
) -> StockOutResult:
    """
    Remove `quantity` units from a variant, optionally recording a sale.

    Raises InsufficientStockError when quantity exceeds the stock on hand.
    """
    quantity = _require_positive_int(request.quantity, "quantity")
    _require_positive_int(request.variant_id, "variant_id")
    _require_user(user_id)
    reason = _require_reason(request.reason, DEFAULT_STOCK_OUT_REASON)
    context = request.order
    if context.order_id is not None:
        _require_positive_int(context.order_id, "order_id")

    policy = policy or _default_policy()
    create_order = policy.should_create(context, reason)
    walk_in_name = current_app.config.get("WALK_IN_CUSTOMER_NAME", "Khách lẻ")

    def _op():
        variant = _load_variant(request.variant_id)
        previous = variant.stock
        if quantity > previous:
            raise InsufficientStockError(available=previous, requested=quantity)

        order_id = context.order_id
        order_created = False
        if create_order:
            order = create_point_of_sale_order(
                variant=variant,
                quantity=quantity,
                context=context,
                user_id=user_id,
                walk_in_name=walk_in_name,
            )
            order_id = order.id
            order_created = True
        elif order_id is not None and db.session.get(Order, order_id) is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})

        variant.stock = previous - quantity

        tx = _record_transaction(
            variant=variant,
            kind=TRANSACTION_OUT,
            quantity=quantity,
            reason=reason,
            order_id=order_id,
            user_id=user_id,
        )
        db.session.commit()
        return StockOutResult(
            transaction_id=tx.id,
            previous_stock=previous,
            removed_quantity=quantity,
            new_stock=previous - quantity,
            order_id=order_id,
            order_created=order_created,
        )

    return run_with_retry(_op)


def stock_adjust(request: StockAdjustRequest, *, user_id: int) -> StockAdjustResult:
    """
    Set a variant's stock to an exact value (e.g. after a physical count).

    The ledger row stores |target - previous|; the signed change is only in
    the returned result.
    """
    target = _require_non_negative_int(request.target_stock, "target_stock")
    _require_positive_int(request.variant_id, "variant_id")
    _require_user(user_id)
    reason = _require_reason(request.reason, DEFAULT_ADJUST_REASON)

    def _op():
        variant = _load_variant(request.variant_id)
        previous = variant.stock
        change = target - previous

        if change == 0:
            # Releases the row lock; nothing was written.
            db.session.rollback()
            return StockAdjustResult(previous_stock=previous, new_stock=previous, change=0)

        variant.stock = target
        tx = _record_transaction(
            variant=variant,
            kind=TRANSACTION_ADJUSTMENT,
            quantity=abs(change),
            reason=reason,
            user_id=user_id,
        )
        db.session.commit()
        return StockAdjustResult(
            previous_stock=previous,
            new_stock=target,
            change=change,
            transaction_id=tx.id,
        )

    return run_with_retry(_op)


def _find_or_create_variant(entry: BulkEntry, default_min_stock: int) -> ProductVariant:
    query = db.session.query(ProductVariant).filter_by(
        product_id=entry.product_id,
        size=entry.size,
        color=entry.color,
    ).populate_existing()
    variant = lock_for_update(query).first()
    if variant is not None:
        return variant

    if db.session.get(Product, entry.product_id) is None:
        raise NotFoundError("Product not found", details={"product_id": entry.product_id})

    variant = ProductVariant(
        product_id=entry.product_id,
        size=entry.size,
        color=entry.color,
        stock=0,
        min_stock=entry.min_stock if entry.min_stock is not None else default_min_stock,
    )
    db.session.add(variant)
    db.session.flush()
    return variant


def bulk_apply(request: BulkRequest, *, user_id: int) -> list[BulkEntryResult]:
    """
    Apply a batch of in/out lines as one unit of work.

    Variants missing for a (product, size, color) are created with stock 0.
    "out" lines clamp at zero. The ledger row carries the quantity actually
    applied; a clamped line that changes nothing writes no ledger row.
    Any invalid line aborts the whole batch before anything is written.
    """
    _require_user(user_id)
    entries = list(request.entries or [])
    if not entries:
        raise InvalidInputError("transactions must be a non-empty list")
    for index, entry in enumerate(entries):
        validate_bulk_entry(entry, index)

    supplier = (request.supplier or "").strip() or None
    default_min_stock = current_app.config.get("DEFAULT_MIN_STOCK", 5)

    def _op():
        results: list[BulkEntryResult] = []
        for entry in entries:
            variant = _find_or_create_variant(entry, default_min_stock)
            previous = variant.stock

            if entry.type == TRANSACTION_IN:
                new_stock = previous + entry.quantity
            else:
                new_stock = max(0, previous - entry.quantity)

            variant.stock = new_stock
            if entry.min_stock is not None:
                variant.min_stock = entry.min_stock

            applied = abs(new_stock - previous)
            tx_id = None
            if applied:
                tx = _record_transaction(
                    variant=variant,
                    kind=entry.type,
                    quantity=applied,
                    reason=_require_reason(request.reason, f"Bulk {entry.type}"),
                    supplier=supplier,
                    user_id=user_id,
                )
                tx_id = tx.id
            else:
                db.session.flush()

            results.append(BulkEntryResult(
                variant_id=variant.id,
                transaction_id=tx_id,
                previous_stock=previous,
                new_stock=new_stock,
                quantity=entry.quantity,
            ))

        db.session.commit()
        return results

    return run_with_retry(_op)
