"""Bulk in/out batches: variant creation, clamping and all-or-nothing."""

import pytest

from shopstock.extensions import db
from shopstock.errors import InvalidInputError, NotFoundError
from shopstock.models import InventoryTransaction, ProductVariant
from shopstock.services import stock_service
from shopstock.services.stock_service import BulkEntry, BulkRequest


def _variant(product_id, size, color):
    db.session.expire_all()
    return db.session.query(ProductVariant).filter_by(product_id=product_id, size=size, color=color).first()


def test_creates_missing_variant_and_adds_stock(db_session, product, admin_user):
    results = stock_service.bulk_apply(
        BulkRequest(entries=[BulkEntry(product_id=product.id, size="L", color="White", quantity=12)]),
        user_id=admin_user.id,
    )

    created = _variant(product.id, "L", "White")
    assert created.stock == 12
    assert created.min_stock == 5  # default for auto-created variants

    assert len(results) == 1
    r = results[0]
    assert (r.variant_id, r.previous_stock, r.new_stock, r.quantity) == (created.id, 0, 12, 12)

    tx = db.session.get(InventoryTransaction, r.transaction_id)
    assert (tx.type, tx.quantity, tx.reason) == ("in", 12, "Bulk in")


def test_existing_variant_and_min_stock_update(db_session, product, variant, admin_user):
    stock_service.bulk_apply(
        BulkRequest(
            entries=[BulkEntry(product_id=product.id, size="M", color="Black", quantity=3, min_stock=8)],
            supplier="Acme",
        ),
        user_id=admin_user.id,
    )

    v = _variant(product.id, "M", "Black")
    assert v.id == variant.id
    assert v.stock == 13
    assert v.min_stock == 8
    tx = db.session.query(InventoryTransaction).filter_by(variant_id=v.id).one()
    assert tx.supplier == "Acme"


def test_out_clamps_at_zero_and_records_applied_change(db_session, product, variant, admin_user):
    results = stock_service.bulk_apply(
        BulkRequest(entries=[BulkEntry(product_id=product.id, size="M", color="Black", quantity=25, type="out")]),
        user_id=admin_user.id,
    )

    assert _variant(product.id, "M", "Black").stock == 0
    r = results[0]
    assert (r.previous_stock, r.new_stock, r.quantity) == (10, 0, 25)

    tx = db.session.get(InventoryTransaction, r.transaction_id)
    assert (tx.type, tx.quantity) == ("out", 10)


def test_out_on_empty_variant_writes_no_ledger_row(db_session, product, admin_user):
    results = stock_service.bulk_apply(
        BulkRequest(entries=[BulkEntry(product_id=product.id, size="S", color="Red", quantity=4, type="out")]),
        user_id=admin_user.id,
    )

    assert results[0].transaction_id is None
    assert results[0].new_stock == 0
    assert db.session.query(InventoryTransaction).count() == 0


def test_same_variant_twice_in_one_batch(db_session, product, variant, admin_user):
    results = stock_service.bulk_apply(
        BulkRequest(entries=[
            BulkEntry(product_id=product.id, size="M", color="Black", quantity=5),
            BulkEntry(product_id=product.id, size="M", color="Black", quantity=7, type="out"),
        ]),
        user_id=admin_user.id,
    )

    assert [(r.previous_stock, r.new_stock) for r in results] == [(10, 15), (15, 8)]
    assert _variant(product.id, "M", "Black").stock == 8


def test_invalid_line_aborts_whole_batch(db_session, product, variant, admin_user):
    with pytest.raises(InvalidInputError) as exc:
        stock_service.bulk_apply(
            BulkRequest(entries=[
                BulkEntry(product_id=product.id, size="M", color="Black", quantity=5),
                BulkEntry(product_id=product.id, size="M", color="Black", quantity=0),
            ]),
            user_id=admin_user.id,
        )

    assert "transactions[1]" in exc.value.message
    assert _variant(product.id, "M", "Black").stock == 10
    assert db.session.query(InventoryTransaction).count() == 0


def test_unknown_product_rolls_back_earlier_lines(db_session, product, variant, admin_user):
    with pytest.raises(NotFoundError):
        stock_service.bulk_apply(
            BulkRequest(entries=[
                BulkEntry(product_id=product.id, size="M", color="Black", quantity=5),
                BulkEntry(product_id=987654, size="M", color="Black", quantity=5),
            ]),
            user_id=admin_user.id,
        )

    assert _variant(product.id, "M", "Black").stock == 10
    assert db.session.query(InventoryTransaction).count() == 0


def test_empty_batch_rejected(db_session, admin_user):
    with pytest.raises(InvalidInputError):
        stock_service.bulk_apply(BulkRequest(entries=[]), user_id=admin_user.id)
