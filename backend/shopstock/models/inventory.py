from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


TRANSACTION_IN = "in"
TRANSACTION_OUT = "out"
TRANSACTION_ADJUSTMENT = "adjustment"
TRANSACTION_TYPES = (TRANSACTION_IN, TRANSACTION_OUT, TRANSACTION_ADJUSTMENT)


class InventoryTransaction(db.Model):
    """
    Append-only stock ledger entry.

    - quantity is the magnitude of the change, never a signed delta; the
      direction is implied by type. For "adjustment" rows the direction is
      not recorded (compare consecutive stock snapshots to recover it).
    - Rows are never updated or deleted by application code. They disappear
      only when their variant is deleted (cascade).
    - user_id is nulled when the acting user is removed; history is kept.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invtx_quantity_positive"),
        db.Index("ix_invtx_variant_created", "variant_id", "created_at"),
        db.Index("ix_invtx_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # in | out | adjustment
    type = db.Column(db.String(16), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    supplier = db.Column(db.String(100), nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    variant = db.relationship("ProductVariant", back_populates="transactions")
    order = db.relationship("Order", backref=db.backref("inventory_transactions", lazy=True))
    user = db.relationship("User", backref=db.backref("inventory_transactions", lazy=True))

    def __repr__(self) -> str:
        return f"<InventoryTransaction id={self.id} variant_id={self.variant_id} {self.type} x{self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "supplier": self.supplier,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
