from __future__ import annotations

import enum

from ..extensions import db
from ..money import format_cents
from printshop.time_utils import to_utc_z


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CHECK = "CHECK"
    CARD = "CARD"
    WIRE = "WIRE"
    STRIPE = "STRIPE"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Payment(db.Model):
    """
    Append-only payment ledger entry.

    Only COMPLETED rows count toward the balance. Rows are never edited
    apart from settling a PENDING gateway payment.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_order_status", "order_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.Enum(PaymentMethod, native_enum=False, length=32), nullable=False)
    status = db.Column(db.Enum(PaymentStatus, native_enum=False, length=32), nullable=False, default=PaymentStatus.PENDING)
    transaction_ref = db.Column(db.String(255), nullable=True)
    recorded_by_admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, order_by="Payment.id"))
    recorded_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "amount": format_cents(self.amount_cents),
            "amount_cents": self.amount_cents,
            "method": self.method.value,
            "status": self.status.value,
            "transaction_ref": self.transaction_ref,
            "recorded_by_admin_id": self.recorded_by_admin_id,
            "created_at": to_utc_z(self.created_at),
            "settled_at": to_utc_z(self.settled_at),
        }
