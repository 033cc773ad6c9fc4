from __future__ import annotations

import enum

from ..extensions import db
from ..money import format_cents
from printshop.time_utils import to_utc_z


class OrderStatus(str, enum.Enum):
    PENDING_DEPOSIT = "PENDING_DEPOSIT"
    SCHEDULED = "SCHEDULED"
    IN_PRODUCTION = "IN_PRODUCTION"
    PROOF_SENT = "PROOF_SENT"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


class Order(db.Model):
    """
    Priced job created by finalizing a quote.

    Totals are fixed at finalize time:
        total_amount = total_subtotal + tax_amount
        deposit_amount = round(total_amount * deposit_pct / 100)

    version_id guards concurrent writers (status changes, revision counter).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("revision_count >= 0", name="ck_orders_revision_count"),
        db.CheckConstraint("total_amount_cents = total_subtotal_cents + tax_amount_cents", name="ck_orders_total"),
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        db.Index("ix_orders_assigned_staff", "assigned_staff_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    tier_id = db.Column(db.Integer, db.ForeignKey("tier_packages.id"), nullable=True)

    status = db.Column(db.Enum(OrderStatus, native_enum=False, length=32), nullable=False, default=OrderStatus.PENDING_DEPOSIT)

    total_subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    deposit_pct = db.Column(db.Integer, nullable=False)
    deposit_amount_cents = db.Column(db.Integer, nullable=False)

    revision_count = db.Column(db.Integer, nullable=False, default=0)
    assigned_staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    due_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    quote = db.relationship("Quote", backref=db.backref("order", uselist=False))
    customer = db.relationship("User", foreign_keys=[customer_id])
    assigned_staff = db.relationship("User", foreign_keys=[assigned_staff_id])
    tier = db.relationship("TierPackage")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "customer_id": self.customer_id,
            "tier_id": self.tier_id,
            "status": self.status.value,
            "total_subtotal": format_cents(self.total_subtotal_cents),
            "tax_amount": format_cents(self.tax_amount_cents),
            "total_amount": format_cents(self.total_amount_cents),
            "deposit_pct": self.deposit_pct,
            "deposit_amount": format_cents(self.deposit_amount_cents),
            "total_subtotal_cents": self.total_subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "deposit_amount_cents": self.deposit_amount_cents,
            "revision_count": self.revision_count,
            "assigned_staff_id": self.assigned_staff_id,
            "due_at": to_utc_z(self.due_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(db.Model):
    """Exactly one invoice per order, numbered INV-YYYY-NNNNN."""
    __tablename__ = "invoices"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)
    amount_due_cents = db.Column(db.Integer, nullable=False)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "invoice_number": self.invoice_number,
            "amount_due": format_cents(self.amount_due_cents),
            "amount_due_cents": self.amount_due_cents,
            "issued_at": to_utc_z(self.issued_at),
            "paid_at": to_utc_z(self.paid_at),
        }


class InvoiceSequence(db.Model):
    """Atomic per-year invoice counter."""
    __tablename__ = "invoice_sequences"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
