from __future__ import annotations

import enum

from ..extensions import db
from ..money import format_cents
from printshop.time_utils import to_utc_z


class QuoteStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    FINALIZED = "FINALIZED"
    REJECTED = "REJECTED"


class Quote(db.Model):
    """
    Customer (or guest) request for a priced job.

    Exactly one of customer_id / guest_email identifies the requester.
    Quotes are never deleted; FINALIZED and REJECTED are final.
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.CheckConstraint(
            "(customer_id IS NOT NULL AND guest_email IS NULL) OR "
            "(customer_id IS NULL AND guest_email IS NOT NULL)",
            name="ck_quotes_single_requester",
        ),
        db.CheckConstraint("final_subtotal_cents IS NULL OR final_subtotal_cents > 0", name="ck_quotes_final_positive"),
        db.Index("ix_quotes_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False)
    tier_id = db.Column(db.Integer, db.ForeignKey("tier_packages.id"), nullable=False)

    status = db.Column(db.Enum(QuoteStatus, native_enum=False, length=32), nullable=False, default=QuoteStatus.SUBMITTED)

    estimate_subtotal_cents = db.Column(db.Integer, nullable=True)
    final_subtotal_cents = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_guest = db.Column(db.Boolean, nullable=False, default=False)
    guest_name = db.Column(db.String(255), nullable=True)
    guest_email = db.Column(db.String(255), nullable=True)
    guest_phone = db.Column(db.String(64), nullable=True)
    guest_company_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("User", backref=db.backref("quotes", lazy=True))
    service = db.relationship("Service")
    tier = db.relationship("TierPackage")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "service_id": self.service_id,
            "tier_id": self.tier_id,
            "status": self.status.value,
            "estimate_subtotal": format_cents(self.estimate_subtotal_cents),
            "final_subtotal": format_cents(self.final_subtotal_cents),
            "final_subtotal_cents": self.final_subtotal_cents,
            "notes": self.notes,
            "is_guest": self.is_guest,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "guest_phone": self.guest_phone,
            "guest_company_name": self.guest_company_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class GuestQuoteToken(db.Model):
    """Magic-link token letting a guest view and approve/reject their quote."""
    __tablename__ = "guest_quote_tokens"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    token = db.Column(db.String(64), nullable=False, unique=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    quote = db.relationship("Quote", backref=db.backref("guest_tokens", lazy=True))
