from __future__ import annotations

import enum

from ..extensions import db
from printshop.time_utils import to_utc_z


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# A completed booking used its slot; only cancellation gives one back.
SLOT_HOLDING_BOOKING_STATUSES = ACTIVE_BOOKING_STATUSES + (BookingStatus.COMPLETED,)


class Booking(db.Model):
    """
    Production/installation slot reserved against a finalized quote.

    urgent_fee_pct > 0 exactly when is_emergency.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        db.CheckConstraint(
            "(is_emergency AND urgent_fee_pct > 0) OR (NOT is_emergency AND urgent_fee_pct = 0)",
            name="ck_bookings_urgent_fee",
        ),
        db.CheckConstraint("end_at > start_at", name="ck_bookings_range"),
        db.Index("ix_bookings_quote_status", "quote_id", "status"),
        db.Index("ix_bookings_start_status", "start_at", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.Enum(BookingStatus, native_enum=False, length=32), nullable=False, default=BookingStatus.PENDING)
    is_emergency = db.Column(db.Boolean, nullable=False, default=False)
    urgent_fee_pct = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    quote = db.relationship("Quote", backref=db.backref("bookings", lazy=True))
    customer = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "customer_id": self.customer_id,
            "start_at": to_utc_z(self.start_at),
            "end_at": to_utc_z(self.end_at),
            "status": self.status.value,
            "is_emergency": self.is_emergency,
            "urgent_fee_pct": self.urgent_fee_pct,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BookingDayCapacity(db.Model):
    """
    Per-day counters of active bookings.

    Reservations bump these with a conditional UPDATE
    (`booked_count < limit`), so two requests for the last slot cannot
    both succeed.
    """
    __tablename__ = "booking_day_capacity"
    __table_args__ = (
        db.CheckConstraint("booked_count >= 0", name="ck_capacity_booked"),
        db.CheckConstraint("emergency_booked_count >= 0", name="ck_capacity_emergency"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    day = db.Column(db.Date, nullable=False, unique=True)
    booked_count = db.Column(db.Integer, nullable=False, default=0)
    emergency_booked_count = db.Column(db.Integer, nullable=False, default=0)
