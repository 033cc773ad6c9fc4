from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5]


class CalendarSettings(db.Model):
    """
    Singleton row (id=1) describing the shop's booking calendar.

    working_days uses 0=Sunday .. 6=Saturday.
    """
    __tablename__ = "calendar_settings"
    __table_args__ = (
        db.CheckConstraint("start_hour >= 0 AND start_hour < end_hour AND end_hour <= 24", name="ck_calendar_hours"),
        db.CheckConstraint("slot_duration_minutes > 0", name="ck_calendar_slot_duration"),
        db.CheckConstraint("slots_per_day >= 0", name="ck_calendar_slots"),
        db.CheckConstraint("emergency_slots_per_day >= 0", name="ck_calendar_emergency_slots"),
    )

    id = db.Column(db.Integer, primary_key=True)
    working_days = db.Column(db.JSON, nullable=False, default=lambda: list(DEFAULT_WORKING_DAYS))
    start_hour = db.Column(db.Integer, nullable=False, default=9)
    end_hour = db.Column(db.Integer, nullable=False, default=18)
    slot_duration_minutes = db.Column(db.Integer, nullable=False, default=120)
    slots_per_day = db.Column(db.Integer, nullable=False, default=4)
    emergency_slots_per_day = db.Column(db.Integer, nullable=False, default=2)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "working_days": sorted(self.working_days or []),
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "slot_duration_minutes": self.slot_duration_minutes,
            "slots_per_day": self.slots_per_day,
            "emergency_slots_per_day": self.emergency_slots_per_day,
            "updated_at": to_utc_z(self.updated_at),
        }


class BlackoutDate(db.Model):
    """A whole day on which nothing can be booked, emergencies included."""
    __tablename__ = "blackout_dates"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    day = db.Column(db.Date, nullable=False, unique=True)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.day.isoformat(),
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }


class Setting(db.Model):
    """Runtime-tunable business value (tax_rate, default_deposit_pct, emergency_fee_pct)."""
    __tablename__ = "settings"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True)
    value = db.Column(db.String(255), nullable=False)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
