# Overview: Service-layer operations for calendar; availability engine and calendar administration.

"""
Calendar Availability

compute_availability is a pure function: give it a date range, a calendar
snapshot, the blackout dates and the per-day booking counts and it returns
one DayAvailability per bookable day. It touches no database and can be
retried or cached freely.

Conventions:
- working_days uses 0=Sunday .. 6=Saturday
- days that are not working days, or are blackout dates, are omitted
- regular and emergency bookings draw from separate pools; each pool is
  reduced by that day's PENDING/CONFIRMED bookings of its kind
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping

from ..errors import AuthorizationError, BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import SLOT_HOLDING_BOOKING_STATUSES, BlackoutDate, Booking, CalendarSettings, User
from printshop.time_utils import parse_iso_date, sunday_based_weekday
from .concurrency import run_with_retry, unit_of_work


MAX_RANGE_DAYS = 366
CALENDAR_SETTINGS_ID = 1


@dataclass(frozen=True)
class CalendarSnapshot:
    working_days: frozenset[int]
    slots_per_day: int
    emergency_slots_per_day: int
    start_hour: int = 9
    end_hour: int = 18
    slot_duration_minutes: int = 120

    @classmethod
    def from_model(cls, settings: CalendarSettings) -> "CalendarSnapshot":
        return cls(
            working_days=frozenset(int(d) for d in (settings.working_days or [])),
            slots_per_day=settings.slots_per_day,
            emergency_slots_per_day=settings.emergency_slots_per_day,
            start_hour=settings.start_hour,
            end_hour=settings.end_hour,
            slot_duration_minutes=settings.slot_duration_minutes,
        )

    def is_working_day(self, day: date) -> bool:
        return sunday_based_weekday(day) in self.working_days


@dataclass(frozen=True)
class DayAvailability:
    date: date
    available_slot_count: int
    is_full: bool
    emergency_slots_available: int

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "available_slot_count": self.available_slot_count,
            "is_full": self.is_full,
            "emergency_slots_available": self.emergency_slots_available,
        }


@dataclass
class DayBookingCounts:
    regular: dict[date, int] = field(default_factory=dict)
    emergency: dict[date, int] = field(default_factory=dict)


def validate_range(start_date: date, end_date: date) -> None:
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")
    if (end_date - start_date).days + 1 > MAX_RANGE_DAYS:
        raise ValidationError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")


def compute_availability(
    start_date: date,
    end_date: date,
    calendar: CalendarSnapshot,
    blackout_dates: Iterable[date],
    booking_counts_by_date: Mapping[date, int],
    emergency_counts_by_date: Mapping[date, int] | None = None,
) -> list[DayAvailability]:
    validate_range(start_date, end_date)
    blackouts = set(blackout_dates)
    emergency_counts_by_date = emergency_counts_by_date or {}

    result = []
    day = start_date
    while day <= end_date:
        if calendar.is_working_day(day) and day not in blackouts:
            available = max(0, calendar.slots_per_day - booking_counts_by_date.get(day, 0))
            emergency = max(0, calendar.emergency_slots_per_day - emergency_counts_by_date.get(day, 0))
            result.append(DayAvailability(
                date=day,
                available_slot_count=available,
                is_full=available == 0,
                emergency_slots_available=emergency,
            ))
        day += timedelta(days=1)
    return result


# =============================================================================
# LOADERS
# =============================================================================

def get_calendar_settings() -> CalendarSettings:
    """Return the singleton settings row, creating it with defaults if missing."""
    settings = db.session.get(CalendarSettings, CALENDAR_SETTINGS_ID)
    if settings is None:
        settings = CalendarSettings(id=CALENDAR_SETTINGS_ID)
        db.session.add(settings)
        db.session.commit()
    return settings


def blackout_days_between(start_date: date, end_date: date) -> set[date]:
    rows = (
        db.session.query(BlackoutDate.day)
        .filter(BlackoutDate.day >= start_date, BlackoutDate.day <= end_date)
        .all()
    )
    return {row.day for row in rows}


def is_blackout(day: date) -> bool:
    return db.session.query(BlackoutDate.id).filter(BlackoutDate.day == day).first() is not None


def booking_counts_between(start_date: date, end_date: date) -> DayBookingCounts:
    range_start = datetime.combine(start_date, time.min)
    range_end = datetime.combine(end_date + timedelta(days=1), time.min)
    rows = (
        db.session.query(Booking.start_at, Booking.is_emergency)
        .filter(
            Booking.status.in_(SLOT_HOLDING_BOOKING_STATUSES),
            Booking.start_at >= range_start,
            Booking.start_at < range_end,
        )
        .all()
    )
    counts = DayBookingCounts()
    for start_at, is_emergency in rows:
        bucket = counts.emergency if is_emergency else counts.regular
        day = start_at.date()
        bucket[day] = bucket.get(day, 0) + 1
    return counts


def get_availability(start_date, end_date) -> dict:
    """Availability for an inclusive date range, plus the calendar it was computed from."""
    if not isinstance(start_date, date):
        start_date = _parse_date(start_date, "start_date")
    if not isinstance(end_date, date):
        end_date = _parse_date(end_date, "end_date")
    validate_range(start_date, end_date)

    def _op() -> dict:
        settings = get_calendar_settings()
        counts = booking_counts_between(start_date, end_date)
        days = compute_availability(
            start_date,
            end_date,
            CalendarSnapshot.from_model(settings),
            blackout_days_between(start_date, end_date),
            counts.regular,
            counts.emergency,
        )
        return {
            "available_dates": [d.to_dict() for d in days],
            "calendar_settings": settings.to_dict(),
        }

    return run_with_retry(_op)


def _parse_date(value, field_name: str) -> date:
    try:
        parsed = parse_iso_date(value)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD)")
    if parsed is None:
        raise ValidationError(f"{field_name} is required")
    return parsed


# =============================================================================
# ADMINISTRATION
# =============================================================================

def _int_field(data: dict, key: str, low: int, high: int) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if value < low or value > high:
        raise ValidationError(f"{key} must be between {low} and {high}")
    return value


def _working_days_field(value) -> list[int]:
    if not isinstance(value, list) or not value:
        raise ValidationError("working_days must be a non-empty list of weekday numbers (0=Sunday)")
    days = set()
    for d in value:
        if isinstance(d, bool) or not isinstance(d, int) or d < 0 or d > 6:
            raise ValidationError("working_days entries must be integers 0-6 (0=Sunday)")
        days.add(d)
    return sorted(days)


def update_calendar_settings(data: dict, actor: User) -> CalendarSettings:
    """
    Partial update. Changing hours or slot length recomputes
    slots_per_day = floor((end_hour - start_hour) * 60 / slot_duration_minutes).
    """
    if not actor.is_admin:
        raise AuthorizationError("Only admins can change calendar settings")
    if not isinstance(data, dict) or not data:
        raise ValidationError("No settings provided")

    settings = get_calendar_settings()

    working_days = _working_days_field(data["working_days"]) if "working_days" in data else None
    start_hour = _int_field(data, "start_hour", 0, 23) if "start_hour" in data else settings.start_hour
    end_hour = _int_field(data, "end_hour", 1, 24) if "end_hour" in data else settings.end_hour
    duration = (
        _int_field(data, "slot_duration_minutes", 15, 1440)
        if "slot_duration_minutes" in data else settings.slot_duration_minutes
    )
    if start_hour >= end_hour:
        raise ValidationError("start_hour must be before end_hour")

    timing_changed = any(k in data for k in ("start_hour", "end_hour", "slot_duration_minutes"))
    if timing_changed:
        slots_per_day = ((end_hour - start_hour) * 60) // duration
    elif "slots_per_day" in data:
        slots_per_day = _int_field(data, "slots_per_day", 0, 1000)
    else:
        slots_per_day = settings.slots_per_day

    emergency_slots = (
        _int_field(data, "emergency_slots_per_day", 0, 1000)
        if "emergency_slots_per_day" in data else settings.emergency_slots_per_day
    )

    with unit_of_work("update calendar settings"):
        if working_days is not None:
            settings.working_days = working_days
        settings.start_hour = start_hour
        settings.end_hour = end_hour
        settings.slot_duration_minutes = duration
        settings.slots_per_day = slots_per_day
        settings.emergency_slots_per_day = emergency_slots
    return settings


def list_blackout_dates(start_date=None, end_date=None) -> list[BlackoutDate]:
    query = db.session.query(BlackoutDate)
    if start_date:
        query = query.filter(BlackoutDate.day >= _parse_date(start_date, "start_date"))
    if end_date:
        query = query.filter(BlackoutDate.day <= _parse_date(end_date, "end_date"))
    return query.order_by(BlackoutDate.day.asc()).all()


def add_blackout_date(day, actor: User, reason=None) -> BlackoutDate:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can manage blackout dates")
    parsed = _parse_date(day, "date")
    reason = (str(reason).strip() or None) if reason is not None else None
    if reason and len(reason) > 255:
        raise ValidationError("reason exceeds 255 characters")
    if is_blackout(parsed):
        raise BusinessRuleViolation(f"{parsed.isoformat()} is already a blackout date")

    with unit_of_work("add blackout date"):
        blackout = BlackoutDate(day=parsed, reason=reason)
        db.session.add(blackout)
    return blackout


def remove_blackout_date(blackout_id: int, actor: User) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can manage blackout dates")
    with unit_of_work("remove blackout date"):
        blackout = db.session.get(BlackoutDate, blackout_id)
        if not blackout:
            raise NotFoundError("Blackout date not found")
        db.session.delete(blackout)
