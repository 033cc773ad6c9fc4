# Overview: Service-layer operations for booking; slot reservation against finalized quotes.

"""
Booking Scheduler

A customer books one production/installation slot per finalized quote.

CAPACITY:
Each day has a BookingDayCapacity row. A booking claims a slot with a
conditional UPDATE (`booked_count < slots_per_day`, or the emergency
counter against emergency_slots_per_day). When two requests race for the
last slot the database lets exactly one UPDATE match; the other sees zero
rows and is rejected. Cancelling gives the slot back; a completed booking
keeps it, and availability counts it the same way.

Booking status moves independently of order status:
    PENDING -> CONFIRMED | CANCELLED
    CONFIRMED -> COMPLETED | CANCELLED
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import AuthorizationError, BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db, event_bus
from ..models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingDayCapacity,
    BookingStatus,
    Quote,
    QuoteStatus,
    User,
)
from printshop.time_utils import parse_iso_date, parse_iso_datetime, utcnow
from .calendar_service import CalendarSnapshot, get_calendar_settings, is_blackout
from .concurrency import lock_for_update, unit_of_work
from . import settings_service


BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def _parse_timestamp(value, field: str) -> datetime:
    if not isinstance(value, str):
        raise ValidationError(f"{field} is required (ISO-8601)")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    if parsed is None:
        raise ValidationError(f"{field} is required (ISO-8601)")
    return parsed


def _parse_id(value, field: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def parse_booking_status(value) -> BookingStatus:
    try:
        return BookingStatus(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid booking status: {value}")


# =============================================================================
# CAPACITY
# =============================================================================

def _capacity_column(is_emergency: bool):
    return BookingDayCapacity.emergency_booked_count if is_emergency else BookingDayCapacity.booked_count


def _reserve_capacity(day: date, is_emergency: bool, calendar: CalendarSnapshot) -> None:
    """Claim one slot on `day` or raise BusinessRuleViolation."""
    exists = db.session.query(BookingDayCapacity.id).filter_by(day=day).first()
    if exists is None:
        try:
            with db.session.begin_nested():
                db.session.add(BookingDayCapacity(day=day, booked_count=0, emergency_booked_count=0))
        except IntegrityError:
            # Created concurrently; the UPDATE below works on that row.
            pass

    column = _capacity_column(is_emergency)
    limit = calendar.emergency_slots_per_day if is_emergency else calendar.slots_per_day
    stmt = (
        update(BookingDayCapacity)
        .where(BookingDayCapacity.day == day, column < limit)
        .values({column: column + 1})
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        kind = "emergency slots" if is_emergency else "slots"
        raise BusinessRuleViolation(f"No {kind} available on {day.isoformat()}")


def _release_capacity(day: date, is_emergency: bool) -> None:
    column = _capacity_column(is_emergency)
    stmt = (
        update(BookingDayCapacity)
        .where(BookingDayCapacity.day == day, column > 0)
        .values({column: column - 1})
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)


# =============================================================================
# CREATION
# =============================================================================

def create_booking(quote_id, start_at, end_at, actor: User, is_emergency=False) -> Booking:
    if not actor.is_customer:
        raise AuthorizationError("Only customers can book slots")
    quote_id = _parse_id(quote_id, "quote_id")
    if not isinstance(is_emergency, bool):
        raise ValidationError("is_emergency must be a boolean")

    start = _parse_timestamp(start_at, "start_at")
    end = _parse_timestamp(end_at, "end_at")
    if end <= start:
        raise ValidationError("end_at must be after start_at")
    if start.date() != end.date():
        raise ValidationError("A booking must start and end on the same day")
    if start < utcnow():
        raise BusinessRuleViolation("Cannot book a slot in the past")

    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFoundError("Quote not found")
    if quote.customer_id != actor.id:
        raise AuthorizationError("Access denied")
    if quote.status != QuoteStatus.FINALIZED:
        raise BusinessRuleViolation("Quote must be finalized before booking")

    day = start.date()
    if is_blackout(day):
        raise BusinessRuleViolation(f"{day.isoformat()} is a blackout date")

    calendar = CalendarSnapshot.from_model(get_calendar_settings())
    if not is_emergency and not calendar.is_working_day(day):
        raise BusinessRuleViolation(f"{day.isoformat()} is not a working day")

    urgent_fee_pct = settings_service.get_emergency_fee_pct() if is_emergency else 0

    with unit_of_work("create booking"):
        lock_for_update(db.session.query(Quote).filter_by(id=quote.id)).first()
        active = (
            db.session.query(Booking.id)
            .filter(Booking.quote_id == quote.id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .first()
        )
        if active is not None:
            raise BusinessRuleViolation("This quote already has an active booking")

        _reserve_capacity(day, is_emergency, calendar)

        booking = Booking(
            quote_id=quote.id,
            customer_id=actor.id,
            start_at=start,
            end_at=end,
            status=BookingStatus.PENDING,
            is_emergency=is_emergency,
            urgent_fee_pct=urgent_fee_pct,
        )
        db.session.add(booking)

    event_bus.publish("booking.created", {
        "booking_id": booking.id,
        "quote_id": quote.id,
        "customer_id": actor.id,
        "start_at": booking.to_dict()["start_at"],
        "end_at": booking.to_dict()["end_at"],
        "is_emergency": is_emergency,
        "urgent_fee_pct": urgent_fee_pct,
        "actor_id": actor.id,
    })
    return booking


# =============================================================================
# STATUS
# =============================================================================

def update_booking_status(booking_id: int, status, actor: User) -> Booking:
    """
    Staff/admin may make any legal move. A customer may only cancel a
    booking they own.
    """
    target = parse_booking_status(status)

    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if actor.is_customer:
        if booking.customer_id != actor.id:
            raise AuthorizationError("Access denied")
        if target != BookingStatus.CANCELLED:
            raise AuthorizationError("Customers can only cancel bookings")

    with unit_of_work("update booking status"):
        booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
        old_status = booking.status
        if target == old_status:
            raise BusinessRuleViolation(f"Booking is already {old_status.value}")
        if target not in BOOKING_TRANSITIONS[old_status]:
            raise BusinessRuleViolation(f"Cannot move booking from {old_status.value} to {target.value}")

        booking.status = target
        if target == BookingStatus.CANCELLED:
            _release_capacity(booking.start_at.date(), booking.is_emergency)

    payload = {
        "booking_id": booking.id,
        "quote_id": booking.quote_id,
        "customer_id": booking.customer_id,
        "old_status": old_status.value,
        "new_status": target.value,
        "actor_id": actor.id,
    }
    if target == BookingStatus.CONFIRMED:
        event_bus.publish("booking.confirmed", payload)
    else:
        event_bus.publish("booking.status_updated", payload)
    return booking


# =============================================================================
# READS
# =============================================================================

def get_booking(booking_id: int, actor: User) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if actor.is_customer and booking.customer_id != actor.id:
        raise AuthorizationError("Access denied")
    return booking


def list_bookings(actor: User, status=None, start_date=None, end_date=None) -> list[Booking]:
    query = db.session.query(Booking)
    if actor.is_customer:
        query = query.filter(Booking.customer_id == actor.id)
    if status:
        query = query.filter(Booking.status == parse_booking_status(status))
    try:
        start = parse_iso_date(start_date) if start_date else None
        end = parse_iso_date(end_date) if end_date else None
    except ValueError:
        raise ValidationError("start_date and end_date must be dates (YYYY-MM-DD)")
    if start:
        query = query.filter(Booking.start_at >= datetime.combine(start, datetime.min.time()))
    if end:
        query = query.filter(Booking.start_at < datetime.combine(end + timedelta(days=1), datetime.min.time()))
    return query.order_by(Booking.start_at.asc(), Booking.id.asc()).all()
