# Overview: Service-layer operations for order; the order state machine and order reads.

"""
Order State Machine

The single authority on order status; nothing else writes Order.status.

Two tables:
- ORDER_TRANSITIONS: every legal move. Proof actions use it through
  drive_status.
- DIRECT_EDIT_TRANSITIONS: what staff/admin may request by hand. Entering
  AWAITING_APPROVAL needs an uploaded proof, and leaving it needs the
  customer's decision, so neither edge is here.

ROLES:
- CUSTOMER never sets status directly (only via proof actions)
- STAFF may request any legal move except CANCELLED
- ADMIN may request any legal move and reassign staff

A request naming the current status, or a pair missing from the
applicable table (anything out of COMPLETED/CANCELLED included), is a
BusinessRuleViolation.
"""

from __future__ import annotations

from ..errors import AuthorizationError, BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db, event_bus
from ..models import Booking, Order, OrderStatus, User, UserRole
from .concurrency import lock_for_update, unit_of_work
from . import payment_service


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_DEPOSIT: frozenset({
        OrderStatus.SCHEDULED,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.AWAITING_APPROVAL,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SCHEDULED: frozenset({
        OrderStatus.IN_PRODUCTION,
        OrderStatus.AWAITING_APPROVAL,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_PRODUCTION: frozenset({
        OrderStatus.PROOF_SENT,
        OrderStatus.AWAITING_APPROVAL,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PROOF_SENT: frozenset({
        OrderStatus.AWAITING_APPROVAL,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.AWAITING_APPROVAL: frozenset({
        OrderStatus.IN_PRODUCTION,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

DIRECT_EDIT_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_DEPOSIT: frozenset({
        OrderStatus.SCHEDULED,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SCHEDULED: frozenset({
        OrderStatus.IN_PRODUCTION,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_PRODUCTION: frozenset({
        OrderStatus.PROOF_SENT,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PROOF_SENT: frozenset({
        OrderStatus.IN_PRODUCTION,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.AWAITING_APPROVAL: frozenset({
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def parse_order_status(value) -> OrderStatus:
    if value is None or not str(value).strip():
        raise ValidationError("status is required")
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid order status: {value}")


def is_legal_transition(current: OrderStatus, target: OrderStatus, table=ORDER_TRANSITIONS) -> bool:
    return target in table[current]


def check_transition(current: OrderStatus, target: OrderStatus, table=ORDER_TRANSITIONS) -> None:
    if current == target:
        raise BusinessRuleViolation(f"Order is already {current.value}")
    if not is_legal_transition(current, target, table):
        raise BusinessRuleViolation(f"Cannot move order from {current.value} to {target.value}")


def _status_event(order: Order, old_status: OrderStatus, actor: User, reason: str | None = None) -> tuple[str, dict]:
    payload = {
        "order_id": order.id,
        "customer_id": order.customer_id,
        "old_status": old_status.value,
        "new_status": order.status.value,
        "actor_id": actor.id,
        "actor_role": actor.role.value,
    }
    if reason:
        payload["reason"] = reason
    return "order.status_updated", payload


def drive_status(order: Order, target: OrderStatus, actor: User, reason: str) -> tuple[str, dict] | None:
    """
    Move an order as a side effect of another business action.

    Runs inside the caller's unit of work. Already being in `target` is a
    no-op (returns None); otherwise the same table applies. Returns the
    event for the caller to publish once its transaction commits.
    """
    if order.status == target:
        return None
    old_status = order.status
    check_transition(old_status, target)
    order.status = target
    return _status_event(order, old_status, actor, reason)


def transition_order(order_id: int, requested_status, actor: User) -> Order:
    target = parse_order_status(requested_status)

    if actor.is_customer:
        raise AuthorizationError("Customers cannot change order status")
    if actor.role == UserRole.STAFF and target == OrderStatus.CANCELLED:
        raise AuthorizationError("Only admins can cancel orders")

    with unit_of_work("update order status"):
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Order not found")
        old_status = order.status
        check_transition(old_status, target, DIRECT_EDIT_TRANSITIONS)
        order.status = target

    event_bus.publish(*_status_event(order, old_status, actor))
    return order


def assign_staff(order_id: int, staff_user_id, actor: User) -> Order:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can assign staff")
    if staff_user_id is None or isinstance(staff_user_id, bool):
        raise ValidationError("assigned_staff_id is required")
    try:
        staff_user_id = int(staff_user_id)
    except (TypeError, ValueError):
        raise ValidationError("assigned_staff_id must be an integer")

    with unit_of_work("assign staff"):
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Order not found")
        staff = db.session.get(User, staff_user_id)
        if not staff or not staff.is_active or not staff.is_staff_or_admin:
            raise ValidationError("assigned_staff_id must reference an active staff member")
        if order.is_terminal:
            raise BusinessRuleViolation(f"Cannot reassign an order that is {order.status.value}")
        previous = order.assigned_staff_id
        order.assigned_staff_id = staff.id

    if previous != staff.id:
        event_bus.publish("order.assigned", {
            "order_id": order.id,
            "customer_id": order.customer_id,
            "assigned_staff_id": staff.id,
            "previous_staff_id": previous,
            "actor_id": actor.id,
        })
    return order


# =============================================================================
# READS
# =============================================================================

def get_order_for_actor(order_id: int, actor: User) -> Order:
    """Load an order; customers may only see their own."""
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if actor.is_customer and order.customer_id != actor.id:
        raise AuthorizationError("Access denied")
    return order


def get_order_detail(order_id: int, actor: User) -> dict:
    order = get_order_for_actor(order_id, actor)
    include_internal = not actor.is_customer

    booking = None
    if order.quote_id is not None:
        booking = (
            db.session.query(Booking)
            .filter_by(quote_id=order.quote_id)
            .order_by(Booking.id.desc())
            .first()
        )

    return {
        "order": order.to_dict(),
        "quote": order.quote.to_dict() if order.quote else None,
        "tier": order.tier.to_dict() if order.tier else None,
        "service": order.quote.service.to_dict() if order.quote and order.quote.service else None,
        "booking": booking.to_dict() if booking else None,
        "proof_versions": [p.to_dict(include_internal=include_internal) for p in order.proofs],
        "invoice": order.invoice.to_dict() if order.invoice else None,
        "payments": [p.to_dict() for p in order.payments],
        "payment_status": payment_service.summarize(order),
    }


def _paginate(query, page: int, limit: int) -> tuple[list, int]:
    page = max(1, page)
    limit = max(1, min(limit, 100))
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, total


def _with_balance(orders: list[Order]) -> list[dict]:
    return [{"order": o.to_dict(), "payment_status": payment_service.summarize(o)} for o in orders]


def list_customer_orders(actor: User, status=None, page: int = 1, limit: int = 20) -> dict:
    if not actor.is_customer:
        raise AuthorizationError("Only customers have a personal order list")
    query = db.session.query(Order).filter(Order.customer_id == actor.id)
    if status:
        query = query.filter(Order.status == parse_order_status(status))
    orders, total = _paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page, limit)
    return {"orders": _with_balance(orders), "total": total}


def list_staff_jobs(actor: User, status=None, assigned_to=None) -> list[Order]:
    """
    Work queue. Staff see the jobs assigned to them unless they ask for
    another assignee; admins see everything.
    """
    if not actor.is_staff_or_admin:
        raise AuthorizationError("Staff access required")
    query = db.session.query(Order)
    if assigned_to is not None:
        query = query.filter(Order.assigned_staff_id == assigned_to)
    elif actor.role == UserRole.STAFF:
        query = query.filter(Order.assigned_staff_id == actor.id)
    if status:
        query = query.filter(Order.status == parse_order_status(status))
    # NULL due dates last
    return query.order_by(Order.due_at.is_(None), Order.due_at.asc(), Order.created_at.desc()).all()


def list_admin_orders(
    actor: User,
    status=None,
    assigned_to=None,
    payment_status: str | None = None,
    customer: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """
    All orders with optional filters. payment_status accepts the derived
    ledger states (UNPAID, PARTIAL, PAID, OVERPAID) or BALANCE_DUE for any
    order with money still owed.
    """
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")

    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == parse_order_status(status))
    if assigned_to is not None:
        query = query.filter(Order.assigned_staff_id == assigned_to)
    if customer:
        pattern = f"%{customer.strip()}%"
        query = query.outerjoin(User, Order.customer_id == User.id).filter(
            db.or_(User.name.ilike(pattern), User.email.ilike(pattern))
        )
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    if not payment_status:
        orders, total = _paginate(query, page, limit)
        return {"orders": _with_balance(orders), "total": total}

    wanted = payment_status.strip().upper()
    if wanted != "BALANCE_DUE" and wanted not in payment_service.VALID_PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment_status filter: {payment_status}")

    # Derived from the ledger, so filtered after loading.
    rows = []
    for order in query.all():
        summary = payment_service.summarize(order)
        if wanted == "BALANCE_DUE":
            matched = summary["balance_due_cents"] > 0
        else:
            matched = summary["payment_status"] == wanted
        if matched:
            rows.append({"order": order.to_dict(), "payment_status": summary})

    page = max(1, page)
    limit = max(1, min(limit, 100))
    return {"orders": rows[(page - 1) * limit: page * limit], "total": len(rows)}
