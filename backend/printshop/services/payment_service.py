# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Ledger Service

Payments are an append-only ledger against an order. The balance is always
derived from COMPLETED rows; nothing is cached on the order.

    total_completed_paid = sum(amount of COMPLETED payments)
    deposit_paid         = total_completed_paid >= order.deposit_amount
    balance_due          = order.total_amount - total_completed_paid

balance_due goes negative on overpayment and is reported as-is so
reconciliation can see it.

The ledger never moves the order through its state machine. Moving an order
out of PENDING_DEPOSIT once the deposit is paid is a separate staff action.

Gateway integration is a stub: create_payment_intent returns opaque
pi_mock_* identifiers and a PENDING payment that settle_payment resolves.
"""

from __future__ import annotations

import uuid

from ..errors import AuthorizationError, BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db, event_bus
from ..models import Order, OrderStatus, Payment, PaymentMethod, PaymentStatus, User
from ..money import format_cents, parse_positive_amount
from printshop.time_utils import utcnow
from .concurrency import lock_for_update, unit_of_work


# =============================================================================
# PAYMENT STATUS (DERIVED)
# =============================================================================

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_OVERPAID = "OVERPAID"

VALID_PAYMENT_STATUSES = [
    PAYMENT_STATUS_UNPAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_OVERPAID,
]

MANUAL_METHODS = [PaymentMethod.CASH, PaymentMethod.CHECK, PaymentMethod.CARD, PaymentMethod.WIRE]


def parse_method(value) -> PaymentMethod:
    if not value:
        raise ValidationError("method is required")
    try:
        return PaymentMethod(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid payment method: {value}")


def derive_payment_status(total_amount_cents: int, total_paid_cents: int) -> str:
    if total_paid_cents <= 0:
        return PAYMENT_STATUS_UNPAID
    if total_paid_cents < total_amount_cents:
        return PAYMENT_STATUS_PARTIAL
    if total_paid_cents == total_amount_cents:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_OVERPAID


def completed_total_cents(order_id: int) -> int:
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Payment.amount_cents), 0))
        .filter(Payment.order_id == order_id, Payment.status == PaymentStatus.COMPLETED)
        .scalar()
    )
    return int(total or 0)


def summarize(order: Order) -> dict:
    """Balance summary for an already-loaded order."""
    paid = completed_total_cents(order.id)
    balance = order.total_amount_cents - paid
    return {
        "order_id": order.id,
        "total_amount": format_cents(order.total_amount_cents),
        "deposit_amount": format_cents(order.deposit_amount_cents),
        "total_completed_paid": format_cents(paid),
        "balance_due": format_cents(balance),
        "total_amount_cents": order.total_amount_cents,
        "deposit_amount_cents": order.deposit_amount_cents,
        "total_completed_paid_cents": paid,
        "balance_due_cents": balance,
        "deposit_paid": paid >= order.deposit_amount_cents,
        "payment_status": derive_payment_status(order.total_amount_cents, paid),
    }


def _get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def _check_can_view(order: Order, actor: User) -> None:
    if actor.is_customer and order.customer_id != actor.id:
        raise AuthorizationError("Access denied")


def compute_balance(order_id: int, actor: User | None = None) -> dict:
    order = _get_order(order_id)
    if actor is not None:
        _check_can_view(order, actor)
    return summarize(order)


def list_payments(order_id: int, actor: User) -> list[Payment]:
    order = _get_order(order_id)
    _check_can_view(order, actor)
    return db.session.query(Payment).filter_by(order_id=order.id).order_by(Payment.id.asc()).all()


def _mark_invoice_paid_if_settled(order: Order) -> None:
    """Stamp invoice.paid_at once completed payments cover the total."""
    invoice = order.invoice
    if invoice is None or invoice.paid_at is not None:
        return
    db.session.flush()
    if order.total_amount_cents - completed_total_cents(order.id) <= 0:
        invoice.paid_at = utcnow()


def _payment_event(payment: Payment, order: Order, actor: User) -> dict:
    return {
        "payment_id": payment.id,
        "order_id": order.id,
        "customer_id": order.customer_id,
        "amount": format_cents(payment.amount_cents),
        "method": payment.method.value,
        "status": payment.status.value,
        "actor_id": actor.id,
    }


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    order_id: int,
    amount,
    method,
    actor: User,
    transaction_ref: str | None = None,
) -> Payment:
    """
    Record a manual (cash/check/card/wire) payment as COMPLETED.

    ADMIN only. Rejects cancelled orders.
    """
    if not actor.is_admin:
        raise AuthorizationError("Only admins can record payments")

    amount_cents = parse_positive_amount(amount)
    payment_method = parse_method(method)
    if payment_method not in MANUAL_METHODS:
        raise ValidationError("Gateway payments are created through a payment intent")

    with unit_of_work("record payment"):
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Order not found")
        if order.status == OrderStatus.CANCELLED:
            raise BusinessRuleViolation("Cannot record a payment for a cancelled order")

        now = utcnow()
        payment = Payment(
            order_id=order.id,
            amount_cents=amount_cents,
            method=payment_method,
            status=PaymentStatus.COMPLETED,
            transaction_ref=(transaction_ref or "").strip() or None,
            recorded_by_admin_id=actor.id,
            created_at=now,
            settled_at=now,
        )
        db.session.add(payment)
        _mark_invoice_paid_if_settled(order)

    event_bus.publish("payment.created", _payment_event(payment, order, actor))
    return payment


def create_payment_intent(order_id: int, amount, actor: User) -> dict:
    """
    Gateway stub. Creates a PENDING STRIPE payment for the owning customer.

    Returns {client_secret, payment_intent_id, payment_id}.
    """
    if not actor.is_customer:
        raise AuthorizationError("Only customers can create payment intents")
    if order_id is None:
        raise ValidationError("order_id is required")
    amount_cents = parse_positive_amount(amount)

    with unit_of_work("create payment intent"):
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.customer_id != actor.id:
            raise AuthorizationError("Access denied")
        if order.is_terminal:
            raise BusinessRuleViolation(f"Cannot pay for an order that is {order.status.value}")

        payment_intent_id = f"pi_mock_{uuid.uuid4().hex}"
        payment = Payment(
            order_id=order.id,
            amount_cents=amount_cents,
            method=PaymentMethod.STRIPE,
            status=PaymentStatus.PENDING,
            transaction_ref=payment_intent_id,
            created_at=utcnow(),
        )
        db.session.add(payment)

    event_bus.publish("payment.created", _payment_event(payment, order, actor))
    return {
        "client_secret": f"{payment_intent_id}_secret_{uuid.uuid4().hex}",
        "payment_intent_id": payment_intent_id,
        "payment_id": payment.id,
    }


def settle_payment(payment_id: int, status, actor: User) -> Payment:
    """Gateway confirmation path: PENDING -> COMPLETED | FAILED."""
    if not actor.is_admin:
        raise AuthorizationError("Only admins can settle payments")
    try:
        target = PaymentStatus(str(status or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid payment status: {status}")
    if target == PaymentStatus.PENDING:
        raise ValidationError("status must be COMPLETED or FAILED")

    with unit_of_work("settle payment"):
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.status != PaymentStatus.PENDING:
            raise BusinessRuleViolation(f"Payment is already {payment.status.value}")

        payment.status = target
        payment.settled_at = utcnow()
        if target == PaymentStatus.COMPLETED:
            _mark_invoice_paid_if_settled(payment.order)

    return payment
