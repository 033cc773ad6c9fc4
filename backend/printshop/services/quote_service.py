# Overview: Service-layer operations for quote; submission, guest magic links and finalization.

"""
Quote Service

finalize_quote is the hand-off from sales to production. In one unit of
work it:

1. marks the quote FINALIZED with its final subtotal
2. creates the Order in PENDING_DEPOSIT with tax, total and deposit fixed
3. issues the Invoice with the next INV-YYYY-NNNNN number

If any step fails nothing is kept: the quote stays as it was, no order or
invoice exists and the invoice number is not consumed. `quote.finalized`
is published only after the commit.

    tax_amount = round(final_subtotal * tax_rate)
    total      = final_subtotal + tax_amount
    deposit    = round(total * deposit_pct / 100)

Rounding is half-up to the cent. tax_rate and deposit_pct come from the
settings table (see settings_service).
"""

from __future__ import annotations

import re
import secrets
from datetime import timedelta

from flask import current_app

from ..errors import AuthorizationError, BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db, event_bus
from ..models import (
    GuestQuoteToken,
    Invoice,
    Order,
    OrderStatus,
    Quote,
    QuoteStatus,
    Service,
    TierPackage,
    User,
)
from ..money import apply_rate, format_cents, parse_amount, parse_positive_amount, percent_of
from printshop.time_utils import utcnow
from .concurrency import lock_for_update, unit_of_work
from . import invoice_service, settings_service


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FINAL_QUOTE_STATUSES = (QuoteStatus.FINALIZED, QuoteStatus.REJECTED)
GUEST_DECISIONS = (QuoteStatus.APPROVED, QuoteStatus.REJECTED)


def _clean(value, max_len: int | None = None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"Value exceeds {max_len} characters")
    return value


def _parse_id(value, field: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _resolve_catalog(service_id, tier_id) -> tuple[Service, TierPackage]:
    service = db.session.get(Service, _parse_id(service_id, "service_id"))
    if not service or not service.is_active:
        raise ValidationError("service_id does not reference an active service")
    tier = db.session.get(TierPackage, _parse_id(tier_id, "tier_id"))
    if not tier or not tier.is_active:
        raise ValidationError("tier_id does not reference an active tier")
    return service, tier


def _status_event(quote: Quote, old_status: QuoteStatus | None, actor_id: int | None) -> dict:
    return {
        "quote_id": quote.id,
        "customer_id": quote.customer_id,
        "is_guest": quote.is_guest,
        "old_status": old_status.value if old_status else None,
        "new_status": quote.status.value,
        "actor_id": actor_id,
    }


# =============================================================================
# SUBMISSION
# =============================================================================

def submit_quote(service_id, tier_id, actor: User, notes=None, estimate_subtotal=None) -> Quote:
    if not actor.is_customer:
        raise AuthorizationError("Only customers can request quotes")
    service, tier = _resolve_catalog(service_id, tier_id)

    estimate_cents = None
    if estimate_subtotal is not None:
        estimate_cents = parse_amount(estimate_subtotal, "estimate_subtotal")
        if estimate_cents < 0:
            raise ValidationError("estimate_subtotal cannot be negative")

    with unit_of_work("submit quote"):
        quote = Quote(
            customer_id=actor.id,
            service_id=service.id,
            tier_id=tier.id,
            status=QuoteStatus.SUBMITTED,
            estimate_subtotal_cents=estimate_cents,
            notes=_clean(notes, 5000),
            is_guest=False,
        )
        db.session.add(quote)

    event_bus.publish("quote.status_updated", _status_event(quote, None, actor.id))
    return quote


def submit_guest_quote(
    service_id,
    tier_id,
    guest_name,
    guest_email,
    guest_phone=None,
    guest_company_name=None,
    notes=None,
) -> tuple[Quote, str]:
    """
    Create a quote for someone without an account.

    Returns (quote, magic_link_token). The token is the only credential the
    guest has; it expires after GUEST_LINK_TTL_DAYS.
    """
    service, tier = _resolve_catalog(service_id, tier_id)
    name = _clean(guest_name, 255)
    email = _clean(guest_email, 255)
    if not name or not email:
        raise ValidationError("guest_name and guest_email required")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")

    ttl_days = current_app.config.get("GUEST_LINK_TTL_DAYS", 7)
    token = secrets.token_urlsafe(32)

    with unit_of_work("submit guest quote"):
        quote = Quote(
            customer_id=None,
            service_id=service.id,
            tier_id=tier.id,
            status=QuoteStatus.SUBMITTED,
            notes=_clean(notes, 5000),
            is_guest=True,
            guest_name=name,
            guest_email=email.lower(),
            guest_phone=_clean(guest_phone, 64),
            guest_company_name=_clean(guest_company_name, 255),
        )
        db.session.add(quote)
        db.session.flush()
        db.session.add(GuestQuoteToken(
            quote_id=quote.id,
            token=token,
            expires_at=utcnow() + timedelta(days=ttl_days),
        ))

    event_bus.publish("quote.status_updated", _status_event(quote, None, None))
    return quote, token


def _resolve_guest_token(token: str) -> GuestQuoteToken:
    row = db.session.query(GuestQuoteToken).filter_by(token=token or "").first()
    if not row:
        raise NotFoundError("Invalid or expired link")
    if row.expires_at < utcnow():
        raise BusinessRuleViolation("This link has expired", status_code=410)
    return row


def get_guest_quote(token: str) -> Quote:
    row = _resolve_guest_token(token)
    quote = row.quote
    if not quote.is_guest:
        raise AuthorizationError("Access denied")
    return quote


def update_guest_quote_status(token: str, status) -> Quote:
    try:
        target = QuoteStatus(str(status or "").strip().upper())
    except ValueError:
        target = None
    if target not in GUEST_DECISIONS:
        raise ValidationError("Status must be APPROVED or REJECTED")

    with unit_of_work("update guest quote status"):
        row = _resolve_guest_token(token)
        quote = lock_for_update(db.session.query(Quote).filter_by(id=row.quote_id)).first()
        if not quote.is_guest:
            raise AuthorizationError("Access denied")
        if quote.status != QuoteStatus.SUBMITTED:
            raise BusinessRuleViolation(f"Quote is already {quote.status.value}")
        old_status = quote.status
        quote.status = target

    event_bus.publish("quote.status_updated", _status_event(quote, old_status, None))
    return quote


# =============================================================================
# READS
# =============================================================================

def get_quote(quote_id: int, actor: User) -> Quote:
    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFoundError("Quote not found")
    if actor.is_customer and quote.customer_id != actor.id:
        raise AuthorizationError("Access denied")
    return quote


def list_quotes(actor: User, status=None, page: int = 1, limit: int = 20) -> dict:
    """Customers see their own quotes; staff and admins see all of them."""
    query = db.session.query(Quote)
    if actor.is_customer:
        query = query.filter(Quote.customer_id == actor.id)
    if status:
        try:
            query = query.filter(Quote.status == QuoteStatus(str(status).strip().upper()))
        except ValueError:
            raise ValidationError(f"Invalid quote status: {status}")

    page = max(1, page)
    limit = max(1, min(limit, 100))
    total = query.count()
    quotes = (
        query.order_by(Quote.created_at.desc(), Quote.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"quotes": quotes, "total": total}


# =============================================================================
# FINALIZATION
# =============================================================================

def finalize_quote(quote_id: int, final_subtotal, actor: User, notes=None) -> tuple[Quote, Order, Invoice]:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can finalize quotes")

    subtotal_cents = parse_positive_amount(final_subtotal, "final_subtotal")
    notes = _clean(notes, 5000)

    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFoundError("Quote not found")
    if quote.status in FINAL_QUOTE_STATUSES:
        raise BusinessRuleViolation(f"Quote is already {quote.status.value}")

    tax_rate = settings_service.get_tax_rate()
    deposit_pct = settings_service.get_default_deposit_pct()
    tax_cents = apply_rate(subtotal_cents, tax_rate)
    total_cents = subtotal_cents + tax_cents
    deposit_cents = percent_of(total_cents, deposit_pct)

    with unit_of_work("finalize quote"):
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if quote.status in FINAL_QUOTE_STATUSES:
            raise BusinessRuleViolation(f"Quote is already {quote.status.value}")

        quote.status = QuoteStatus.FINALIZED
        quote.final_subtotal_cents = subtotal_cents
        if notes is not None:
            quote.notes = notes

        order = Order(
            quote_id=quote.id,
            customer_id=quote.customer_id,
            tier_id=quote.tier_id,
            status=OrderStatus.PENDING_DEPOSIT,
            total_subtotal_cents=subtotal_cents,
            tax_amount_cents=tax_cents,
            total_amount_cents=total_cents,
            deposit_pct=deposit_pct,
            deposit_amount_cents=deposit_cents,
            revision_count=0,
        )
        db.session.add(order)
        db.session.flush()

        issued_at = utcnow()
        invoice = Invoice(
            order_id=order.id,
            invoice_number=invoice_service.next_invoice_number(issued_at),
            amount_due_cents=total_cents,
            issued_at=issued_at,
        )
        db.session.add(invoice)

    event_bus.publish("quote.finalized", {
        "quote_id": quote.id,
        "order_id": order.id,
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer_id": quote.customer_id,
        "final_subtotal": format_cents(subtotal_cents),
        "tax_amount": format_cents(tax_cents),
        "total_amount": format_cents(total_cents),
        "deposit_amount": format_cents(deposit_cents),
        "actor_id": actor.id,
    })
    return quote, order, invoice
