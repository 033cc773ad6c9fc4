# Overview: Service-layer operations for invoice; numbering and invoice lookups.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import AuthorizationError, NotFoundError
from ..extensions import db
from ..models import Invoice, InvoiceSequence, User


def format_invoice_number(year: int, number: int) -> str:
    return f"INV-{year}-{number:05d}"


def next_invoice_number(issued_at: datetime) -> str:
    """
    Atomically allocate the next invoice number for the year of issued_at.

    Must be called inside the caller's transaction so a rolled-back
    finalize also gives the number back. The first number of a year is
    claimed by inserting the counter row under a savepoint; a concurrent
    insert loses on the unique year and falls back to the UPDATE path.
    """
    year = issued_at.year
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.year == year)
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(year=year, next_number=2))
            return format_invoice_number(year, 1)
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = db.session.query(InvoiceSequence.next_number).filter_by(year=year).scalar()
    return format_invoice_number(year, current - 1)


def get_invoice(invoice_id: int, actor: User) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    if actor.is_customer and invoice.order.customer_id != actor.id:
        raise AuthorizationError("Access denied")
    return invoice
