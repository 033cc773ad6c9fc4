# Overview: Service-layer operations for proof; version numbering, approvals and revision quotas.

"""
Proof Revision Manager

- Staff upload proofs; version numbers run 1, 2, 3... per order.
- The order's customer approves the latest proof or asks for changes.
- Only a SENT proof that is still the latest version can be acted on.
- Change requests are capped by the tier's revision_limit (NULL = unlimited).

Ownership is always checked against order.customer_id.

Every action also moves the order through order_service.drive_status:
    upload          -> AWAITING_APPROVAL
    approve         -> IN_PRODUCTION
    request changes -> IN_PRODUCTION
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import AuthorizationError, BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db, event_bus
from ..models import Order, OrderStatus, ProofStatus, ProofVersion, User
from printshop.time_utils import utcnow
from .concurrency import lock_for_update, unit_of_work
from . import order_service


MAX_COMMENT_LENGTH = 1000
MAX_FILE_URL_LENGTH = 1024


def _locked_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _latest_version_number(order_id: int) -> int:
    current = (
        db.session.query(db.func.max(ProofVersion.version_number))
        .filter(ProofVersion.order_id == order_id)
        .scalar()
    )
    return current or 0


def _load_actionable_proof(proof_id: int, actor: User) -> ProofVersion:
    """The proof, if `actor` owns its order and it is still awaiting a decision."""
    if not actor.is_customer:
        raise AuthorizationError("Only the customer can respond to a proof")
    proof = db.session.get(ProofVersion, proof_id)
    if not proof:
        raise NotFoundError("Proof not found")
    if proof.order.customer_id != actor.id:
        raise AuthorizationError("Access denied")
    if proof.status != ProofStatus.SENT:
        raise BusinessRuleViolation(f"Proof already processed ({proof.status.value})")
    if proof.version_number != _latest_version_number(proof.order_id):
        raise BusinessRuleViolation("A newer proof version exists")
    return proof


def _proof_event(proof: ProofVersion, order: Order, actor: User) -> dict:
    return {
        "proof_id": proof.id,
        "order_id": order.id,
        "customer_id": order.customer_id,
        "version_number": proof.version_number,
        "status": proof.status.value,
        "actor_id": actor.id,
    }


def upload_proof(order_id: int, file_url, actor: User, internal_notes=None) -> ProofVersion:
    if not actor.is_staff_or_admin:
        raise AuthorizationError("Only staff can upload proofs")
    file_url = (file_url or "").strip() if isinstance(file_url, str) else None
    if not file_url:
        raise ValidationError("file_url is required")
    if len(file_url) > MAX_FILE_URL_LENGTH:
        raise ValidationError(f"file_url exceeds {MAX_FILE_URL_LENGTH} characters")
    if internal_notes is not None:
        internal_notes = str(internal_notes).strip() or None

    with unit_of_work("upload proof"):
        order = _locked_order(order_id)
        if order.is_terminal:
            raise BusinessRuleViolation(f"Cannot add proofs to an order that is {order.status.value}")

        proof = ProofVersion(
            order_id=order.id,
            version_number=_latest_version_number(order.id) + 1,
            file_url=file_url,
            status=ProofStatus.SENT,
            internal_notes=internal_notes,
            created_by_staff_id=actor.id,
        )
        db.session.add(proof)
        try:
            db.session.flush()
        except IntegrityError:
            raise BusinessRuleViolation("Another proof was uploaded for this order at the same time; retry")

        status_event = order_service.drive_status(order, OrderStatus.AWAITING_APPROVAL, actor, "proof uploaded")

    event = _proof_event(proof, order, actor)
    event["file_url"] = proof.file_url
    event_bus.publish("proof.uploaded", event)
    if status_event:
        event_bus.publish(*status_event)
    return proof


def approve_proof(proof_id: int, actor: User) -> ProofVersion:
    proof = _load_actionable_proof(proof_id, actor)

    with unit_of_work("approve proof"):
        order = _locked_order(proof.order_id)
        proof.status = ProofStatus.APPROVED
        proof.approved_at = utcnow()
        status_event = order_service.drive_status(order, OrderStatus.IN_PRODUCTION, actor, "proof approved")

    event_bus.publish("proof.approved", _proof_event(proof, order, actor))
    if status_event:
        event_bus.publish(*status_event)
    return proof


def request_changes(proof_id: int, comment, actor: User) -> ProofVersion:
    comment = comment.strip() if isinstance(comment, str) else ""
    if not comment:
        raise ValidationError("customer_comment is required")
    if len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"customer_comment must be at most {MAX_COMMENT_LENGTH} characters")

    proof = _load_actionable_proof(proof_id, actor)

    with unit_of_work("request proof changes"):
        order = _locked_order(proof.order_id)
        if order.tier is None:
            raise BusinessRuleViolation("Order has no service tier; revision quota unknown")
        limit = order.tier.revision_limit
        if limit is not None and order.revision_count >= limit:
            raise BusinessRuleViolation(
                f"Revision limit reached ({order.revision_count}/{limit}) for the {order.tier.name} tier"
            )

        proof.status = ProofStatus.REVISION_REQUESTED
        proof.customer_comment = comment
        # version_id on Order makes this increment lose cleanly to a concurrent writer
        order.revision_count = Order.revision_count + 1
        status_event = order_service.drive_status(order, OrderStatus.IN_PRODUCTION, actor, "revision requested")

    revision_count = order.revision_count
    event = _proof_event(proof, order, actor)
    event.update({
        "comment": comment,
        "revision_count": revision_count,
        "tier_revision_limit": limit,
        "revisions_remaining": None if limit is None else max(0, limit - revision_count),
    })
    event_bus.publish("proof.revision_requested", event)
    if status_event:
        event_bus.publish(*status_event)
    return proof


def list_proofs(order_id: int, actor: User) -> list[dict]:
    order = order_service.get_order_for_actor(order_id, actor)
    proofs = (
        db.session.query(ProofVersion)
        .filter_by(order_id=order.id)
        .order_by(ProofVersion.version_number.asc())
        .all()
    )
    return [p.to_dict(include_internal=not actor.is_customer) for p in proofs]
