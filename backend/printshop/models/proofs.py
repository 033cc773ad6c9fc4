from __future__ import annotations

import enum

from ..extensions import db
from printshop.time_utils import to_utc_z


class ProofStatus(str, enum.Enum):
    SENT = "SENT"
    APPROVED = "APPROVED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


class ProofVersion(db.Model):
    """
    One uploaded proof for an order. Version numbers run 1, 2, 3... per order
    with no gaps or repeats; the unique constraint rejects a concurrent duplicate.
    """
    __tablename__ = "proof_versions"
    __table_args__ = (
        db.UniqueConstraint("order_id", "version_number", name="uq_proof_versions_order_version"),
        db.CheckConstraint("version_number >= 1", name="ck_proof_versions_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    file_url = db.Column(db.String(1024), nullable=False)
    status = db.Column(db.Enum(ProofStatus, native_enum=False, length=32), nullable=False, default=ProofStatus.SENT)
    customer_comment = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    order = db.relationship("Order", backref=db.backref("proofs", lazy=True, order_by="ProofVersion.version_number"))
    created_by = db.relationship("User")

    def to_dict(self, include_internal: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "version_number": self.version_number,
            "file_url": self.file_url,
            "status": self.status.value,
            "customer_comment": self.customer_comment,
            "approved_at": to_utc_z(self.approved_at),
            "created_by_staff_id": self.created_by_staff_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_internal:
            data["internal_notes"] = self.internal_notes
        return data
