from __future__ import annotations

from ..extensions import db


class Service(db.Model):
    """Print service offered by the shop (banners, vehicle wraps, ...). Read-only here."""
    __tablename__ = "services"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "slug": self.slug, "name": self.name, "is_active": self.is_active}


class TierPackage(db.Model):
    """
    Service tier (basic / standard / premium / enterprise).

    revision_limit is the only place a revision quota is configured.
    NULL means unlimited revisions.
    """
    __tablename__ = "tier_packages"
    __table_args__ = (
        db.CheckConstraint("revision_limit IS NULL OR revision_limit >= 0", name="ck_tier_revision_limit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    revision_limit = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "revision_limit": self.revision_limit,
            "is_active": self.is_active,
        }
