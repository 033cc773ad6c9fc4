# Overview: Service-layer operations for user; local records of actors and catalog bootstrap.

from __future__ import annotations

from ..extensions import db
from ..models import CalendarSettings, Service, TierPackage, User, UserRole
from . import settings_service
from .calendar_service import CALENDAR_SETTINGS_ID


# slug -> (name, revision_limit); None means unlimited revisions
DEFAULT_TIERS = {
    "basic": ("Basic", 0),
    "standard": ("Standard", 2),
    "premium": ("Premium", None),
    "enterprise": ("Enterprise", None),
}

DEFAULT_SERVICES = {
    "business-cards": "Business Cards",
    "banners": "Banners & Signage",
    "vehicle-wraps": "Vehicle Wraps",
    "large-format": "Large Format Printing",
}


def create_user(email: str, role: UserRole, name: str | None = None, company_name: str | None = None) -> User:
    """
    Create a user record.

    Raises ValueError if the email is missing or already registered.
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValueError("A valid email is required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ValueError("Email already exists")

    user = User(
        email=email,
        name=(name or "").strip() or None,
        company_name=(company_name or "").strip() or None,
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def find_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=(email or "").strip().lower()).first()


def seed_defaults() -> dict:
    """
    Idempotent bootstrap of tiers, services, the calendar singleton and the
    settings rows. Existing rows are left untouched.
    """
    created = {"tiers": 0, "services": 0, "calendar": 0, "settings": 0}

    existing_tiers = {slug for (slug,) in db.session.query(TierPackage.slug).all()}
    for slug, (name, limit) in DEFAULT_TIERS.items():
        if slug not in existing_tiers:
            db.session.add(TierPackage(slug=slug, name=name, revision_limit=limit, is_active=True))
            created["tiers"] += 1

    existing_services = {slug for (slug,) in db.session.query(Service.slug).all()}
    for slug, name in DEFAULT_SERVICES.items():
        if slug not in existing_services:
            db.session.add(Service(slug=slug, name=name, is_active=True))
            created["services"] += 1

    if db.session.get(CalendarSettings, CALENDAR_SETTINGS_ID) is None:
        db.session.add(CalendarSettings(id=CALENDAR_SETTINGS_ID))
        created["calendar"] = 1

    db.session.commit()
    created["settings"] = settings_service.ensure_defaults()
    return created
