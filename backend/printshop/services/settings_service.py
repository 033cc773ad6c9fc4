from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Setting, User
from .concurrency import unit_of_work


KEY_TAX_RATE = "tax_rate"
KEY_DEFAULT_DEPOSIT_PCT = "default_deposit_pct"
KEY_EMERGENCY_FEE_PCT = "emergency_fee_pct"

# setting key -> Config attribute used when no row exists
CONFIG_FALLBACKS = {
    KEY_TAX_RATE: "DEFAULT_TAX_RATE",
    KEY_DEFAULT_DEPOSIT_PCT: "DEFAULT_DEPOSIT_PCT",
    KEY_EMERGENCY_FEE_PCT: "DEFAULT_EMERGENCY_FEE_PCT",
}


def _parse_tax_rate(raw) -> Decimal:
    try:
        rate = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("tax_rate must be a decimal fraction such as 0.08")
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ValidationError("tax_rate must be between 0 and 1")
    return rate


def _parse_pct(key: str, *, allow_zero: bool):
    def _parse(raw) -> int:
        try:
            pct = int(str(raw).strip())
        except ValueError:
            raise ValidationError(f"{key} must be a whole percentage")
        low = 0 if allow_zero else 1
        if pct < low or pct > 100:
            raise ValidationError(f"{key} must be between {low} and 100")
        return pct
    return _parse


PARSERS = {
    KEY_TAX_RATE: _parse_tax_rate,
    KEY_DEFAULT_DEPOSIT_PCT: _parse_pct(KEY_DEFAULT_DEPOSIT_PCT, allow_zero=True),
    KEY_EMERGENCY_FEE_PCT: _parse_pct(KEY_EMERGENCY_FEE_PCT, allow_zero=False),
}


def _default_raw(key: str) -> str:
    return str(current_app.config[CONFIG_FALLBACKS[key]])


def get_raw(key: str) -> str:
    if key not in PARSERS:
        raise NotFoundError(f"Unknown setting: {key}")
    row = db.session.query(Setting).filter_by(key=key).first()
    return row.value if row else _default_raw(key)


def get_tax_rate() -> Decimal:
    """The single source of the tax rate applied at finalize time."""
    return _parse_tax_rate(get_raw(KEY_TAX_RATE))


def get_default_deposit_pct() -> int:
    return PARSERS[KEY_DEFAULT_DEPOSIT_PCT](get_raw(KEY_DEFAULT_DEPOSIT_PCT))


def get_emergency_fee_pct() -> int:
    return PARSERS[KEY_EMERGENCY_FEE_PCT](get_raw(KEY_EMERGENCY_FEE_PCT))


def list_settings() -> list[dict]:
    rows = {row.key: row for row in db.session.query(Setting).all()}
    result = []
    for key in sorted(PARSERS):
        row = rows.get(key)
        if row:
            result.append(row.to_dict())
        else:
            result.append({"key": key, "value": _default_raw(key), "updated_by_user_id": None, "updated_at": None})
    return result


def update_setting(key: str, value, actor: User) -> Setting:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can change settings")
    if key not in PARSERS:
        raise NotFoundError(f"Unknown setting: {key}")
    if value is None:
        raise ValidationError("value is required")

    normalized = str(PARSERS[key](value))

    with unit_of_work("update setting"):
        row = db.session.query(Setting).filter_by(key=key).first()
        if row is None:
            row = Setting(key=key, value=normalized, updated_by_user_id=actor.id)
            db.session.add(row)
        else:
            row.value = normalized
            row.updated_by_user_id = actor.id
    return row


def ensure_defaults() -> int:
    """Insert missing settings rows from Config. Returns how many were added."""
    existing = {key for (key,) in db.session.query(Setting.key).all()}
    added = 0
    for key in PARSERS:
        if key not in existing:
            db.session.add(Setting(key=key, value=_default_raw(key)))
            added += 1
    if added:
        db.session.commit()
    return added
