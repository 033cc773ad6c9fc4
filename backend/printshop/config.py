# backend/printshop/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/printshop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///printshop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens issued by `flask users issue-token`
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Fallbacks for the runtime settings table (see settings_service).
    # The settings table wins when a row exists; these only seed it.
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.08")
    DEFAULT_DEPOSIT_PCT = int(os.environ.get("DEFAULT_DEPOSIT_PCT", "50"))
    DEFAULT_EMERGENCY_FEE_PCT = int(os.environ.get("DEFAULT_EMERGENCY_FEE_PCT", "20"))

    # Guest magic links
    GUEST_LINK_TTL_DAYS = int(os.environ.get("GUEST_LINK_TTL_DAYS", "7"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
