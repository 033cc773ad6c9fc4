# Overview: Flask API routes for settings operations; runtime business values (tax rate, deposit, surcharge).

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/admin/settings")


@settings_bp.get("")
@require_auth
@require_role(UserRole.ADMIN)
def list_settings_route():
    try:
        return jsonify({"settings": settings_service.list_settings()}), 200
    except Exception:
        current_app.logger.exception("Failed to list settings")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.get("/<key>")
@require_auth
@require_role(UserRole.ADMIN)
def get_setting_route(key: str):
    try:
        return jsonify({"key": key, "value": settings_service.get_raw(key)}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load setting")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.patch("/<key>")
@require_auth
@require_role(UserRole.ADMIN)
def update_setting_route(key: str):
    try:
        data = request.get_json(silent=True) or {}
        row = settings_service.update_setting(key, data.get("value"), g.current_user)
        return jsonify(row.to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update setting")
        return jsonify({"error": "Internal server error"}), 500
