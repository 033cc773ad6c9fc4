# Overview: Flask API routes for calendar operations; availability and calendar administration.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import calendar_service


calendar_bp = Blueprint("calendar", __name__, url_prefix="/api/calendar")
calendar_admin_bp = Blueprint("calendar_admin", __name__, url_prefix="/api/admin")


@calendar_bp.get("/availability")
def availability_route():
    """
    Query params:
    - start_date: YYYY-MM-DD (required)
    - end_date: YYYY-MM-DD (required, at most 366 days after start)

    Non-working days and blackout dates are left out of available_dates.
    """
    try:
        result = calendar_service.get_availability(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute availability")
        return jsonify({"error": "Internal server error"}), 500


@calendar_admin_bp.get("/calendar-settings")
@require_auth
@require_role(UserRole.STAFF, UserRole.ADMIN)
def get_calendar_settings_route():
    try:
        return jsonify(calendar_service.get_calendar_settings().to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to load calendar settings")
        return jsonify({"error": "Internal server error"}), 500


@calendar_admin_bp.patch("/calendar-settings")
@require_auth
@require_role(UserRole.ADMIN)
def update_calendar_settings_route():
    try:
        data = request.get_json(silent=True) or {}
        settings = calendar_service.update_calendar_settings(data, g.current_user)
        return jsonify(settings.to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update calendar settings")
        return jsonify({"error": "Internal server error"}), 500


@calendar_admin_bp.get("/blackout-dates")
@require_auth
@require_role(UserRole.ADMIN)
def list_blackout_dates_route():
    try:
        rows = calendar_service.list_blackout_dates(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return jsonify({"blackout_dates": [r.to_dict() for r in rows]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list blackout dates")
        return jsonify({"error": "Internal server error"}), 500


@calendar_admin_bp.post("/blackout-dates")
@require_auth
@require_role(UserRole.ADMIN)
def add_blackout_date_route():
    try:
        data = request.get_json(silent=True) or {}
        blackout = calendar_service.add_blackout_date(data.get("date"), g.current_user, reason=data.get("reason"))
        return jsonify(blackout.to_dict()), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add blackout date")
        return jsonify({"error": "Internal server error"}), 500


@calendar_admin_bp.delete("/blackout-dates/<int:blackout_id>")
@require_auth
@require_role(UserRole.ADMIN)
def remove_blackout_date_route(blackout_id: int):
    try:
        calendar_service.remove_blackout_date(blackout_id, g.current_user)
        return "", 204
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove blackout date")
        return jsonify({"error": "Internal server error"}), 500
