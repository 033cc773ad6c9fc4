# Overview: Flask API routes for bookings operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import booking_service


bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")


@bookings_bp.post("")
@require_auth
@require_role(UserRole.CUSTOMER)
def create_booking_route():
    """
    Request body:
    {
        "quote_id": 12,
        "start_at": "2030-06-03T09:00:00Z",
        "end_at": "2030-06-03T11:00:00Z",
        "is_emergency": false    (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        booking = booking_service.create_booking(
            data.get("quote_id"),
            data.get("start_at"),
            data.get("end_at"),
            g.current_user,
            is_emergency=data.get("is_emergency", False),
        )
        return jsonify(booking.to_dict()), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create booking")
        return jsonify({"error": "Internal server error"}), 500


@bookings_bp.get("")
@require_auth
def list_bookings_route():
    try:
        bookings = booking_service.list_bookings(
            g.current_user,
            status=request.args.get("status"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return jsonify({"bookings": [b.to_dict() for b in bookings]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list bookings")
        return jsonify({"error": "Internal server error"}), 500


@bookings_bp.get("/<int:booking_id>")
@require_auth
def get_booking_route(booking_id: int):
    try:
        return jsonify(booking_service.get_booking(booking_id, g.current_user).to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load booking")
        return jsonify({"error": "Internal server error"}), 500


@bookings_bp.patch("/<int:booking_id>")
@require_auth
def update_booking_route(booking_id: int):
    try:
        data = request.get_json(silent=True) or {}
        booking = booking_service.update_booking_status(booking_id, data.get("status"), g.current_user)
        return jsonify(booking.to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update booking")
        return jsonify({"error": "Internal server error"}), 500
