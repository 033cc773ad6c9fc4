# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API Routes

- GET  /api/orders/<id>/payments      ledger for an order (owner/staff/admin)
- POST /api/orders/<id>/payments      admin records a manual payment
- GET  /api/orders/<id>/balance       derived balance
- POST /api/payments/intent           customer starts a (stubbed) card payment
- POST /api/payments/<id>/settle      gateway confirmation (admin)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api")


@payments_bp.get("/orders/<int:order_id>/payments")
@require_auth
def list_payments_route(order_id: int):
    try:
        payments = payment_service.list_payments(order_id, g.current_user)
        return jsonify({
            "payments": [p.to_dict() for p in payments],
            "summary": payment_service.compute_balance(order_id),
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/orders/<int:order_id>/payments")
@require_auth
def record_payment_route(order_id: int):
    """
    Request body:
    {
        "amount": "81.00",
        "method": "CASH",                 CASH | CHECK | CARD | WIRE
        "transaction_ref": "CHK-1001"     (optional)
    }

    Returns:
        201: the recorded payment (the running balance is at /balance)
        403: not an admin
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.record_payment(
            order_id,
            data.get("amount"),
            data.get("method"),
            g.current_user,
            transaction_ref=data.get("transaction_ref"),
        )
        return jsonify(payment.to_dict()), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/orders/<int:order_id>/balance")
@require_auth
def balance_route(order_id: int):
    try:
        return jsonify(payment_service.compute_balance(order_id, g.current_user)), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute balance")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/payments/intent")
@payments_bp.post("/payments/stripe/create-intent")
@require_auth
@require_role(UserRole.CUSTOMER)
def create_payment_intent_route():
    try:
        data = request.get_json(silent=True) or {}
        result = payment_service.create_payment_intent(data.get("order_id"), data.get("amount"), g.current_user)
        return jsonify(result), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create payment intent")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/payments/<int:payment_id>/settle")
@require_auth
@require_role(UserRole.ADMIN)
def settle_payment_route(payment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.settle_payment(payment_id, data.get("status"), g.current_user)
        return jsonify(payment.to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle payment")
        return jsonify({"error": "Internal server error"}), 500
