# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import invoice_service, order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.get("/orders")
@require_auth
@require_role(UserRole.CUSTOMER)
def list_my_orders_route():
    try:
        result = order_service.list_customer_orders(
            g.current_user,
            status=request.args.get("status"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 20, type=int),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/orders/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order_detail(order_id, g.current_user)), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/orders/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    """
    Change status and/or assigned staff.

    Request body:
    {
        "status": "IN_PRODUCTION",      (optional; staff/admin)
        "assigned_staff_id": 7          (optional; admin only)
    }

    Customers get 403; illegal transitions get 400.
    """
    try:
        data = request.get_json(silent=True) or {}
        if "status" not in data and "assigned_staff_id" not in data:
            return jsonify({"error": "status or assigned_staff_id required"}), 400

        order = None
        if "status" in data:
            order = order_service.transition_order(order_id, data.get("status"), g.current_user)
        if "assigned_staff_id" in data:
            order = order_service.assign_staff(order_id, data.get("assigned_staff_id"), g.current_user)

        return jsonify(order.to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/staff/jobs")
@require_auth
@require_role(UserRole.STAFF, UserRole.ADMIN)
def list_staff_jobs_route():
    try:
        orders = order_service.list_staff_jobs(
            g.current_user,
            status=request.args.get("status"),
            assigned_to=request.args.get("assigned_to", type=int),
        )
        return jsonify({"jobs": [o.to_dict() for o in orders]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list staff jobs")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/admin/orders")
@require_auth
@require_role(UserRole.ADMIN)
def list_admin_orders_route():
    try:
        result = order_service.list_admin_orders(
            g.current_user,
            status=request.args.get("status"),
            assigned_to=request.args.get("assigned_to", type=int),
            payment_status=request.args.get("payment_status"),
            customer=request.args.get("customer"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 20, type=int),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list admin orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/invoices/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id, g.current_user)
        return jsonify({
            "invoice": invoice.to_dict(),
            "order": invoice.order.to_dict(),
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify({"error": "Internal server error"}), 500
