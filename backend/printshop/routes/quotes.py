# Overview: Flask API routes for quotes operations; parses input and returns JSON responses.

"""
Quote API Routes

Authenticated:
- POST /api/quotes                      customer submits a quote
- GET  /api/quotes                      own quotes (customer) or all (staff/admin)
- GET  /api/quotes/<id>
- POST /api/quotes/<id>/finalize        admin prices the quote -> order + invoice

Public (magic link):
- POST  /api/guest/quotes
- GET   /api/guest/quotes/<token>
- PATCH /api/guest/quotes/<token>/status
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import quote_service


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")
guest_quotes_bp = Blueprint("guest_quotes", __name__, url_prefix="/api/guest/quotes")


@quotes_bp.post("")
@require_auth
@require_role(UserRole.CUSTOMER)
def submit_quote_route():
    try:
        data = request.get_json(silent=True) or {}
        quote = quote_service.submit_quote(
            service_id=data.get("service_id"),
            tier_id=data.get("tier_id"),
            actor=g.current_user,
            notes=data.get("notes"),
            estimate_subtotal=data.get("estimate_subtotal"),
        )
        return jsonify({"quote": quote.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("")
@require_auth
def list_quotes_route():
    try:
        result = quote_service.list_quotes(
            g.current_user,
            status=request.args.get("status"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 20, type=int),
        )
        return jsonify({
            "quotes": [q.to_dict() for q in result["quotes"]],
            "total": result["total"],
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list quotes")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("/<int:quote_id>")
@require_auth
def get_quote_route(quote_id: int):
    try:
        quote = quote_service.get_quote(quote_id, g.current_user)
        return jsonify({
            "quote": quote.to_dict(),
            "service": quote.service.to_dict() if quote.service else None,
            "tier": quote.tier.to_dict() if quote.tier else None,
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.post("/<int:quote_id>/finalize")
@require_auth
@require_role(UserRole.ADMIN)
def finalize_quote_route(quote_id: int):
    """
    Finalize a quote.

    Request body:
    {
        "final_subtotal": "150.00",
        "notes": "Includes lamination"   (optional)
    }

    Returns:
        200: {quote, order, invoice}
        400: invalid subtotal / quote already finalized or rejected
        403: not an admin
        404: quote not found
        500: store failure (nothing is kept)
    """
    try:
        data = request.get_json(silent=True) or {}
        quote, order, invoice = quote_service.finalize_quote(
            quote_id,
            data.get("final_subtotal"),
            g.current_user,
            notes=data.get("notes"),
        )
        return jsonify({
            "quote": quote.to_dict(),
            "order": order.to_dict(),
            "invoice": invoice.to_dict(),
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize quote")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# GUEST QUOTES
# =============================================================================

@guest_quotes_bp.post("")
def submit_guest_quote_route():
    try:
        data = request.get_json(silent=True) or {}
        quote, token = quote_service.submit_guest_quote(
            service_id=data.get("service_id"),
            tier_id=data.get("tier_id"),
            guest_name=data.get("guest_name"),
            guest_email=data.get("guest_email"),
            guest_phone=data.get("guest_phone"),
            guest_company_name=data.get("guest_company_name"),
            notes=data.get("notes"),
        )
        return jsonify({
            "quote": quote.to_dict(),
            "magic_link_token": token,
            "message": "Quote submitted successfully. Check your email for the magic link.",
        }), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit guest quote")
        return jsonify({"error": "Internal server error"}), 500


@guest_quotes_bp.get("/<token>")
def get_guest_quote_route(token: str):
    try:
        quote = quote_service.get_guest_quote(token)
        return jsonify({
            "quote": quote.to_dict(),
            "service": quote.service.to_dict() if quote.service else None,
            "tier": quote.tier.to_dict() if quote.tier else None,
            "token_valid": True,
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load guest quote")
        return jsonify({"error": "Internal server error"}), 500


@guest_quotes_bp.patch("/<token>/status")
def update_guest_quote_status_route(token: str):
    try:
        data = request.get_json(silent=True) or {}
        quote = quote_service.update_guest_quote_status(token, data.get("status"))
        return jsonify({
            "quote": quote.to_dict(),
            "message": f"Quote {quote.status.value.lower()} successfully",
        }), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update guest quote status")
        return jsonify({"error": "Internal server error"}), 500
