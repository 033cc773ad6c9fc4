# Overview: Flask API routes for proofs operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..models import UserRole
from ..services import proof_service


proofs_bp = Blueprint("proofs", __name__, url_prefix="/api")


@proofs_bp.get("/orders/<int:order_id>/proofs")
@require_auth
def list_proofs_route(order_id: int):
    try:
        return jsonify({"proofs": proof_service.list_proofs(order_id, g.current_user)}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list proofs")
        return jsonify({"error": "Internal server error"}), 500


@proofs_bp.post("/orders/<int:order_id>/proofs")
@require_auth
@require_role(UserRole.STAFF, UserRole.ADMIN)
def upload_proof_route(order_id: int):
    """
    Record a new proof version. The file itself lives in external storage;
    only its URL is stored.

    Request body:
    {
        "file_url": "https://files.example/proofs/123-v2.pdf",
        "internal_notes": "Fixed bleed"   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        proof = proof_service.upload_proof(
            order_id,
            data.get("file_url"),
            g.current_user,
            internal_notes=data.get("internal_notes"),
        )
        return jsonify(proof.to_dict()), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to upload proof")
        return jsonify({"error": "Internal server error"}), 500


@proofs_bp.post("/proofs/<int:proof_id>/approve")
@require_auth
def approve_proof_route(proof_id: int):
    try:
        proof = proof_service.approve_proof(proof_id, g.current_user)
        return jsonify(proof.to_dict(include_internal=False)), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve proof")
        return jsonify({"error": "Internal server error"}), 500


@proofs_bp.post("/proofs/<int:proof_id>/request-changes")
@require_auth
def request_changes_route(proof_id: int):
    """
    Request body:
    {
        "customer_comment": "Make the logo bigger"   (1..1000 characters)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        comment = data.get("customer_comment", data.get("comment"))
        proof = proof_service.request_changes(proof_id, comment, g.current_user)
        return jsonify(proof.to_dict(include_internal=False)), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request proof changes")
        return jsonify({"error": "Internal server error"}), 500
