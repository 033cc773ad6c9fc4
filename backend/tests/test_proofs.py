"""
Proof versions, approvals and revision quotas.
"""

import pytest

from printshop.errors import AuthorizationError, BusinessRuleViolation, ValidationError
from printshop.models import Order, OrderStatus, ProofStatus, ProofVersion
from printshop.services import order_service, proof_service


def _upload(client, order_id, headers, url="https://files.example/proof.pdf", **extra):
    return client.post(f"/api/orders/{order_id}/proofs", json={"file_url": url, **extra}, headers=headers)


class TestUpload:

    def test_versions_increase_per_order(self, client, make_order, staff_headers):
        _, order_a, _ = make_order()
        _, order_b, _ = make_order()

        first = _upload(client, order_a.id, staff_headers).get_json()
        second = _upload(client, order_a.id, staff_headers).get_json()
        other = _upload(client, order_b.id, staff_headers).get_json()

        assert first["version_number"] == 1
        assert second["version_number"] == 2
        assert other["version_number"] == 1

    def test_upload_moves_order_to_awaiting_approval(self, client, make_order, staff_headers, db_session, events):
        _, order, _ = make_order()
        events.clear()

        resp = _upload(client, order.id, staff_headers, internal_notes="fixed bleed")

        assert resp.status_code == 201
        assert resp.get_json()["status"] == "SENT"
        assert db_session.get(Order, order.id).status == OrderStatus.AWAITING_APPROVAL
        assert [e["event_type"] for e in events] == ["proof.uploaded", "order.status_updated"]

    def test_customer_cannot_upload(self, client, make_order, customer_headers):
        _, order, _ = make_order()
        assert _upload(client, order.id, customer_headers).status_code == 403

    def test_file_url_required(self, client, make_order, staff_headers):
        _, order, _ = make_order()
        resp = client.post(f"/api/orders/{order.id}/proofs", json={}, headers=staff_headers)
        assert resp.status_code == 400

    def test_cancelled_order_rejects_upload(self, client, make_order, staff_headers, admin_headers):
        _, order, _ = make_order()
        client.patch(f"/api/orders/{order.id}", json={"status": "CANCELLED"}, headers=admin_headers)
        assert _upload(client, order.id, staff_headers).status_code == 400

    def test_internal_notes_hidden_from_customer(self, client, make_order, staff_headers, customer_headers):
        _, order, _ = make_order()
        _upload(client, order.id, staff_headers, internal_notes="check pantone")

        staff_view = client.get(f"/api/orders/{order.id}/proofs", headers=staff_headers).get_json()["proofs"]
        customer_view = client.get(f"/api/orders/{order.id}/proofs", headers=customer_headers).get_json()["proofs"]

        assert staff_view[0]["internal_notes"] == "check pantone"
        assert "internal_notes" not in customer_view[0]


class TestCustomerDecisions:

    def test_approve_latest_proof(self, client, make_order, staff_headers, customer_headers, db_session, events):
        _, order, _ = make_order()
        proof_id = _upload(client, order.id, staff_headers).get_json()["id"]

        resp = client.post(f"/api/proofs/{proof_id}/approve", headers=customer_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "APPROVED"
        assert body["approved_at"] is not None
        assert db_session.get(Order, order.id).status == OrderStatus.IN_PRODUCTION
        assert "proof.approved" in [e["event_type"] for e in events]

    def test_cannot_approve_twice(self, client, make_order, staff_headers, customer_headers):
        _, order, _ = make_order()
        proof_id = _upload(client, order.id, staff_headers).get_json()["id"]
        client.post(f"/api/proofs/{proof_id}/approve", headers=customer_headers)

        resp = client.post(f"/api/proofs/{proof_id}/approve", headers=customer_headers)
        assert resp.status_code == 400

    def test_older_version_cannot_be_approved(self, client, make_order, staff_headers, customer_headers):
        _, order, _ = make_order()
        old_id = _upload(client, order.id, staff_headers).get_json()["id"]
        _upload(client, order.id, staff_headers)

        resp = client.post(f"/api/proofs/{old_id}/approve", headers=customer_headers)
        assert resp.status_code == 400

    def test_other_customer_cannot_approve(self, client, make_order, staff_headers, other_customer_headers):
        _, order, _ = make_order()
        proof_id = _upload(client, order.id, staff_headers).get_json()["id"]

        resp = client.post(f"/api/proofs/{proof_id}/approve", headers=other_customer_headers)
        assert resp.status_code == 403

    def test_staff_cannot_approve_on_behalf(self, client, make_order, staff_headers):
        _, order, _ = make_order()
        proof_id = _upload(client, order.id, staff_headers).get_json()["id"]

        resp = client.post(f"/api/proofs/{proof_id}/approve", headers=staff_headers)
        assert resp.status_code == 403

    def test_missing_proof_is_404(self, client, customer_headers):
        assert client.post("/api/proofs/999/approve", headers=customer_headers).status_code == 404


class TestRevisionQuota:

    def _request(self, client, proof_id, headers, comment="Make the logo bigger"):
        return client.post(f"/api/proofs/{proof_id}/request-changes", json={"customer_comment": comment}, headers=headers)

    def test_standard_tier_allows_two_revisions(self, client, make_order, staff_headers, customer_headers, db_session, events):
        _, order, _ = make_order(tier="standard")

        for expected_count in (1, 2):
            proof_id = _upload(client, order.id, staff_headers).get_json()["id"]
            resp = self._request(client, proof_id, customer_headers)
            assert resp.status_code == 200
            assert resp.get_json()["status"] == "REVISION_REQUESTED"
            assert db_session.get(Order, order.id).revision_count == expected_count

        revision_events = [e for e in events if e["event_type"] == "proof.revision_requested"]
        assert revision_events[-1]["revisions_remaining"] == 0
        assert revision_events[-1]["tier_revision_limit"] == 2

        proof_id = _upload(client, order.id, staff_headers).get_json()["id"]
        resp = self._request(client, proof_id, customer_headers)
        assert resp.status_code == 400
        assert "Revision limit" in resp.get_json()["error"]

        refreshed = db_session.get(Order, order.id)
        assert refreshed.revision_count == 2
        assert refreshed.status == OrderStatus.AWAITING_APPROVAL

    def test_basic_tier_has_no_revisions(self, client, make_order, staff_headers, customer_headers):
        _, order, _ = make_order(tier="basic")
        proof_id = _upload(client, order.id, staff_headers).get_json()["id"]

        resp = self._request(client, proof_id, customer_headers)
        assert resp.status_code == 400

        # the proof can still be approved
        resp = client.post(f"/api/proofs/{proof_id}/approve", headers=customer_headers)
        assert resp.status_code == 200

    def test_premium_tier_is_unlimited(self, make_order, staff, customer, db_session):
        _, order, _ = make_order(tier="premium")

        for _ in range(5):
            proof = proof_service.upload_proof(order.id, "https://files.example/p.pdf", staff)
            proof_service.request_changes(proof.id, "again", customer)

        assert db_session.get(Order, order.id).revision_count == 5

    @pytest.mark.parametrize("comment", ["", "   ", None, "x" * 1001])
    def test_comment_validation(self, make_order, staff, customer, comment):
        _, order, _ = make_order()
        proof = proof_service.upload_proof(order.id, "https://files.example/p.pdf", staff)
        with pytest.raises(ValidationError):
            proof_service.request_changes(proof.id, comment, customer)

    def test_comment_is_stored_trimmed(self, make_order, staff, customer):
        _, order, _ = make_order()
        proof = proof_service.upload_proof(order.id, "https://files.example/p.pdf", staff)
        proof = proof_service.request_changes(proof.id, "  Darker blue please  ", customer)
        assert proof.customer_comment == "Darker blue please"
        assert proof.status == ProofStatus.REVISION_REQUESTED

    def test_staff_cannot_request_changes(self, make_order, staff):
        _, order, _ = make_order()
        proof = proof_service.upload_proof(order.id, "https://files.example/p.pdf", staff)
        with pytest.raises(AuthorizationError):
            proof_service.request_changes(proof.id, "nope", staff)

    def test_revision_request_after_decision_rejected(self, make_order, staff, customer):
        _, order, _ = make_order(tier="premium")
        proof = proof_service.upload_proof(order.id, "https://files.example/p.pdf", staff)
        proof_service.approve_proof(proof.id, customer)
        with pytest.raises(BusinessRuleViolation):
            proof_service.request_changes(proof.id, "one more thing", customer)


class TestProofAtomicity:

    def test_failed_status_move_keeps_proof_and_count(self, client, make_order, staff, customer_headers,
                                                      db_session, monkeypatch, events):
        _, order, _ = make_order(tier="standard")
        proof = proof_service.upload_proof(order.id, "https://files.example/p.pdf", staff)
        events.clear()

        def _boom(*args, **kwargs):
            raise RuntimeError("status store unavailable")

        monkeypatch.setattr(order_service, "drive_status", _boom)

        resp = client.post(
            f"/api/proofs/{proof.id}/request-changes",
            json={"customer_comment": "Bigger logo"},
            headers=customer_headers,
        )

        assert resp.status_code == 500
        reloaded = db_session.get(ProofVersion, proof.id)
        assert reloaded.status == ProofStatus.SENT
        assert reloaded.customer_comment is None
        refreshed = db_session.get(Order, order.id)
        assert refreshed.revision_count == 0
        assert refreshed.status == OrderStatus.AWAITING_APPROVAL
        assert events == []

    def test_duplicate_version_rejected_without_gap(self, client, make_order, staff, staff_headers,
                                                    db_session, monkeypatch):
        _, order, _ = make_order()
        proof_service.upload_proof(order.id, "https://files.example/v1.pdf", staff)

        # a concurrent upload already took version 1
        monkeypatch.setattr(proof_service, "_latest_version_number", lambda order_id: 0)
        resp = _upload(client, order.id, staff_headers)
        assert resp.status_code == 400
        assert "retry" in resp.get_json()["error"]

        monkeypatch.undo()
        assert _upload(client, order.id, staff_headers).get_json()["version_number"] == 2

        versions = [
            p.version_number
            for p in db_session.query(ProofVersion).filter_by(order_id=order.id).order_by(ProofVersion.version_number)
        ]
        assert versions == [1, 2]
