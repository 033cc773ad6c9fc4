"""
Payment ledger: derived balances, manual payments and the gateway stub.
"""

import pytest

from printshop.models import Invoice, OrderStatus, Payment, PaymentStatus
from printshop.services import payment_service


class TestDerivedStatus:

    @pytest.mark.parametrize("total,paid,expected", [
        (16200, 0, "UNPAID"),
        (16200, 8100, "PARTIAL"),
        (16200, 16200, "PAID"),
        (16200, 18100, "OVERPAID"),
    ])
    def test_derive_payment_status(self, total, paid, expected):
        assert payment_service.derive_payment_status(total, paid) == expected


class TestRecordPayment:

    def _pay(self, client, order_id, headers, amount, method="CASH", **extra):
        return client.post(
            f"/api/orders/{order_id}/payments",
            json={"amount": amount, "method": method, **extra},
            headers=headers,
        )

    def test_deposit_then_overpayment(self, client, make_order, admin_headers, customer_headers, events):
        _, order, _ = make_order()

        resp = self._pay(client, order.id, admin_headers, "81.00", transaction_ref="RCPT-1")
        assert resp.status_code == 201
        payment = resp.get_json()
        assert payment["status"] == "COMPLETED"
        assert payment["transaction_ref"] == "RCPT-1"
        assert payment["amount"] == "81.00"
        assert payment["order_id"] == order.id
        summary = client.get(f"/api/orders/{order.id}/balance", headers=customer_headers).get_json()
        assert summary["total_completed_paid"] == "81.00"
        assert summary["balance_due"] == "81.00"
        assert summary["deposit_paid"] is True
        assert summary["payment_status"] == "PARTIAL"
        assert events[-1]["event_type"] == "payment.created"

        self._pay(client, order.id, admin_headers, 100, method="CHECK")

        resp = client.get(f"/api/orders/{order.id}/balance", headers=customer_headers)
        assert resp.status_code == 200
        balance = resp.get_json()
        assert balance["total_completed_paid"] == "181.00"
        assert balance["balance_due"] == "-19.00"
        assert balance["balance_due_cents"] == -1900
        assert balance["payment_status"] == "OVERPAID"

    def test_ledger_does_not_move_the_order(self, client, make_order, admin_headers, db_session):
        _, order, _ = make_order()
        self._pay(client, order.id, admin_headers, "162.00")
        db_session.refresh(order)
        assert order.status == OrderStatus.PENDING_DEPOSIT

    def test_full_payment_marks_invoice_paid(self, client, make_order, admin_headers, db_session):
        _, order, invoice = make_order()

        self._pay(client, order.id, admin_headers, "100.00")
        assert db_session.get(Invoice, invoice.id).paid_at is None

        self._pay(client, order.id, admin_headers, "62.00")
        db_session.refresh(invoice)
        assert invoice.paid_at is not None

    def test_customer_cannot_record(self, client, make_order, customer_headers):
        _, order, _ = make_order()
        assert self._pay(client, order.id, customer_headers, "10.00").status_code == 403

    def test_staff_cannot_record(self, client, make_order, staff_headers):
        _, order, _ = make_order()
        assert self._pay(client, order.id, staff_headers, "10.00").status_code == 403

    @pytest.mark.parametrize("amount", ["0", "-1.00", "ten", "10.001", None])
    def test_invalid_amount_rejected(self, client, make_order, admin_headers, amount):
        _, order, _ = make_order()
        assert self._pay(client, order.id, admin_headers, amount).status_code == 400

    @pytest.mark.parametrize("method", ["BITCOIN", "STRIPE", None])
    def test_invalid_method_rejected(self, client, make_order, admin_headers, method):
        _, order, _ = make_order()
        assert self._pay(client, order.id, admin_headers, "10.00", method=method).status_code == 400

    def test_missing_order_is_404(self, client, admin_headers):
        assert self._pay(client, 999, admin_headers, "10.00").status_code == 404

    def test_cancelled_order_rejects_payment(self, client, make_order, admin_headers):
        _, order, _ = make_order()
        client.patch(f"/api/orders/{order.id}", json={"status": "CANCELLED"}, headers=admin_headers)
        assert self._pay(client, order.id, admin_headers, "10.00").status_code == 400

    def test_ledger_listing_is_scoped(self, client, make_order, admin, customer_headers, other_customer_headers):
        _, order, _ = make_order()
        payment_service.record_payment(order.id, "50.00", "CARD", admin)

        resp = client.get(f"/api/orders/{order.id}/payments", headers=customer_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["payments"]) == 1
        assert resp.get_json()["summary"]["balance_due"] == "112.00"

        assert client.get(f"/api/orders/{order.id}/payments", headers=other_customer_headers).status_code == 403
        assert client.get(f"/api/orders/{order.id}/balance", headers=other_customer_headers).status_code == 403


class TestPaymentIntent:

    def test_intent_creates_pending_payment(self, client, make_order, customer_headers, db_session):
        _, order, _ = make_order()

        resp = client.post(
            "/api/payments/intent",
            json={"order_id": order.id, "amount": "81.00"},
            headers=customer_headers,
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["payment_intent_id"].startswith("pi_mock_")
        assert body["client_secret"].startswith(body["payment_intent_id"])

        payment = db_session.get(Payment, body["payment_id"])
        assert payment.status == PaymentStatus.PENDING
        assert payment.transaction_ref == body["payment_intent_id"]

        # pending money is not counted
        assert payment_service.compute_balance(order.id)["total_completed_paid_cents"] == 0

    def test_legacy_path_is_accepted(self, client, make_order, customer_headers):
        _, order, _ = make_order()
        resp = client.post(
            "/api/payments/stripe/create-intent",
            json={"order_id": order.id, "amount": 10},
            headers=customer_headers,
        )
        assert resp.status_code == 200

    def test_other_customer_cannot_pay(self, client, make_order, other_customer_headers):
        _, order, _ = make_order()
        resp = client.post(
            "/api/payments/intent",
            json={"order_id": order.id, "amount": "10.00"},
            headers=other_customer_headers,
        )
        assert resp.status_code == 403

    def test_settle_completes_pending_payment(self, client, make_order, customer, admin_headers):
        _, order, _ = make_order()
        intent = payment_service.create_payment_intent(order.id, "162.00", customer)

        resp = client.post(
            f"/api/payments/{intent['payment_id']}/settle",
            json={"status": "COMPLETED"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "COMPLETED"
        assert payment_service.compute_balance(order.id)["payment_status"] == "PAID"

        again = client.post(
            f"/api/payments/{intent['payment_id']}/settle",
            json={"status": "FAILED"},
            headers=admin_headers,
        )
        assert again.status_code == 400

    def test_failed_settlement_is_not_counted(self, make_order, customer, admin):
        _, order, _ = make_order()
        intent = payment_service.create_payment_intent(order.id, "50.00", customer)

        payment_service.settle_payment(intent["payment_id"], "FAILED", admin)

        assert payment_service.compute_balance(order.id)["payment_status"] == "UNPAID"
