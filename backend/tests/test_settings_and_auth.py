"""
Runtime settings, bearer-token authentication and the bootstrap CLI.
"""

from decimal import Decimal

import pytest

from printshop.errors import AuthorizationError, ValidationError
from printshop.models import TierPackage, User, UserRole
from printshop.services import session_service, settings_service, user_service


# =============================================================================
# SETTINGS
# =============================================================================


class TestSettings:

    def test_defaults_are_seeded(self, client, admin_headers):
        resp = client.get("/api/admin/settings", headers=admin_headers)
        assert resp.status_code == 200
        values = {s["key"]: s["value"] for s in resp.get_json()["settings"]}
        assert values == {"default_deposit_pct": "50", "emergency_fee_pct": "20", "tax_rate": "0.08"}

    def test_tax_rate_drives_finalize(self, client, make_quote, admin_headers):
        resp = client.patch("/api/admin/settings/tax_rate", json={"value": "0.10"}, headers=admin_headers)
        assert resp.status_code == 200
        assert settings_service.get_tax_rate() == Decimal("0.10")

        quote = make_quote()
        resp = client.post(
            f"/api/quotes/{quote.id}/finalize",
            json={"final_subtotal": "150.00"},
            headers=admin_headers,
        )
        assert resp.get_json()["order"]["tax_amount"] == "15.00"
        assert resp.get_json()["order"]["total_amount"] == "165.00"

    def test_deposit_pct_drives_finalize(self, make_quote, admin):
        from printshop.services import quote_service

        settings_service.update_setting("default_deposit_pct", 25, admin)
        quote = make_quote()
        _, order, _ = quote_service.finalize_quote(quote.id, "100.00", admin)
        # 108.00 * 25% = 27.00
        assert order.deposit_amount_cents == 2700
        assert order.deposit_pct == 25

    @pytest.mark.parametrize("key,value", [
        ("tax_rate", "1.5"),
        ("tax_rate", "-0.01"),
        ("tax_rate", "abc"),
        ("default_deposit_pct", "101"),
        ("emergency_fee_pct", "0"),
    ])
    def test_out_of_range_values_rejected(self, client, admin_headers, key, value):
        resp = client.patch(f"/api/admin/settings/{key}", json={"value": value}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_key_is_404(self, client, admin_headers):
        assert client.get("/api/admin/settings/colour", headers=admin_headers).status_code == 404

    def test_non_admin_denied(self, client, staff_headers, staff):
        assert client.get("/api/admin/settings", headers=staff_headers).status_code == 403
        with pytest.raises(AuthorizationError):
            settings_service.update_setting("tax_rate", "0.05", staff)

    def test_missing_row_falls_back_to_config(self, app, db_session):
        from printshop.models import Setting

        db_session.query(Setting).delete()
        db_session.commit()
        assert settings_service.get_tax_rate() == Decimal(app.config["DEFAULT_TAX_RATE"])


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuthentication:

    @pytest.mark.parametrize("method,path", [
        ("GET", "/api/quotes"),
        ("POST", "/api/quotes"),
        ("GET", "/api/orders"),
        ("GET", "/api/staff/jobs"),
        ("GET", "/api/admin/orders"),
        ("POST", "/api/orders/1/proofs"),
        ("POST", "/api/bookings"),
        ("POST", "/api/payments/intent"),
        ("GET", "/api/admin/settings"),
        ("GET", "/api/admin/calendar-settings"),
    ])
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/quotes", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_revoked_token_rejected(self, client, customer):
        _, token = session_service.create_session(customer.id)
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get("/api/quotes", headers=headers).status_code == 200

        session_service.revoke_session(token)
        assert client.get("/api/quotes", headers=headers).status_code == 401

    def test_expired_token_rejected(self, client, customer):
        _, token = session_service.create_session(customer.id, ttl_hours=-1)
        resp = client.get("/api/quotes", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_inactive_user_rejected(self, client, customer, customer_headers, db_session):
        customer.is_active = False
        db_session.commit()
        assert client.get("/api/quotes", headers=customer_headers).status_code == 401

    def test_only_hash_is_stored(self, customer):
        session, token = session_service.create_session(customer.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_role_denial_names_required_roles(self, client, customer_headers):
        resp = client.get("/api/staff/jobs", headers=customer_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_roles"] == ["ADMIN", "STAFF"]


# =============================================================================
# BOOTSTRAP
# =============================================================================


class TestBootstrap:

    def test_seed_is_idempotent(self, db_session):
        again = user_service.seed_defaults()
        assert again == {"tiers": 0, "services": 0, "calendar": 0, "settings": 0}
        limits = {t.slug: t.revision_limit for t in db_session.query(TierPackage).all()}
        assert limits == {"basic": 0, "standard": 2, "premium": None, "enterprise": None}

    def test_duplicate_email_rejected(self, customer):
        with pytest.raises(ValueError):
            user_service.create_user("CUSTOMER@example.com", UserRole.CUSTOMER)

    def test_cli_creates_user_and_issues_token(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["users", "create", "--email", "new.staff@printshop.local", "--role", "staff"])
        assert result.exit_code == 0, result.output
        assert db_session.query(User).filter_by(email="new.staff@printshop.local").one().role == UserRole.STAFF

        result = runner.invoke(args=["users", "issue-token", "--email", "new.staff@printshop.local"])
        assert result.exit_code == 0, result.output
        token = result.output.strip().splitlines()[-1]
        assert session_service.validate_session(token) is not None

    def test_cli_init_creates_admin(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init", "--admin-email", "boss@printshop.local"])
        assert result.exit_code == 0, result.output
        assert user_service.find_user_by_email("boss@printshop.local").is_admin

    def test_amount_parsing_rejects_bool(self):
        from printshop.money import parse_amount

        with pytest.raises(ValidationError):
            parse_amount(True)
