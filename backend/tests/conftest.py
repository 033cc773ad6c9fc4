"""
Pytest fixtures for the print shop backend tests.

Provides the test app and client, a clean database per test, one user per
role with bearer tokens, and factories for quotes and finalized orders.
"""

import pytest

from printshop import create_app
from printshop.extensions import db, event_bus
from printshop.models import Service, TierPackage, UserRole
from printshop.services import quote_service, session_service, user_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test: empty tables plus the default catalog."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    event_bus.clear()

    user_service.seed_defaults()

    yield db.session

    db.session.rollback()
    event_bus.clear()


@pytest.fixture
def events(db_session):
    """Every event published during the test, in order."""
    captured = []
    event_bus.subscribe("*", captured.append)
    return captured


# =============================================================================
# USERS & TOKENS
# =============================================================================


def _headers(user):
    _, token = session_service.create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer(db_session):
    return user_service.create_user("customer@example.com", UserRole.CUSTOMER, name="Casey Customer")


@pytest.fixture
def other_customer(db_session):
    return user_service.create_user("other@example.com", UserRole.CUSTOMER, name="Olive Other")


@pytest.fixture
def staff(db_session):
    return user_service.create_user("staff@printshop.local", UserRole.STAFF, name="Sam Staff")


@pytest.fixture
def admin(db_session):
    return user_service.create_user("admin@printshop.local", UserRole.ADMIN, name="Ada Admin")


@pytest.fixture
def customer_headers(customer):
    return _headers(customer)


@pytest.fixture
def other_customer_headers(other_customer):
    return _headers(other_customer)


@pytest.fixture
def staff_headers(staff):
    return _headers(staff)


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


# =============================================================================
# CATALOG & FACTORIES
# =============================================================================


@pytest.fixture
def tiers(db_session):
    return {t.slug: t for t in db_session.query(TierPackage).all()}


@pytest.fixture
def service(db_session):
    return db_session.query(Service).filter_by(slug="business-cards").one()


@pytest.fixture
def make_quote(customer, service, tiers):
    """Submit a quote as `customer` (or another owner) on the given tier."""
    def _make(owner=None, tier="standard"):
        return quote_service.submit_quote(service.id, tiers[tier].id, owner or customer)
    return _make


@pytest.fixture
def make_order(make_quote, admin):
    """Finalize a fresh quote. Returns (quote, order, invoice)."""
    def _make(owner=None, tier="standard", subtotal="150.00"):
        quote = make_quote(owner=owner, tier=tier)
        return quote_service.finalize_quote(quote.id, subtotal, admin)
    return _make
