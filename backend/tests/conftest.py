"""
Pytest fixtures for token store backend tests.

Provides an in-memory database, a test client, and seeded hierarchy,
vendor and customer fixtures.
"""

import pytest

from tokenapp import create_app
from tokenapp.extensions import db, payment_gateway, vending_client
from tokenapp.clients.payment_gateway import GatewaySession
from tokenapp.clients.vending import VendResult
from tokenapp.services import concurrency
from tokenapp.services import customer_service, hierarchy_service, vendor_service, discount_service


VENDOR_NAME = "PT Listrik Prima"
AREA = "Jakarta Selatan"
PROJECT = "Tower A"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PAYMENT_GATEWAY_URL': 'https://gateway.test/snap/v1/transactions',
        'PAYMENT_GATEWAY_SERVER_KEY': 'SB-Mid-server-test',
        'VENDING_API_URL': 'https://vending.test/api/VendingMeter',
        'VENDING_COMPANY_NAME': 'TESTCO',
        'VENDING_USERNAME': 'tester',
        'VENDING_PASSWORD': 'secret',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Retries back off with time.sleep; tests should not wait."""
    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)


@pytest.fixture(scope='function')
def vendor(db_session):
    """Registry vendor authorized for electricity."""
    return vendor_service.create_vendor(
        name=VENDOR_NAME,
        handled_services=["ELECTRICITY"],
        contact_person="Sari",
        email="ops@listrikprima.test",
    )


@pytest.fixture(scope='function')
def priced_path(db_session, vendor):
    """Electricity path with base 1500, tax 11%, admin fee 2500."""
    hierarchy_service.add_hierarchy_path("ELECTRICITY", AREA, PROJECT, VENDOR_NAME)
    hierarchy_service.set_price_setting(
        "ELECTRICITY", AREA, PROJECT, VENDOR_NAME,
        base_price="1500",
        tax_percent="11",
        admin_fee="2500",
        other_costs="0",
    )
    return ("ELECTRICITY", AREA, PROJECT, VENDOR_NAME)


def electricity_service(service_id="14234567890", **overrides):
    data = {
        "service_id": service_id,
        "token_type": "ELECTRICITY",
        "area_project": AREA,
        "project": PROJECT,
        "vendor_name": VENDOR_NAME,
        "power_or_volume": "1300 VA",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_service():
    """Build customer service payloads on the seeded electricity path."""
    return electricity_service


@pytest.fixture(scope='function')
def customer(db_session, priced_path):
    """Customer with one correctly configured electricity service."""
    return customer_service.create_customer(
        ktp="3171234567890001",
        name="Budi Santoso",
        username="budi",
        email="budi@example.test",
        phone="081234567890",
        services=[electricity_service()],
    )


@pytest.fixture(scope='function')
def vouchers(db_session):
    discount_service.seed_default_vouchers()


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.error = None

    def create_session(self, order_id, amount, buyer, redirect_urls, item_details=None):
        self.calls.append({"order_id": order_id, "amount": amount, "items": item_details})
        if self.error:
            raise self.error
        return GatewaySession(
            session_token=f"snap-{order_id}",
            redirect_url=f"https://gateway.test/pay/{order_id}",
        )


class FakeVending:
    def __init__(self):
        self.calls = []
        self.errors = []
        self.token_code = "1234-5678-9012-3456-7890"

    def vend(self, order_id, meter_id, amount):
        self.calls.append({"order_id": order_id, "meter_id": meter_id, "amount": amount})
        if self.errors:
            raise self.errors.pop(0)
        return VendResult(token_code=self.token_code)


@pytest.fixture
def fake_gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr(payment_gateway, "create_session", fake.create_session)
    return fake


@pytest.fixture
def fake_vending(monkeypatch):
    fake = FakeVending()
    monkeypatch.setattr(vending_client, "vend", fake.vend)
    return fake
