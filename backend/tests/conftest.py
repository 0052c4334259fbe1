"""
Pytest fixtures for the subscription backend tests.

Provides an in-memory application, a clean database per test, users,
products, an in-memory payment gateway and auth helpers.
"""

import json
import os
import time
import uuid
from datetime import time as time_of_day, timedelta
from decimal import Decimal

import pytest

from app import create_app
from app.extensions import db
from app.models import Product, Subscription, User
from app.models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from app.services import session_service
from app.services.container import get_services
from app.services.interfaces import ExternalOrder
from app.services.payment_gateway import PaymentGatewayError, compute_webhook_signature
from app.time_utils import today_utc


WEBHOOK_SECRET = "whsec_test_secret"

# Random seed for randomized property checks; override with TEST_SEED
TEST_SEED = int(os.environ.get("TEST_SEED", str(int(time.time()))))


class FakeGateway:
    """In-memory payment gateway: records orders, verifies HMAC like Razorpay."""

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET):
        self.webhook_secret = webhook_secret
        self.orders: list[dict] = []
        self.fail_next = False

    def reset(self):
        self.orders.clear()
        self.fail_next = False

    def create_order(self, amount, currency, receipt, notes):
        if self.fail_next:
            self.fail_next = False
            raise PaymentGatewayError("Failed to create order")
        order_id = f"order_{uuid.uuid4().hex[:14]}"
        self.orders.append({
            "id": order_id,
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        })
        return ExternalOrder(id=order_id, amount=amount, currency=currency)

    def verify_webhook_signature(self, raw_body, signature):
        if not signature:
            return False
        return compute_webhook_signature(self.webhook_secret, raw_body) == signature


_FAKE_GATEWAY = FakeGateway()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'RAZORPAY_WEBHOOK_SECRET': WEBHOOK_SECRET,
        },
        gateway=_FAKE_GATEWAY,
    )

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
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def gateway(db_session):
    _FAKE_GATEWAY.reset()
    return _FAKE_GATEWAY


@pytest.fixture(scope='function')
def services(app, db_session, gateway):
    return get_services()


@pytest.fixture(scope='function')
def customer(db_session):
    user = User(name="Asha Rao", email="asha@milko.local", role=ROLE_CUSTOMER)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_customer(db_session):
    user = User(name="Vikram Shah", email="vikram@milko.local", role=ROLE_CUSTOMER)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    user = User(name="Ops Admin", email="ops@milko.local", role=ROLE_ADMIN)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product(db_session):
    """Cow milk at 60.00 per litre."""
    product = Product(name="Cow Milk", price_per_unit=Decimal("60.00"), is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def inactive_product(db_session):
    product = Product(name="Buffalo Milk", price_per_unit=Decimal("75.50"), is_active=False)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def make_subscription(db_session, customer, product):
    """
    Insert a subscription row directly, bypassing the gateway.

    Defaults: owned by `customer`, 1 month starting today, status pending.
    """
    def _make(status="pending", user=None, start=None, days=30, order_id=None):
        start = start or today_utc()
        sub = Subscription(
            user_id=(user or customer).id,
            product_id=product.id,
            daily_quantity=Decimal("2"),
            duration_months=max(1, days // 30),
            delivery_time=time_of_day(6, 30),
            status=status,
            start_date=start,
            end_date=start + timedelta(days=days - 1),
            amount_minor=360000,
            currency="INR",
            external_order_id=order_id or f"order_{uuid.uuid4().hex[:14]}",
        )
        db_session.add(sub)
        db_session.commit()
        return sub
    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def token_for(user) -> str:
    _, token = session_service.create_session(user.id)
    return token


def signed_webhook(event: str, payload: dict, secret: str = WEBHOOK_SECRET) -> tuple[bytes, dict]:
    """Razorpay-style webhook body and headers."""
    body = json.dumps({"event": event, "payload": payload}).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": compute_webhook_signature(secret, body),
    }
    return body, headers


def captured_payload(order_id: str, payment_id: str = "pay_test_001") -> dict:
    return {"payment": {"entity": {"id": payment_id, "order_id": order_id, "status": "captured"}}}
