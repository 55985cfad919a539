"""
Pytest fixtures for storefront backend tests.

Provides test database setup, users per role with session tokens,
a small catalogue, and a fake payment gateway.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import User, Category, Product, Variant, StoreSetting
from storefront.models.auth import ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN
from storefront.services import session_service
from storefront.services.auth_service import hash_password
from storefront.services.payment_gateway import PaymentGatewayError, compute_signature


TEST_KEY_ID = "rzp_test_key"
TEST_KEY_SECRET = "rzp_test_secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'RAZORPAY_KEY_ID': TEST_KEY_ID,
        'RAZORPAY_KEY_SECRET': TEST_KEY_SECRET,
        'ORDER_STRICT_STATUS_TRANSITIONS': False,
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
        app.config['ORDER_STRICT_STATUS_TRANSITIONS'] = False


def make_user(db_session, email: str, role: str = ROLE_USER, name: str = "Test User") -> User:
    user = User(
        name=name,
        email=email,
        phone="9876543210",
        password_hash=hash_password("Password123!"),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def customer(db_session):
    return make_user(db_session, "asha@example.com", name="Asha Rao")


@pytest.fixture(scope='function')
def other_customer(db_session):
    return make_user(db_session, "ravi@example.com", name="Ravi Kumar")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user(db_session, "admin@example.com", role=ROLE_ADMIN, name="Store Admin")


@pytest.fixture(scope='function')
def superadmin(db_session):
    return make_user(db_session, "owner@example.com", role=ROLE_SUPERADMIN, name="Store Owner")


@pytest.fixture(scope='function')
def customer_headers(customer):
    return headers_for(customer)


@pytest.fixture(scope='function')
def other_headers(other_customer):
    return headers_for(other_customer)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def superadmin_headers(superadmin):
    return headers_for(superadmin)


@pytest.fixture(scope='function')
def laptop(db_session):
    """Laptop priced 5000.00 (500000 paise) with one stocked variant."""
    category = Category(name="Laptops", description="Refurbished laptops")
    db_session.add(category)
    product = Product(
        name="ThinkPad T480",
        category="Laptops",
        condition="Refurbished - A",
        price_cents=500000,
        is_active=True,
    )
    product.variants.append(Variant(
        label="16GB / 512GB",
        price_cents=500000,
        color="Black",
        stock=5,
        in_stock=True,
        is_default=True,
    ))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def laptop_variant(laptop):
    return laptop.variants[0]


@pytest.fixture(scope='function')
def store_settings(db_session):
    """Explicit settings row: GST 18%, shipping off."""
    row = StoreSetting(key="store", gst_enabled=True, gst_rate=18, shipping_enabled=False, shipping_amount_cents=0)
    db_session.add(row)
    db_session.commit()
    return row


class FakeGateway:
    """Stands in for RazorpayGateway; signatures use the real HMAC."""

    def __init__(self, fail: bool = False, remote_order_id: str = "order_TEST0001"):
        self.fail = fail
        self.remote_order_id = remote_order_id
        self.calls = []

    @property
    def key_id(self) -> str:
        return TEST_KEY_ID

    def create_remote_order(self, amount_cents, currency, receipt, notes=None):
        self.calls.append({"amount_cents": amount_cents, "currency": currency, "receipt": receipt})
        if self.fail:
            raise PaymentGatewayError("Payment service unavailable")
        return {"id": self.remote_order_id, "amount": amount_cents, "currency": currency}


@pytest.fixture(scope='function')
def fake_gateway(monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr("storefront.services.order_service.get_gateway", lambda: gateway)
    return gateway


@pytest.fixture(scope='function')
def failing_gateway(monkeypatch):
    gateway = FakeGateway(fail=True)
    monkeypatch.setattr("storefront.services.order_service.get_gateway", lambda: gateway)
    return gateway


def sign(remote_order_id: str, remote_payment_id: str) -> str:
    return compute_signature(TEST_KEY_SECRET, remote_order_id, remote_payment_id)


def checkout_payload(product_id: int, quantity: int = 1, variant_id=None, payment_method: str = "cod") -> dict:
    item = {"productId": product_id, "quantity": quantity}
    if variant_id is not None:
        item["variantId"] = variant_id
    return {
        "customerName": "Asha Rao",
        "customerEmail": "asha@example.com",
        "customerPhone": "9876543210",
        "addressLine1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postalCode": "560001",
        "paymentMethod": payment_method,
        "items": [item],
    }
