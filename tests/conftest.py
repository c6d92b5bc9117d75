"""Shared fixtures: in-memory database, factories, email senders, HTTP client."""

import os
import tempfile
from decimal import Decimal

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STATIC_DIR"] = tempfile.mkdtemp(prefix="storefront-static-")
os.environ["EMAIL_PROVIDER"] = "console"
os.environ.pop("RESEND_API_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from common.exceptions import NotificationError  # noqa: E402
from common.security import create_token, rate_limiter  # noqa: E402
from config.database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from modules.auth.deps import CheckoutContext, CurrentUser  # noqa: E402
from modules.cart.service import cart_service  # noqa: E402
from modules.catalog.models import Product, ProductVariant  # noqa: E402
from modules.coupon.models import Coupon  # noqa: E402
from modules.notification.senders import BaseEmailSender  # noqa: E402
from modules.notification.service import notifier  # noqa: E402
from modules.order.service import CheckoutForm  # noqa: E402


class RecordingSender(BaseEmailSender):
    name = "recording"

    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        return f"msg-{len(self.messages)}"


class FailingSender(BaseEmailSender):
    name = "failing"

    def __init__(self):
        self.attempts = 0

    def send(self, message):
        self.attempts += 1
        raise NotificationError("Email provider rejected the message (503)")


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture(autouse=True)
def sender():
    recording = RecordingSender()
    previous = notifier.sender
    notifier.sender = recording
    yield recording
    notifier.sender = previous


@pytest.fixture
def failing_sender():
    failing = FailingSender()
    notifier.sender = failing
    return failing


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


# ==========================================
# Factories
# ==========================================

@pytest.fixture
def make_product(db):
    def _make_product(name="Oud Candle", price="1000", **kwargs):
        product = Product(
            name=name,
            price=Decimal(price),
            stock_quantity=kwargs.pop("stock_quantity", 0),
            **kwargs,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make_product


@pytest.fixture
def make_variant(db):
    def _make_variant(product, name="Large", price_override=None, stock_quantity=0):
        variant = ProductVariant(
            product_id=product.id,
            name=name,
            price_override=Decimal(price_override) if price_override is not None else None,
            stock_quantity=stock_quantity,
        )
        db.add(variant)
        db.commit()
        db.refresh(variant)
        return variant
    return _make_variant


@pytest.fixture
def make_coupon(db):
    def _make_coupon(code="SAVE10", discount_type="percentage", discount_value="10", **kwargs):
        coupon = Coupon(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            **kwargs,
        )
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon
    return _make_coupon


@pytest.fixture
def make_cart(db):
    def _make_cart(*lines, session_key="test-session"):
        """lines: (product, quantity) or (product, quantity, variant)."""
        cart = cart_service.get_or_create_cart(db, session_key)
        for entry in lines:
            product, quantity = entry[0], entry[1]
            variant = entry[2] if len(entry) > 2 else None
            cart_service.add_line(db, cart, product, quantity, variant)
        return cart
    return _make_cart


@pytest.fixture
def checkout_form():
    return CheckoutForm(
        customer_name="Ayesha Khan",
        email="ayesha@example.com",
        address="House 12, Street 4, Gulberg III, Lahore",
        phone="+92 300 1234567",
        payment_method="cod",
    )


@pytest.fixture
def guest_context():
    return CheckoutContext(user=None, client_ip="127.0.0.1")


@pytest.fixture
def admin():
    return CurrentUser(id="admin-1", email="admin@zeene.store", role="admin")


@pytest.fixture
def admin_headers():
    token = create_token({"sub": "admin-1", "email": "admin@zeene.store", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    token = create_token({"sub": "user-42", "email": "ayesha@example.com", "role": "user"})
    return {"Authorization": f"Bearer {token}"}
