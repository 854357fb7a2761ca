import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.extensions import db
from storefront.model import User, Product, Coupon
from storefront.services.payment import PaymentGateway


TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "PAYMENT_GATEWAY": "cod",
    "LOG_LEVEL": "WARNING",
}


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class FixedRefGateway(PaymentGateway):
    """Returns the same reference on every capture, like a retried webhook."""
    method = "test"

    def __init__(self, ref="PAY-001"):
        self.ref = ref
        self.calls = []

    def capture(self, amount, metadata):
        self.calls.append((amount, dict(metadata)))
        return self.ref


class TimeoutGateway(PaymentGateway):
    method = "test"

    def __init__(self):
        self.calls = 0

    def capture(self, amount, metadata):
        self.calls += 1
        raise TimeoutError("read timed out")


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role="user", email=None, password="secret123"):
        counter["n"] += 1
        u = User(
            email=email or f"{role}{counter['n']}@example.com",
            name=f"{role.title()} {counter['n']}",
            phone="0780000000",
            password_hash=generate_password_hash(password),
            role=role,
        )
        db.session.add(u)
        db.session.commit()
        return u
    return _make


@pytest.fixture
def customer(make_user):
    return make_user("user")


@pytest.fixture
def operator(make_user):
    return make_user("manager")


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_product(app):
    def _make(name="Forest Honey", price=200, stock=10, **kw):
        p = Product(name=name, price=price, stock=stock, **kw)
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def make_coupon(app):
    def _make(code="SAVE10", discount_type="percentage", value=10, **kw):
        kw.setdefault("usage_limit", 10)
        kw.setdefault("min_order_value", 0)
        c = Coupon(code=code, discount_type=discount_type, value=value, **kw)
        db.session.add(c)
        db.session.commit()
        return c
    return _make
