from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core.db import Base, get_db
from core import config as core_config
from models.order import Order
from models.order_item import OrderItem
from models.payment import Payment
from models.product import Product
from models.user import User, UserRole, ROLE_ADMIN, ROLE_CUSTOMER
from security.password import hash_password
from security import jwt as jwt_utils


@pytest.fixture(scope="session", autouse=True)
def test_settings():
    core_config.settings.JWT_SECRET = "test-secret"
    core_config.settings.REFRESH_SECRET = "test-refresh"
    core_config.settings.TESTING = True
    core_config.settings.TIMEZONE = "UTC"
    core_config.settings.VNPAY_HASH_SECRET = "test-vnpay-secret"
    core_config.settings.MOMO_SECRET_KEY = "test-momo-secret"
    core_config.settings.MOMO_ACCESS_KEY = "test-momo-access"
    core_config.settings.BANK_TRANSFER_WEBHOOK_SECRET = "test-bank-secret"
    yield


@pytest.fixture()
def db_session_override():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    def _get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db
    try:
        yield db
    finally:
        db.close()
        app.dependency_overrides.clear()


@pytest.fixture()
def db(db_session_override):
    return db_session_override


@pytest.fixture()
def client(db_session_override):
    with TestClient(app) as c:
        yield c


def _make_user(db, email: str, roles):
    user = User(
        full_name="Test User",
        email=email,
        password_hash=hash_password("testpass123"),
        roles=[UserRole(role=r) for r in roles],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer(db):
    """A user with only the customer role."""
    return _make_user(db, "customer@example.com", [ROLE_CUSTOMER])


@pytest.fixture
def admin(db):
    """A user holding the admin role."""
    return _make_user(db, "admin@example.com", [ROLE_CUSTOMER, ROLE_ADMIN])


def _headers(user):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(user.id), user.role_names)}"}


@pytest.fixture
def customer_headers(customer):
    return _headers(customer)


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def make_product(db):
    def _make(name="Widget", price="50000", stock=10, **kwargs):
        product = Product(
            name=name,
            slug=kwargs.pop("slug", name.lower().replace(" ", "-")),
            price=Decimal(price),
            stock_quantity=stock,
            **kwargs,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def make_order(db):
    counter = {"n": 0}

    def _make(total="100000", status="confirmed", payment_status="paid", user=None, items=(), created_at=None):
        counter["n"] += 1
        order = Order(
            order_number=f"ORD-TEST-{counter['n']:04d}",
            user_id=user.id if user else None,
            status=status,
            payment_status=payment_status,
            subtotal=Decimal(total),
            total_amount=Decimal(total),
            created_at=created_at or datetime.utcnow(),
        )
        for product, qty in items:
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=product.price,
                total=Decimal(str(product.price)) * qty,
            ))
        db.add(order)
        db.commit()
        db.refresh(order)
        return order
    return _make


@pytest.fixture
def make_payment(db):
    def _make(order=None, amount="100000", status="completed", method="vnpay", transaction_id=None, created_at=None, **kwargs):
        payment = Payment(
            order_id=order.id if order else None,
            payment_method=method,
            payment_provider=kwargs.pop("provider", method),
            transaction_id=transaction_id,
            amount=Decimal(amount),
            currency="VND",
            status=status,
            created_at=created_at or datetime.utcnow(),
            **kwargs,
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment
    return _make
