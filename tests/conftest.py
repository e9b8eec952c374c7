import os

# Settings are read at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["ENCODING_SECRET_KEY"] = "test-encoding-secret"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from main import app
from storefront.auth.service import CREDENTIAL_PROVIDER
from storefront.core.cache import catalog_cache
from storefront.database.core import Base, build_engine, get_db
from storefront.database.models import (
    Account, Category, Order, OrderItem, OrderStatus, PaymentStatus, Product, ProductImage, User, UserRole,
)
from storefront.orders.service import generate_order_number
from storefront.utils import password_utils

TEST_PASSWORD = "ValidPass123"


@pytest.fixture(scope="function")
def db_session():
    """
    Creates a new, isolated in-memory database session for each test.
    """
    engine = build_engine("sqlite://")
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    """
    Creates a TestClient for the app bound to the test database.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    catalog_cache.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    catalog_cache.clear()


@pytest.fixture
def make_user(db_session):
    """Factory for users with a password credential."""
    def _make_user(email="test@example.com", name="Test User", password=TEST_PASSWORD,
                   verified=True, role=UserRole.USER, **fields):
        user = User(name=name, email=email, email_verified=verified, role=role.value, **fields)
        db_session.add(user)
        db_session.flush()
        db_session.add(Account(
            user_id=user.id,
            provider_id=CREDENTIAL_PROVIDER,
            account_id=str(user.id),
            password_hash=password_utils.get_password_hash(password)
        ))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user):
    """
    Creates a pre-defined, verified, password-based user in the test database.
    """
    return make_user()


@pytest.fixture
def admin_user(make_user):
    return make_user(email="admin@example.com", name="Admin", role=UserRole.ADMIN)


@pytest.fixture
def login(client):
    """Logs a user in and returns bearer headers."""
    def _login(email, password=TEST_PASSWORD):
        response = client.post("/api/auth/token", data={"username": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
def auth_headers(login, test_user):
    return login(test_user.email)


@pytest.fixture
def admin_headers(login, admin_user):
    return login(admin_user.email)


@pytest.fixture
def category(db_session):
    category = Category(name="Soins visage", slug="soins-visage", description="Crèmes et sérums")
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def make_product(db_session, category):
    """Factory for catalog products in the default category."""
    counter = {"n": 0}

    def _make_product(name=None, price=19.9, stock=10, images=("https://cdn.example.com/p.jpg",), **fields):
        counter["n"] += 1
        name = name or f"Produit {counter['n']}"
        slug = fields.pop("slug", f"produit-{counter['n']}")
        product = Product(
            name=name,
            slug=slug,
            description="Une description suffisamment longue",
            price=price,
            stock=stock,
            category_id=fields.pop("category_id", category.id),
            **fields
        )
        for position, url in enumerate(images):
            product.images.append(ProductImage(url=url, position=position, alt=name))
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make_product


@pytest.fixture
def product(make_product):
    return make_product(name="Crème hydratante", price=29.99, stock=5, slug="creme-hydratante")


@pytest.fixture
def make_order(db_session):
    """Factory for orders with one item per (product, quantity) pair."""
    def _make_order(user, lines, status=OrderStatus.PENDING, payment_status=PaymentStatus.PENDING, **fields):
        subtotal = round(sum(product.price * quantity for product, quantity in lines), 2)
        order = Order(
            order_number=generate_order_number(),
            user_id=user.id,
            customer_email=user.email,
            customer_name=user.name,
            subtotal=subtotal,
            total_amount=fields.pop("total_amount", subtotal),
            status=status,
            payment_status=payment_status,
            items=[OrderItem(product_id=product.id, quantity=quantity, price=product.price) for product, quantity in lines],
            **fields
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make_order
