import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["EVENTS_ENABLED"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront import config
from storefront.auth import create_access_token
from storefront.database import get_db
from storefront.main import app
from storefront.models import (
    Address,
    Base,
    CartItem,
    Category,
    Product,
    ProductVariant,
    User,
    UserRole,
)


@pytest.fixture
def engine(tmp_path):
    # File-backed so that threads get separate connections to the same data
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", tmp_path / "uploads")

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email, role=UserRole.CUSTOMER, name="Test User", hashed_password="not-a-real-hash"):
    user = User(name=name, email=email, hashed_password=hashed_password, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def add_address(db, user, is_default=True):
    address = Address(
        user_id=user.id,
        street="Rua José Moreira",
        number="26",
        neighborhood="Centro",
        city="Fortaleza",
        state="CE",
        zip_code="60000-000",
        is_default=is_default,
    )
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


def add_to_cart(db, user, product, variant=None, quantity=1):
    item = CartItem(
        user_id=user.id,
        product_id=product.id,
        variant_id=variant.id if variant is not None else None,
        quantity=quantity,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture
def customer(db):
    return make_user(db, "maria@example.com", name="Maria")


@pytest.fixture
def other_customer(db):
    return make_user(db, "joana@example.com", name="Joana")


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def address(db, customer):
    return add_address(db, customer)


@pytest.fixture
def category(db):
    category = Category(name="Vestidos", slug="vestidos", description="Vestidos elegantes")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def dress(db, category):
    product = Product(
        name="Vestido Floral",
        description="Vestido midi floral",
        price=Decimal("70.00"),
        category_id=category.id,
        is_active=True,
    )
    product.variants = [ProductVariant(size="M", stock=5), ProductVariant(size="G", stock=1)]
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def dress_m(dress):
    return dress.variants[0]


@pytest.fixture
def dress_g(dress):
    return dress.variants[1]


@pytest.fixture
def watch(db, category):
    # A product sold without variants, so no stock is tracked
    product = Product(name="Relógio Dourado", price=Decimal("249.90"), category_id=category.id, is_active=True)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product
