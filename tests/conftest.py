import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["EMAIL_HOST_USER"] = ""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from secondhand.api import app
from secondhand.database import Base, SessionLocal, engine
from secondhand.dependencies import Actor
from secondhand.models import Category, Product, RoleEnum, User
from secondhand.security import create_access_token, hash_password


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def make_user(db, email, role=RoleEnum.BUYER, name=None, password="secret123"):
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        hashed_password=hash_password(password),
        role=role,
        is_verified=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token = create_access_token(
        data={
            "sub": user.email,
            "user_id": user.id,
            "role": user.role.value,
            "token_version": user.token_version,
        }
    )
    return {"Authorization": f"Bearer {token}"}


def actor_for(user):
    return Actor(user_id=user.id, role=user.role)


@pytest.fixture
def alice(db):
    return make_user(db, "alice@example.com")


@pytest.fixture
def bob(db):
    return make_user(db, "bob@example.com")


@pytest.fixture
def seller(db):
    return make_user(db, "sam@example.com", role=RoleEnum.SELLER)


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role=RoleEnum.ADMIN)


@pytest.fixture
def category(db):
    cat = Category(name="Furniture")
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return cat


@pytest.fixture
def make_product(db, seller, category):
    def _make(title="Oak table", price=Decimal("10.00"), stock=5, is_deleted=False):
        product = Product(
            user_id=seller.id,
            category_id=category.id,
            title=title,
            price=price,
            stock_quantity=stock,
            images=[],
            is_deleted=is_deleted,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def product(make_product):
    return make_product()
