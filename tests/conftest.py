"""Pytest fixtures for the marketplace order service."""

import os

# must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EVENTS_ENABLED"] = "0"
os.environ["TELEGRAM_BOT_TOKEN"] = ""

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.auth import fetch_identity
from marketplace.database import get_db
from marketplace.main import app
from marketplace.models import Base, Order, Product, User


IDENTITIES = {
    "admin-token": {"id": 1, "username": "admin", "full_name": "Admin One", "is_admin": True, "is_verified_seller": False},
    "admin2-token": {"id": 2, "username": "admin2", "full_name": "Admin Two", "is_admin": True, "is_verified_seller": False},
    "seller-token": {"id": 10, "username": "seller", "full_name": "Book Seller", "is_admin": False, "is_verified_seller": True},
    "other-seller-token": {"id": 11, "username": "seller2", "full_name": "Other Seller", "is_admin": False, "is_verified_seller": True},
    "buyer-token": {"id": 20, "username": "buyer", "full_name": "Ali Valiyev", "is_admin": False, "is_verified_seller": False},
    "buyer2-token": {"id": 21, "username": "buyer2", "full_name": "Other Buyer", "is_admin": False, "is_verified_seller": False},
}

TELEGRAM_IDS = {1: "5001", 2: "5002"}


def _identity_from_header(request: Request):
    token = request.headers.get("Authorization", "").replace("Bearer ", "")
    if token not in IDENTITIES:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return dict(IDENTITIES[token])


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
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
    yield session
    session.close()


@pytest.fixture
def users(db):
    """Seed every known identity, admins with a linked Telegram chat."""
    for identity in IDENTITIES.values():
        db.add(
            User(
                id=identity["id"],
                username=identity["username"],
                full_name=identity["full_name"],
                is_admin=identity["is_admin"],
                is_verified_seller=identity["is_verified_seller"],
                telegram_id=TELEGRAM_IDS.get(identity["id"]),
            )
        )
    db.commit()
    return {token: identity["id"] for token, identity in IDENTITIES.items()}


@pytest.fixture
def actors():
    return {token.replace("-token", ""): dict(identity) for token, identity in IDENTITIES.items()}


@pytest.fixture
def make_product(db, users):
    def _make(stock=3, price=1000, seller_id=10, is_active=True, name="Python Crash Course"):
        product = Product(
            name=name,
            price=price,
            stock_quantity=stock,
            order_count=0,
            seller_id=seller_id,
            is_active=is_active,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_order(db, users):
    """Insert an order directly, bypassing reservation."""
    def _make(product, user_id=20, quantity=1, status="pending"):
        order = Order(
            user_id=user_id,
            product_id=product.id,
            full_name="Ali Valiyev",
            phone="+998901234567",
            address="Tashkent, Chilonzor 5",
            quantity=quantity,
            total_amount=product.price * quantity,
            status=status,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def headers():
    return {token.replace("-token", ""): {"Authorization": f"Bearer {token}"} for token in IDENTITIES}


@pytest.fixture
def client(session_factory, users):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[fetch_identity] = _identity_from_header
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def telegram_outbox(monkeypatch):
    """Enable Telegram delivery and capture sent messages instead of calling the API."""
    from marketplace import config, telegram

    sent = []

    def fake_send_message(chat_id, text):
        sent.append({"chat_id": chat_id, "text": text})
        return {"ok": True}

    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "test-token")
    monkeypatch.setattr(telegram, "send_message", fake_send_message)
    return sent
