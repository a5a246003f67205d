"""
Shared fixtures: an in-memory SQLite gateway per test, the app wired to it,
and a provider with an approved listing.
"""
import os

# Settings are cached on first use; pin the test values before any import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from directory_api.auth.jwt_handler import jwt_handler
from directory_api.auth.passwords import hash_password
from directory_api.core.app_factory import create_test_app
from directory_api.db.database import DatabaseGateway, build_engine
from directory_api.db.models import Business, User


@pytest.fixture
def gateway():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    gateway = DatabaseGateway(engine)
    gateway.create_all()
    yield gateway
    gateway.dispose()


@pytest.fixture
def test_db(gateway) -> Session:
    db = gateway.session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def app(gateway, tmp_path):
    return create_test_app(gateway, uploads_dir=str(tmp_path / "uploads"))


@pytest.fixture
def test_client(app) -> TestClient:
    return TestClient(app)


def make_user(db: Session, email: str, role: str = "provider") -> User:
    user = User(
        email=email,
        password_hash=hash_password("password123"),
        first_name="Test",
        last_name=role.title(),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_business(db: Session, owner: User, name: str = "Kigali Construction Ltd", status: str = "approved") -> Business:
    business = Business(
        owner_id=owner.id,
        business_name=name,
        slug=name.lower().replace(" ", "-"),
        category="construction",
        location="Kigali",
        email="info@kigali-construction.example",
        status=status,
    )
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


def auth_headers_for(user: User) -> dict:
    token = jwt_handler.create_access_token({"sub": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_user(test_db) -> User:
    return make_user(test_db, "owner@example.com")


@pytest.fixture
def other_user(test_db) -> User:
    return make_user(test_db, "other@example.com")


@pytest.fixture
def admin_user(test_db) -> User:
    return make_user(test_db, "admin@example.com", role="admin")


@pytest.fixture
def test_business(test_db, test_user) -> Business:
    return make_business(test_db, test_user)


@pytest.fixture
def auth_headers(test_user) -> dict:
    return auth_headers_for(test_user)


@pytest.fixture
def other_headers(other_user) -> dict:
    return auth_headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return auth_headers_for(admin_user)
