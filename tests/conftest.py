import os

# Configure before the app (and its module-level config) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-supabase-jwt-secret-0123456789abcdef"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["TRIAL_DAYS"] = "3"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("RESEND_API_KEY", None)

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.dependencies.services import get_billing, get_notifier
from app.main import app
from app.services.entitlement_gate import EntitlementGate
from app.services.trial_eligibility import TrialEligibilityGuard

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_token(user_id: str = "user-1", email: str = "alice@example.com", expires_in: int = 3600) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def _auth_headers(user_id: str = "user-1", email: str = "alice@example.com") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


@pytest.fixture
def auth_headers():
    """Callable building a valid Supabase bearer header for a user."""
    return _auth_headers


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def guard(db):
    return TrialEligibilityGuard(db)


@pytest.fixture
def gate(guard):
    return EntitlementGate(guard)


@pytest.fixture
def billing():
    """Billing client handed to routes; tests replace it to exercise Stripe paths."""
    return None


@pytest.fixture
def notifier():
    """Trial email notifier handed to routes; None means email is off."""
    return None


@pytest.fixture
def client(db, billing, notifier):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_billing] = lambda: billing
    app.dependency_overrides[get_notifier] = lambda: notifier
    # No context manager: startup (migrations against DATABASE_URL) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()
