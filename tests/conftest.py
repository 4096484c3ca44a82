"""
Shared fixtures. Run with: pytest tests/ -v

Every test gets a fresh in-memory SQLite database; the FastAPI app is pointed
at it through a get_db override.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.core.tiers import denormalized_limits
from app.db.base import Base
from app.db.session import build_engine, get_db
import app.models  # noqa: F401
from app.models.user import User
from app.utils.auth import create_access_token


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager: startup (create_all + Alembic) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(plan="free", coins=0, role="user", **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=fields.pop("email", f"user{n}@example.com"),
            name=fields.pop("name", f"User {n}"),
            hashed_password=fields.pop("hashed_password", None),
            plan=plan,
            role=role,
            bl_coins=coins,
            permissions=fields.pop("permissions", {}),
            referral_code=fields.pop("referral_code", f"ref{n:05d}"),
            **denormalized_limits(plan),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}

    return _auth_headers
