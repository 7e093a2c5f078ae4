import os
from datetime import datetime, timezone

# Settings are read at import time: make sure a JWT secret exists and nothing tries to
# reach Postgres before the app modules are imported.
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from authapi.core.base import Base
from authapi.core import config as app_config
from authapi.core.database import get_db
from authapi.core.security import create_access_token, hash_password

# Import models so they register with SQLAlchemy metadata.
from authapi.models.user import User
from authapi.models.verification_code import VerificationCode  # noqa: F401

DEFAULT_PASSWORD = "pass1234"


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # The in-memory DB outlives a test (StaticPool); rebuild the schema so tests stay independent.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests tweak the process-global settings object; restore it after each test.
    """
    keys = [
        "JWT_SECRET",
        "ACCESS_TOKEN_EXPIRE_MINUTES",
        "VERIFICATION_CODE_LENGTH",
        "VERIFICATION_CODE_TTL_SECONDS",
        "VERIFICATION_CODE_CHECK_EXPIRY_ON_CONSUME",
        "USERNAME_MIN_LENGTH",
        "PASSWORD_MIN_LENGTH",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


@pytest.fixture()
def app(db_session):
    app_config.settings.JWT_SECRET = app_config.settings.JWT_SECRET or "test_jwt_secret"

    from authapi.main import app as fastapi_app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db_session):
    """
    Insert a user directly, bypassing the registration flow.

    Usage:
        user = make_user("alice01", "a@example.com", verified=True)
    """

    def _make_user(
        username: str = "alice01",
        email: str = "alice@example.com",
        *,
        password: str = DEFAULT_PASSWORD,
        verified: bool = True,
    ) -> User:
        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            verified=verified,
            eula_accepted=False,
            date_joined=datetime.now(timezone.utc),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def auth_headers():
    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(user_id=user.id, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
