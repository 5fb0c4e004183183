"""
Test configuration and fixtures for Linkist backend tests.
"""
import os

# Set test environment BEFORE any imports
os.environ["ENVIRONMENT"] = "test"
os.environ["CODE_STORE_BACKEND"] = "database"
# Don't set POSTGRES_URI, REDIS_URI or Twilio credentials so no real connections are made
for _var in ("POSTGRES_URI", "REDIS_URI", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_VERIFY_SERVICE_SID"):
    os.environ.pop(_var, None)

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from linkist.database import get_db
from linkist.main import app
from linkist.models import Base, EmailOTP, MobileOTP
from linkist.schemas.verification import PendingUserData, PendingVerification
from linkist.services.code_store import DatabaseCodeStore, clear_memory_stores
from linkist.services.otp_verification import OTPVerifier
from linkist.services.rate_limit import limiter
from linkist.services.session_store import SessionStore
from linkist.services.user_directory import UserDirectory
from linkist.services.verification_provider import ProviderResult, VerificationProvider


class AsyncSessionWrapper:
    """Async facade over a sync SQLAlchemy session."""

    def __init__(self, sync_session):
        self.sync_session = sync_session

    async def execute(self, *args, **kwargs):
        return self.sync_session.execute(*args, **kwargs)

    async def commit(self):
        self.sync_session.commit()

    async def rollback(self):
        self.sync_session.rollback()

    async def close(self):
        self.sync_session.close()

    async def refresh(self, *args, **kwargs):
        return self.sync_session.refresh(*args, **kwargs)

    def add(self, *args, **kwargs):
        self.sync_session.add(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.sync_session, name)


class FakeProvider(VerificationProvider):
    """Approves ``code`` for the phone formats in ``approve``; everything else gets ``otherwise``."""

    def __init__(self, approve: Optional[List[str]] = None, code: str = "123456",
                 otherwise: ProviderResult = ProviderResult.denied, start_ok: bool = True):
        self.approve = set(approve or [])
        self.code = code
        self.otherwise = otherwise
        self.start_ok = start_ok
        self.checks: List[Tuple[str, str]] = []
        self.started: List[str] = []

    async def check(self, phone: str, code: str) -> ProviderResult:
        self.checks.append((phone, code))
        if phone in self.approve and code == self.code:
            return ProviderResult.approved
        return self.otherwise

    async def start(self, phone: str) -> bool:
        self.started.append(phone)
        return self.start_ok


@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine using SQLite shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_engine):
    """Create a test database session."""
    SessionLocal = sessionmaker(bind=test_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def db(test_db_session):
    """Async-compatible session for service tests."""
    return AsyncSessionWrapper(test_db_session)


@pytest.fixture
def directory(db) -> UserDirectory:
    return UserDirectory(db)


@pytest.fixture
def email_store(db) -> DatabaseCodeStore:
    return DatabaseCodeStore(db, EmailOTP)


@pytest.fixture
def phone_store(db) -> DatabaseCodeStore:
    return DatabaseCodeStore(db, MobileOTP)


@pytest.fixture
def sessions(db) -> SessionStore:
    return SessionStore(db)


@pytest.fixture
def make_verifier(email_store, phone_store, directory, sessions):
    """Build an OTPVerifier over the test database, optionally with a provider."""
    def _make(provider: Optional[VerificationProvider] = None, directory_override: Optional[UserDirectory] = None,
              clock=None):
        extra = {"clock": clock} if clock else {}
        return OTPVerifier(
            email_store=email_store,
            phone_store=phone_store,
            directory=directory_override or directory,
            sessions=sessions,
            provider=provider,
            country_code="91",
            **extra,
        )
    return _make


@pytest.fixture
def pending_record():
    """Factory for pending verification records."""
    def _make(identifier: str, code: str = "482913", minutes: int = 5,
              user_data: Optional[Dict[str, Any]] = None) -> PendingVerification:
        return PendingVerification(
            identifier=identifier,
            code=code,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
            pending_user_data=PendingUserData(**user_data) if user_data else None,
        )
    return _make


@pytest.fixture(scope="function")
def sync_client(test_db_session) -> TestClient:
    """Create a synchronous test client bound to the test database."""
    async def override_get_db():
        yield AsyncSessionWrapper(test_db_session)

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    mock_client = AsyncMock()
    mock_client.get.return_value = None
    mock_client.hgetall.return_value = {}
    mock_client.ping.return_value = True
    return mock_client


@pytest.fixture(autouse=True)
def mock_external_services(monkeypatch, mock_redis):
    """Mock external services for all tests."""
    monkeypatch.setattr("linkist.database.redis_client", mock_redis)
    monkeypatch.setattr("linkist.services.session_store.redis_client", mock_redis)
    monkeypatch.setattr(limiter, "enabled", False)
    clear_memory_stores()
    yield
    clear_memory_stores()


@pytest.fixture
def mock_email_delivery():
    """Capture verification emails instead of sending them."""
    with patch("linkist.services.otp_issuance.send_otp_email", return_value=True) as mock_send:
        yield mock_send


@pytest.fixture
def mock_sms_delivery():
    """Capture verification SMS instead of sending them."""
    with patch("linkist.services.otp_issuance.send_otp_sms", return_value=True) as mock_send:
        yield mock_send
