"""Shared fixtures: in-memory database, pinned clock, fake collaborators."""

import os

# Must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["SELF_SERVICE_AUTO_CONFIRM"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from studio_booking.database import Base, get_db  # noqa: E402
from studio_booking.domain.bookings.service import BookingService  # noqa: E402
from studio_booking.main import app  # noqa: E402
from studio_booking.services.identity_verification import get_identity_verifier  # noqa: E402
from studio_booking.services.notification_service import get_notification_dispatcher  # noqa: E402
from studio_booking.shared.clock import get_clock  # noqa: E402
from tests.factories import FIXED_NOW, FakeNotifier, FakeVerifier  # noqa: E402


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def booking_service(db, notifier, verifier):
    return BookingService(db, notifier=notifier, verifier=verifier)


@pytest.fixture
def client(session_factory, notifier, verifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    app.dependency_overrides[get_notification_dispatcher] = lambda: notifier
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    yield TestClient(app)
    app.dependency_overrides.clear()
