"""
Pytest fixtures: a migrated SQLite database per test, the booking service
with a fixed clock, and an HTTP client over the full app.
"""
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.db.migrate import upgrade_to_head
from app.db.session import create_db_engine, make_session_factory
from app.main import create_app
from app.schemas.booking import AcknowledgeIn
from app.services.booking_service import BookingService

OPERATOR_SECRET = "test-operator-secret"

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


# =============================================================================
# Store
# =============================================================================

@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'bookings.db'}"
    upgrade_to_head(url)
    return url


@pytest.fixture
def settings(database_url):
    return Settings(DATABASE_URL=database_url, OPERATOR_SECRET=OPERATOR_SECRET, _env_file=None)


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def service(session_factory):
    return BookingService(session_factory, operator_secret=OPERATOR_SECRET, clock=lambda: NOW)


# =============================================================================
# Payloads
# =============================================================================

def guest_payload(**overrides) -> dict:
    data = {
        "name": "Ravi Kumar",
        "dob": "1988-11-02",
        "govtIdType": "Passport",
        "govtIdNumber": "K1234567",
    }
    data.update(overrides)
    return data


def booking_payload(check_in: date, nights: int = 2, **overrides) -> dict:
    data = {
        "name": "Asha Menon",
        "email": "Asha.Menon@example.com",
        "dob": "1990-05-17",
        "govtIdType": "Aadhar",
        "govtIdNumber": "1234 5678 9012",
        "guestCount": 1,
        "childCount": 0,
        "checkInDate": check_in.isoformat(),
        "checkOutDate": (check_in + timedelta(days=nights)).isoformat(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_submission():
    """Build an AcknowledgeIn starting `offset` days after TODAY."""
    def _make(offset: int = 10, nights: int = 2, **overrides) -> AcknowledgeIn:
        return AcknowledgeIn(**booking_payload(TODAY + timedelta(days=offset), nights, **overrides))
    return _make


@pytest.fixture
def make_guest():
    return guest_payload


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_payload():
    """JSON body for POST /api/acknowledge, dated relative to the real current day."""
    def _make(offset: int = 30, nights: int = 2, **overrides) -> dict:
        return booking_payload(date.today() + timedelta(days=offset), nights, **overrides)
    return _make
