"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (real commits, real locking)
- A session factory for multi-threaded race tests
- Hospital, donor and request fixtures
- HTTPX AsyncClient over the ASGI app with get_db overridden
"""
import os
import tempfile
import uuid
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Point the app engine somewhere harmless before any app import
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'pulseconnect-test.db')}"
)
os.environ["NOTARIZATION_URL"] = ""

from pulseconnect.core.config import settings
from pulseconnect.core.deps import get_db
from pulseconnect.db.base import Base
from pulseconnect.db.enums import RequestStatus, Urgency
from pulseconnect.db.models import BloodRequest, Donor, Hospital
from pulseconnect.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """No real sleeping between store retries."""
    monkeypatch.setattr(settings, "STORE_RETRY_BASE_DELAY", 0.0)


@pytest.fixture(scope="function")
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Sessionmaker bound to a per-test SQLite file."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


def make_hospital(db: Session, **overrides) -> Hospital:
    values = dict(
        name="City General",
        email=f"hospital-{uuid.uuid4().hex[:8]}@test.org",
        city="Kampala",
        latitude=0.3476,
        longitude=32.5825,
    )
    values.update(overrides)
    hospital = Hospital(**values)
    db.add(hospital)
    db.commit()
    return hospital


def make_donor(db: Session, blood_group: str = "O-", **overrides) -> Donor:
    values = dict(
        name="Test Donor",
        email=f"donor-{uuid.uuid4().hex[:8]}@test.org",
        blood_group=blood_group,
        is_available=True,
    )
    values.update(overrides)
    donor = Donor(**values)
    db.add(donor)
    db.commit()
    return donor


def make_request(db: Session, hospital: Hospital, **overrides) -> BloodRequest:
    values = dict(
        hospital_id=hospital.id,
        blood_group="A+",
        units_needed=2,
        urgency=Urgency.HIGH.value,
        patient_name="Patient X",
        latitude=hospital.latitude,
        longitude=hospital.longitude,
        status=RequestStatus.PENDING.value,
    )
    values.update(overrides)
    request = BloodRequest(**values)
    db.add(request)
    db.commit()
    return request


@pytest.fixture
def hospital_factory(db):
    return lambda **kw: make_hospital(db, **kw)


@pytest.fixture
def donor_factory(db):
    return lambda blood_group="O-", **kw: make_donor(db, blood_group, **kw)


@pytest.fixture
def request_factory(db):
    return lambda hospital, **kw: make_request(db, hospital, **kw)


@pytest.fixture
def hospital(db) -> Hospital:
    return make_hospital(db)


@pytest.fixture
def donor(db) -> Donor:
    """An O- donor: compatible with every request group."""
    return make_donor(db, "O-", name="Universal Donor")


@pytest.fixture
def blood_request(db, hospital) -> BloodRequest:
    return make_request(db, hospital)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the app's session dependency bound to the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c
    app.dependency_overrides.clear()
