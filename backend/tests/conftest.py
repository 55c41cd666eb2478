import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("CLINIC_TIMEZONE", "Europe/London")

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from dental_clinic.db.session import SessionLocal, engine
from dental_clinic.deps import get_clock
from dental_clinic.main import app
from dental_clinic.models import Base
from dental_clinic.services.clock import FixedClock

LONDON = ZoneInfo("Europe/London")


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 10, 9, 15, tzinfo=LONDON)


@pytest.fixture
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api_client(db_session, fixed_now):
    app.dependency_overrides[get_clock] = lambda: FixedClock(fixed_now)
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def clinic_headers():
    return {"X-Clinic-Id": "clinic-a", "X-Actor": "reception@clinic-a.test"}
