import os

os.environ["DATABASE_URL"] = "sqlite:///./.pytest_attendance.db"
os.environ["ATLAS_APP_CODE"] = "HRMS_ATTENDANCE_TEST"
os.environ["CEREMONY_JWT_SECRET"] = "test-ceremony-secret-with-enough-entropy-0123456789"
os.environ["WEBAUTHN_RP_ID"] = "localhost"
os.environ["WEBAUTHN_ORIGINS"] = '["http://localhost:3000"]'
os.environ["ATTENDANCE_TIMEZONE"] = "Asia/Kolkata"
os.environ["WORKDAY_START"] = "09:00"
os.environ["LATE_GRACE_MINUTES"] = "30"
os.environ["BIOMETRIC_REQUIRED"] = "false"
os.environ["BIOMETRIC_MAX_ENROLL_ATTEMPTS"] = "3"
os.environ["GEOFENCE_ENFORCED"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENCRYPTION_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from atams.db import Base

from app.main import app
from app.api.deps import require_auth
from app.db.session import get_db
from app.models.office_location import OfficeLocation
from app.services.attendance_service import AttendanceService

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _attach_hris_schema(dbapi_connection, connection_record):
    dbapi_connection.execute("ATTACH DATABASE ':memory:' AS hris")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

EMPLOYEE = {"user_id": 101, "username": "asha", "full_name": "Asha Rao", "role_level": 1}
OTHER_EMPLOYEE = {"user_id": 202, "username": "ravi", "full_name": "Ravi Iyer", "role_level": 1}
HR_ADMIN = {"user_id": 900, "username": "hr", "full_name": "HR Admin", "role_level": 50}

HQ = {"name": "Pune HQ", "latitude": 18.5204, "longitude": 73.8567, "radius": 100}

# 09:05 in Asia/Kolkata
MORNING = datetime(2026, 10, 19, 3, 35, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def auth_state():
    return {"user": dict(EMPLOYEE)}


@pytest.fixture
def client(db_session, auth_state):
    def override_get_db():
        yield db_session

    def override_require_auth():
        return auth_state["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[require_auth] = override_require_auth
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(auth_state):
    def _login(user: dict) -> None:
        auth_state["user"] = dict(user)
    return _login


@pytest.fixture
def clock(monkeypatch):
    """Pin AttendanceService's clock; call clock.set(dt) to move it"""
    class _Clock:
        now = MORNING

        def set(self, value: datetime) -> None:
            self.now = value

    fixed = _Clock()
    monkeypatch.setattr(AttendanceService, "_now", lambda self: fixed.now)
    return fixed


@pytest.fixture
def hq(db_session):
    location = OfficeLocation(
        ol_name=HQ["name"],
        ol_latitude=HQ["latitude"],
        ol_longitude=HQ["longitude"],
        ol_radius_meters=HQ["radius"],
        ol_is_active=True,
    )
    db_session.add(location)
    db_session.commit()
    db_session.refresh(location)
    return location
