"""Pytest fixtures — file-backed SQLite database, recreated for every test."""
import os
from datetime import date

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.main import app
from app.services.notifications import bus

# Import all models so they register with Base.metadata
from app.models.department import Department
from app.models.operational import CriticalIssue, KtaTta, EquipmentStatus, FollowUpStatus
from app.models.approval_request import ApprovalRequest          # noqa: F401
from app.models.data_mutation import DataMutation                # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_bus():
    """Each test starts with no subscribers and zeroed change versions."""
    bus.reset()
    yield bus
    bus.reset()


@pytest.fixture
def departments(db):
    """Seed the three site departments; returns {code: id}."""
    rows = [
        Department(code="MMTC", name="Mine Maintenance"),
        Department(code="PMTC", name="Plant Maintenance"),
        Department(code="MTCENG", name="Maintenance & Engineering Bureau"),
    ]
    db.add_all(rows)
    db.commit()
    return {d.code: d.id for d in rows}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def session_headers(user_id: int, role: str, department: str = None) -> dict:
    """Headers the auth proxy would set for a signed-in user."""
    headers = {"X-User-Id": str(user_id), "X-User-Role": role}
    if department:
        headers["X-User-Department"] = department
    return headers


ADMIN = session_headers(1, "ADMIN")
PLANNER_MMTC = session_headers(2, "PLANNER", "MMTC")
INPUTTER = session_headers(3, "INPUTTER")
VIEWER = session_headers(4, "VIEWER")


def create_critical_issue(db, department_id: int, record_id: int = None, **fields) -> CriticalIssue:
    """Insert a critical issue directly, bypassing the workflow."""
    values = {
        "issue_name": "LHD hydraulic leak",
        "department_id": department_id,
        "status": EquipmentStatus.breakdown,
        "description": "Hydraulic hose burst on LHD 08LH006",
    }
    values.update(fields)
    if record_id is not None:
        values["id"] = record_id
    issue = CriticalIssue(**values)
    db.add(issue)
    db.commit()
    db.refresh(issue)
    return issue


def create_kta_tta(db, **fields) -> KtaTta:
    values = {
        "reporter_npp": "100234",
        "reporter_name": "Budi",
        "report_date": date(2025, 7, 1),
        "location": "Crusher",
        "pic_department": "PMTC",
        "status": FollowUpStatus.open,
    }
    values.update(fields)
    finding = KtaTta(**values)
    db.add(finding)
    db.commit()
    db.refresh(finding)
    return finding
