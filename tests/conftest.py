"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
The background prune loop is disabled; tests call the pruner directly.
"""
import os

SQLITE_URL = "sqlite:///./test_routing.db"

os.environ["DATABASE_URL"] = SQLITE_URL
os.environ["PRUNE_INTERVAL_SECONDS"] = "0"

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.db.base import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.rule import RoutingRule  # noqa: E402

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_rules():
    yield
    db = TestingSessionLocal()
    try:
        db.query(RoutingRule).delete()
        db.commit()
    finally:
        db.close()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def future():
    """An expiry comfortably after the real wall clock."""
    return datetime.now(tz=timezone.utc) + timedelta(days=30)


@pytest.fixture()
def past():
    return datetime.now(tz=timezone.utc) - timedelta(days=1)
