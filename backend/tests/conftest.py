"""
Pytest configuration and shared fixtures for the GrazeTrack API tests.

Each test gets a fresh in-memory SQLite database and a temporary images
root. Callers authenticate with locally minted HS256 tokens.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

# Must be set before backend.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FIREBASE_PROJECT_ID"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["UPLOAD_RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["LOG_REDACT_PII"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend import config
from backend.auth import create_access_token
from backend.database import Base, get_db
from backend.main import app
import backend.models_db  # noqa: F401  registers the mappers


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """A session on the test database, for arranging and asserting rows."""
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def images_root(tmp_path, monkeypatch):
    root = tmp_path / "images"
    root.mkdir()
    monkeypatch.setattr(config, "IMAGES_ROOT", str(root))
    return root


@pytest.fixture
def client(engine, images_root):
    """A test client whose requests use the test database."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_test_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(uid: str = "rancher-1", email: str = None, ranch_id: str = None) -> dict:
    headers = {"Authorization": f"Bearer {create_access_token(uid, email)}"}
    if ranch_id:
        headers["X-Ranch-Id"] = ranch_id
    return headers


def create_ranch(client, uid: str = "rancher-1", name: str = "Lazy K", **fields) -> str:
    response = client.post("/api/ranches", json={"name": name, **fields}, headers=auth_headers(uid))
    assert response.status_code == 201, response.text
    return response.json()["id"]


@pytest.fixture
def owner(client):
    """A user owning one ranch; returns (ranch_id, headers)."""
    ranch_id = create_ranch(client)
    return ranch_id, auth_headers(ranch_id=ranch_id)
