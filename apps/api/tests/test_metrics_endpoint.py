from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from subcost.core.config import get_settings
from subcost.core.database import Base, get_db
from subcost.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_subscription_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    created = client.post(
        "/api/subscriptions",
        json={"service_name": "Metrics", "price": 10, "user_id": str(uuid.uuid4()), "start_date": "01-2025"},
    )
    assert created.status_code == 201

    fetched = client.get(f"/api/subscriptions/{created.json()['id']}")
    assert fetched.status_code == 200

    summed = client.get("/api/subscriptions/sum", params={"from": "01-2025", "to": "03-2025"})
    assert summed.status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "subscription_writes_total" in body
    assert "subscription_sum_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/subscriptions/{id}"' in body
    assert 'action="create"' in body
    assert 'strategy="database"' in body


def test_metrics_endpoint_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404


def test_unrouted_paths_collapse_uuid_segments(client: TestClient) -> None:
    missing = client.get(f"/unknown/{uuid.uuid4()}/items/42")
    assert missing.status_code == 404

    body = client.get("/metrics").text

    assert 'path="/unknown/{id}/items/42"' in body
