from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from subcost.core.config import get_settings
from subcost.core.database import Base, get_db
from subcost.logging import JsonLogFormatter
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
def setup_env() -> Generator[None, None, None]:
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


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    subscription_id = uuid.uuid4()
    path = f"/api/subscriptions/{subscription_id}"
    response = client.get(path, headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "subcost.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/subscriptions/{id}"
        and getattr(record, "subscription_id", None) == str(subscription_id)
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_service_logs_carry_subscription_context(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    user_id = str(uuid.uuid4())

    created = client.post(
        "/api/subscriptions",
        json={"service_name": "Netflix", "price": 400, "user_id": user_id, "start_date": "07-2025"},
        headers={"X-Correlation-Id": "create-1"},
    )
    assert created.status_code == 201
    subscription_id = created.json()["id"]

    summed = client.get(
        "/api/subscriptions/sum",
        params={"from": "07-2025", "to": "08-2025"},
        headers={"X-Correlation-Id": "sum-1"},
    )
    assert summed.status_code == 200

    service_records = [record for record in caplog.records if record.name == "subcost.subscriptions"]
    assert any(
        record.getMessage() == "subscription.created"
        and getattr(record, "subscription_id", None) == subscription_id
        and getattr(record, "owner_id", None) == user_id
        and getattr(record, "correlation_id", None) == "create-1"
        for record in service_records
    )
    assert any(
        record.getMessage() == "subscription.sum"
        and getattr(record, "total", None) == 800
        and getattr(record, "window_from", None) == "07-2025"
        and getattr(record, "correlation_id", None) == "sum-1"
        for record in service_records
    )


def test_json_formatter_keeps_known_fields_only() -> None:
    formatter = JsonLogFormatter(environment="test")
    record = logging.makeLogRecord(
        {
            "name": "subcost.subscriptions",
            "levelno": logging.INFO,
            "levelname": "INFO",
            "msg": "subscription.deleted",
            "subscription_id": "abc",
            "status": "absent",
            "password": "hunter2",
            "correlation_id": "corr-9",
        }
    )

    payload = json.loads(formatter.format(record))

    assert payload["msg"] == "subscription.deleted"
    assert payload["service"] == "subscriptions"
    assert payload["env"] == "test"
    assert payload["correlation_id"] == "corr-9"
    assert payload["fields"] == {"subscription_id": "abc", "status": "absent"}
