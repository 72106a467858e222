from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from app.api.deps import get_current_user
from app.core.auth import ActorUser
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter
from app.otel import setup_inmemory_otel
from app.platform.email import RecordingEmailTransport, set_email_transport


ALL_PERMISSIONS = {"sales.leads.read", "sales.leads.write", "sales.leads.convert", "sales.leads.delete"}


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
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    set_email_transport(RecordingEmailTransport())
    yield
    set_email_transport(None)
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("salespipe-api")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="user-1",
            permissions=ALL_PERMISSIONS,
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/leads",
        json={"company_name": "OTel Lead", "contact_name": "Otel", "email": "otel@example.com"},
        headers={"X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_conversion_span_carries_lead_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    lead = client.post(
        "/api/leads",
        json={"company_name": "OTel Convert", "contact_name": "Otel", "email": "convert@example.com"},
    ).json()

    response = client.post(f"/api/leads/{lead['id']}/convert", headers={"X-Correlation-Id": "otel-convert-1"})
    assert response.status_code == 200

    convert_spans = [span for span in span_exporter.get_finished_spans() if span.name == "sales.lead.convert"]
    assert convert_spans
    assert any(
        span.attributes.get("lead_id") == lead["id"]
        and span.attributes.get("correlation_id") == "otel-convert-1"
        for span in convert_spans
    )


def test_rating_details_and_delete_open_lead_spans(
    client: TestClient, span_exporter: InMemorySpanExporter
) -> None:
    lead = client.post(
        "/api/leads",
        json={"company_name": "OTel Rating", "contact_name": "Otel", "email": "rating@example.com"},
    ).json()

    assert client.put(f"/api/leads/{lead['id']}/rating", json={"rating": "Hot"}).status_code == 200
    assert client.patch(f"/api/leads/{lead['id']}", json={"industry": "Retail"}).status_code == 200
    assert client.delete(f"/api/leads/{lead['id']}").status_code == 204

    names = {
        span.name
        for span in span_exporter.get_finished_spans()
        if span.attributes.get("lead_id") == lead["id"]
    }
    assert {"sales.lead.change_rating", "sales.lead.update_details", "sales.lead.delete"} <= names
