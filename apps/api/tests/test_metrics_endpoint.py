from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_current_user
from app.business.catalog.seed import CatalogSeedHelper
from app.business.catalog.service import CatalogService
from app.core.auth import ActorUser, AuthUser, get_current_user as auth_get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter
from app.platform.email import RecordingEmailTransport, set_email_transport


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
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    set_email_transport(RecordingEmailTransport())
    yield
    set_email_transport(None)
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def auth_roles() -> list[str]:
    return ["system.metrics.read"]


@pytest.fixture()
def client(db_session: Session, auth_roles: list[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_actor() -> ActorUser:
        return ActorUser(
            user_id="metrics-user",
            permissions={
                "sales.leads.read",
                "sales.leads.write",
                "sales.customers.write",
                "sales.orders.write",
                "sales.orders.confirm",
            },
            correlation_id="metrics-corr-1",
        )

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", roles=auth_roles)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_actor
    app.dependency_overrides[auth_get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_sales_metrics(client: TestClient, db_session: Session) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    lead = client.post(
        "/api/leads",
        json={"company_name": "Metrics Lead", "contact_name": "Metric", "email": "metric@example.com"},
    )
    assert lead.status_code == 201
    assert client.put(f"/api/leads/{lead.json()['id']}/update-status", json={"status": "Converted"}).status_code == 409

    variant = CatalogSeedHelper(CatalogService()).ensure_default_variants(db_session)[0]
    customer = client.post(
        "/api/customers",
        json={"company_name": "Metrics Co", "contact_person": "Metric", "email": "co@example.com"},
    )
    assert customer.status_code == 201
    order = client.post("/api/orders", json={"customer_id": customer.json()["id"], "variant_id": str(variant.id)})
    assert order.status_code == 201
    assert client.put(f"/api/orders/{order.json()['id']}/confirm").status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "sales_orders_total" in body
    assert "sales_subscriptions_provisioned_total" in body
    assert "sales_workflow_failures_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/orders/{id}/confirm"' in body
    assert 'status="Confirmed"' in body
    assert 'code="invalid_transition"' in body


def test_metrics_require_role(client: TestClient, auth_roles: list[str]) -> None:
    auth_roles.clear()

    response = client.get("/metrics")

    assert response.status_code == 403


def test_metrics_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404
