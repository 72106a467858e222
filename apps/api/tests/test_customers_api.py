from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import events
from app.api.deps import get_current_user
from app.business.users.models import User
from app.core.auth import ActorUser
from app.core.database import Base, get_db
from app.main import app


ALL_PERMISSIONS = {"sales.customers.read", "sales.customers.write", "sales.customers.delete"}


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
def clear_events() -> Generator[None, None, None]:
    events.published_events.clear()
    yield
    events.published_events.clear()


@pytest.fixture()
def permissions() -> set[str]:
    return set(ALL_PERMISSIONS)


@pytest.fixture()
def client(db_session: Session, permissions: set[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="customers-user",
            permissions=permissions,
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "company_name": "Nair Textiles",
        "contact_person": "Lakshmi Nair",
        "email": "lakshmi@nair.example.com",
        "billing_city": "Kochi",
        "gst_number": "32ABCDE1234F1Z5",
    }
    payload.update(overrides)
    return payload


def test_create_customer_defaults(client: TestClient) -> None:
    response = client.post("/api/customers", json=_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["customer_type"] == "Business"
    assert body["billing_country"] == "India"
    assert body["lead_id"] is None

    created = [item for item in events.published_events if item["event_type"] == "sales.customer.created"]
    assert created[-1]["payload"]["customer_id"] == body["id"]


def test_account_owner_must_exist(client: TestClient, db_session: Session) -> None:
    missing = client.post("/api/customers", json=_payload(account_owner=str(uuid.uuid4())))
    assert missing.status_code == 404

    owner = User(name="Owner", email="owner@example.com", password_hash="bcrypt:unused")
    db_session.add(owner)
    db_session.commit()

    response = client.post("/api/customers", json=_payload(account_owner=str(owner.id)))
    assert response.status_code == 201
    assert response.json()["account_owner"] == str(owner.id)


def test_search_by_company_name(client: TestClient) -> None:
    client.post("/api/customers", json=_payload())
    client.post("/api/customers", json=_payload(company_name="Iyer Exports", email="iyer@example.com"))

    response = client.get("/api/customers", params={"q": "iyer"})

    assert response.status_code == 200
    assert [item["company_name"] for item in response.json()] == ["Iyer Exports"]


def test_delete_customer_soft_deletes(client: TestClient) -> None:
    customer = client.post("/api/customers", json=_payload()).json()

    deleted = client.delete(f"/api/customers/{customer['id']}")
    assert deleted.status_code == 204

    assert client.get(f"/api/customers/{customer['id']}").status_code == 404
    assert client.get("/api/customers").json() == []


def test_delete_requires_permission(client: TestClient, permissions: set[str]) -> None:
    customer = client.post("/api/customers", json=_payload()).json()
    permissions.discard("sales.customers.delete")

    response = client.delete(f"/api/customers/{customer['id']}")

    assert response.status_code == 403
    assert response.json()["code"] == "customer_delete_failed"


def test_update_customer_changes_only_sent_fields(client: TestClient) -> None:
    customer = client.post("/api/customers", json=_payload()).json()

    response = client.put(
        f"/api/customers/{customer['id']}",
        json={"contact_person": "Anil Nair", "shipping_city": "Thrissur", "customer_type": "Individual"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["contact_person"] == "Anil Nair"
    assert body["shipping_city"] == "Thrissur"
    assert body["customer_type"] == "Individual"
    assert body["company_name"] == "Nair Textiles"
    assert body["gst_number"] == "32ABCDE1234F1Z5"
    assert client.get(f"/api/customers/{customer['id']}").json()["contact_person"] == "Anil Nair"

    updated = [item for item in events.published_events if item["event_type"] == "sales.customer.updated"]
    assert updated[-1]["payload"]["customer_id"] == customer["id"]


def test_update_customer_rejects_cleared_required_field(client: TestClient) -> None:
    customer = client.post("/api/customers", json=_payload()).json()

    response = client.put(f"/api/customers/{customer['id']}", json={"company_name": None})

    assert response.status_code == 422
    assert response.json()["code"] == "invalid_input"
    assert client.get(f"/api/customers/{customer['id']}").json()["company_name"] == "Nair Textiles"


def test_update_customer_validates_owner_and_existence(client: TestClient) -> None:
    customer = client.post("/api/customers", json=_payload()).json()

    unknown_owner = client.put(f"/api/customers/{customer['id']}", json={"account_owner": str(uuid.uuid4())})
    assert unknown_owner.status_code == 404

    missing = client.put(f"/api/customers/{uuid.uuid4()}", json={"contact_person": "Nobody"})
    assert missing.status_code == 404


def test_update_requires_write_permission(client: TestClient, permissions: set[str]) -> None:
    customer = client.post("/api/customers", json=_payload()).json()
    permissions.discard("sales.customers.write")

    response = client.put(f"/api/customers/{customer['id']}", json={"contact_person": "Anil Nair"})

    assert response.status_code == 403
    assert response.json()["code"] == "customer_update_failed"
