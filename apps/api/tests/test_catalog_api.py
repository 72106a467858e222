from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_current_user
from app.core.auth import ActorUser
from app.core.database import Base, get_db
from app.main import app


ALL_PERMISSIONS = {"sales.catalog.read", "sales.catalog.write"}


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


@pytest.fixture()
def permissions() -> set[str]:
    return set(ALL_PERMISSIONS)


@pytest.fixture()
def client(db_session: Session, permissions: set[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="catalog-admin",
            permissions=permissions,
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _variant_payload(code: str = "CLOUD-001", **overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "variant_name": "Cloud",
        "variant_code": code,
        "base_price_single_user": "12000",
        "base_price_multi_user": "18000",
        "annual_subscription_fee": "3500",
        "display_order": 4,
    }
    payload.update(overrides)
    return payload


def test_create_and_list_variants(client: TestClient) -> None:
    created = client.post("/api/product-variants", json=_variant_payload())
    assert created.status_code == 201
    assert created.json()["is_active"] is True

    listed = client.get("/api/product-variants")
    assert listed.status_code == 200
    assert [item["variant_code"] for item in listed.json()] == ["CLOUD-001"]

    fetched = client.get(f"/api/product-variants/{created.json()['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["variant_name"] == "Cloud"


def test_duplicate_variant_code_is_rejected(client: TestClient) -> None:
    assert client.post("/api/product-variants", json=_variant_payload()).status_code == 201

    duplicate = client.post("/api/product-variants", json=_variant_payload(variant_name="Cloud Copy"))

    assert duplicate.status_code == 422
    assert duplicate.json()["code"] == "invalid_input"


def test_negative_price_fails_validation(client: TestClient) -> None:
    response = client.post("/api/product-variants", json=_variant_payload(base_price_single_user="-1"))
    assert response.status_code == 422


def test_deactivated_variant_is_hidden_from_active_list(client: TestClient) -> None:
    created = client.post("/api/product-variants", json=_variant_payload()).json()

    deactivated = client.put(f"/api/product-variants/{created['id']}/deactivate")
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False

    assert client.get("/api/product-variants").json() == []
    everything = client.get("/api/product-variants", params={"active_only": "false"})
    assert [item["id"] for item in everything.json()] == [created["id"]]


def test_unknown_variant_is_not_found(client: TestClient) -> None:
    response = client.get(f"/api/product-variants/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_write_requires_permission(client: TestClient, permissions: set[str]) -> None:
    permissions.discard("sales.catalog.write")

    response = client.post("/api/product-variants", json=_variant_payload())

    assert response.status_code == 403
    assert response.json()["code"] == "variant_create_failed"
