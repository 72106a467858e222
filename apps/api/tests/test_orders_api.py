from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import events
from app.api.deps import get_current_user
from app.business.catalog.seed import CatalogSeedHelper
from app.business.catalog.service import CatalogService
from app.core.auth import ActorUser
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter
from app.platform.email import RecordingEmailTransport, set_email_transport


ALL_PERMISSIONS = {
    "sales.customers.read",
    "sales.customers.write",
    "sales.orders.read",
    "sales.orders.write",
    "sales.orders.confirm",
    "sales.subscriptions.read",
}


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
def clear_stubs() -> Generator[None, None, None]:
    set_email_transport(RecordingEmailTransport())
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    set_email_transport(None)
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def permissions() -> set[str]:
    return set(ALL_PERMISSIONS)


@pytest.fixture()
def client(db_session: Session, permissions: set[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="orders-user",
            permissions=permissions,
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def variant_id(db_session: Session) -> str:
    variants = CatalogSeedHelper(CatalogService()).ensure_default_variants(db_session)
    return str(variants[0].id)


@pytest.fixture()
def customer_id(client: TestClient) -> str:
    response = client.post(
        "/api/customers",
        json={"company_name": "Sharma Stores", "contact_person": "Anil Sharma", "email": "anil@sharma.example.com"},
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_order(client: TestClient, customer_id: str, variant_id: str, **overrides: object) -> dict:
    payload: dict[str, object] = {"customer_id": customer_id, "variant_id": variant_id}
    payload.update(overrides)
    response = client.post("/api/orders", json=payload)
    assert response.status_code == 201
    return response.json()


def test_create_order_prices_from_variant(client: TestClient, customer_id: str, variant_id: str) -> None:
    order = _create_order(client, customer_id, variant_id)

    assert order["status"] == "Pending"
    assert order["payment_status"] == "Pending"
    assert order["order_number"].startswith("ORD-")
    assert Decimal(order["base_price"]) == Decimal("9000")
    assert Decimal(order["tax_percent"]) == Decimal("18")
    assert Decimal(order["total_amount"]) == Decimal("10620")

    fetched = client.get(f"/api/orders/{order['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["order_number"] == order["order_number"]


def test_create_order_with_discount_and_customization(client: TestClient, customer_id: str, variant_id: str) -> None:
    order = _create_order(
        client,
        customer_id,
        variant_id,
        license_type="MultiUser",
        quantity=2,
        customization_amount="1000",
        discount_percent="10",
        tax_percent="0",
    )

    assert Decimal(order["base_amount"]) == Decimal("28000")
    assert Decimal(order["discount_amount"]) == Decimal("2900")
    assert Decimal(order["sub_total"]) == Decimal("26100")
    assert Decimal(order["total_amount"]) == Decimal("26100")


def test_create_order_rejects_out_of_range_discount(client: TestClient, customer_id: str, variant_id: str) -> None:
    response = client.post(
        "/api/orders",
        json={"customer_id": customer_id, "variant_id": variant_id, "discount_percent": "120"},
    )
    assert response.status_code == 422


def test_create_order_for_unknown_customer_is_not_found(client: TestClient, variant_id: str) -> None:
    response = client.post("/api/orders", json={"customer_id": str(uuid.uuid4()), "variant_id": variant_id})

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_confirm_twice_returns_conflict(client: TestClient, customer_id: str, variant_id: str) -> None:
    order = _create_order(client, customer_id, variant_id)

    first = client.put(f"/api/orders/{order['id']}/confirm")
    assert first.status_code == 200
    body = first.json()
    assert body["order"]["status"] == "Confirmed"
    assert body["subscription"]["order_id"] == order["id"]
    assert body["subscription"]["status"] == "Active"
    assert Decimal(body["subscription"]["annual_fee"]) == Decimal("2000")

    second = client.put(f"/api/orders/{order['id']}/confirm")
    assert second.status_code == 409
    assert second.json()["code"] == "already_confirmed"

    subscriptions = client.get("/api/subscriptions", params={"customer_id": customer_id})
    assert subscriptions.status_code == 200
    assert len(subscriptions.json()) == 1

    confirmed = [item for item in events.published_events if item["event_type"] == "sales.order.confirmed"]
    assert len(confirmed) == 1


def test_confirm_requires_confirm_permission(
    client: TestClient,
    permissions: set[str],
    customer_id: str,
    variant_id: str,
) -> None:
    order = _create_order(client, customer_id, variant_id)
    permissions.discard("sales.orders.confirm")

    response = client.put(f"/api/orders/{order['id']}/confirm")

    assert response.status_code == 403
    assert response.json()["code"] == "order_confirm_failed"


def test_cancelled_order_cannot_be_confirmed(client: TestClient, customer_id: str, variant_id: str) -> None:
    order = _create_order(client, customer_id, variant_id)

    cancelled = client.put(f"/api/orders/{order['id']}/cancel", json={"reason": "Customer withdrew"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "Cancelled"
    assert cancelled.json()["cancellation_reason"] == "Customer withdrew"

    response = client.put(f"/api/orders/{order['id']}/confirm")
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"


def test_deliver_after_confirm(client: TestClient, customer_id: str, variant_id: str) -> None:
    order = _create_order(client, customer_id, variant_id)

    premature = client.put(f"/api/orders/{order['id']}/deliver")
    assert premature.status_code == 409

    assert client.put(f"/api/orders/{order['id']}/confirm").status_code == 200
    delivered = client.put(f"/api/orders/{order['id']}/deliver")
    assert delivered.status_code == 200
    assert delivered.json()["status"] == "Delivered"
    assert delivered.json()["actual_delivery_date"] is not None


def test_list_orders_filters_by_status(client: TestClient, customer_id: str, variant_id: str) -> None:
    first = _create_order(client, customer_id, variant_id)
    second = _create_order(client, customer_id, variant_id)
    assert client.put(f"/api/orders/{second['id']}/confirm").status_code == 200

    pending = client.get("/api/orders", params={"status": "Pending"})
    assert pending.status_code == 200
    assert [item["id"] for item in pending.json()] == [first["id"]]

    by_customer = client.get("/api/orders", params={"customer_id": customer_id})
    assert {item["id"] for item in by_customer.json()} == {first["id"], second["id"]}


def test_subscription_endpoints(client: TestClient, customer_id: str, variant_id: str) -> None:
    order = _create_order(client, customer_id, variant_id)
    subscription = client.put(f"/api/orders/{order['id']}/confirm").json()["subscription"]

    fetched = client.get(f"/api/subscriptions/{subscription['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["subscription_number"] == subscription["subscription_number"]

    active = client.get("/api/subscriptions", params={"status": "Active"})
    assert [item["id"] for item in active.json()] == [subscription["id"]]

    upcoming = client.get("/api/subscriptions/upcoming-renewals", params={"days": 30})
    assert upcoming.status_code == 200
    assert upcoming.json() == []

    missing = client.get(f"/api/subscriptions/{uuid.uuid4()}")
    assert missing.status_code == 404
