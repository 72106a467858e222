from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.notifications.models import Notification
from app.business.notifications.schemas import NotificationPriority, NotificationType, RelatedToType
from app.business.notifications.service import NotificationDispatcher, determine_priority
from app.business.users.models import User
from app.core.config import get_settings
from app.core.database import Base, unit_of_work
from app.core.errors import DispatchFailedError, NotFoundError
from app.platform.email import LogEmailTransport, RecordingEmailTransport, set_email_transport


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
def reset_transport() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    set_email_transport(None)
    get_settings.cache_clear()


@pytest.fixture()
def recipient(db_session: Session) -> User:
    user = User(name="Divya Rep", email="divya@example.com", password_hash="bcrypt:unused", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


def _notify(session: Session, user_id: uuid.UUID, **overrides: object) -> Notification:
    values: dict[str, object] = {
        "user_id": user_id,
        "notification_type": NotificationType.ORDER_CONFIRMED,
        "title": "Order Confirmed",
        "message": "Order ORD-2026-0001 has been confirmed and subscription created",
        "related_to_type": RelatedToType.ORDER,
        "related_to_id": uuid.uuid4(),
    }
    values.update(overrides)
    with unit_of_work(session):
        notification = NotificationDispatcher().notify(session, **values)
    return notification


@pytest.mark.parametrize(
    ("notification_type", "expected"),
    [
        (NotificationType.SUBSCRIPTION_EXPIRED, NotificationPriority.HIGH),
        (NotificationType.SUBSCRIPTION_RENEWAL_DUE, NotificationPriority.HIGH),
        (NotificationType.ORDER_CONFIRMED, NotificationPriority.HIGH),
        (NotificationType.ACTIVITY_OVERDUE, NotificationPriority.HIGH),
        (NotificationType.LEAD_ASSIGNED, NotificationPriority.MEDIUM),
        (NotificationType.TASK_ASSIGNED, NotificationPriority.MEDIUM),
        (NotificationType.LEAD_CONVERTED, NotificationPriority.LOW),
        (NotificationType.ORDER_CREATED, NotificationPriority.LOW),
        (NotificationType.SYSTEM_ALERT, NotificationPriority.LOW),
    ],
)
def test_priority_is_derived_from_type(notification_type: NotificationType, expected: NotificationPriority) -> None:
    assert determine_priority(notification_type) == expected


def test_successful_delivery_is_recorded(db_session: Session, recipient: User) -> None:
    transport = RecordingEmailTransport()
    set_email_transport(transport)
    notification = _notify(db_session, recipient.id)

    NotificationDispatcher().deliver(db_session, [notification])

    stored = db_session.get(Notification, notification.id)
    assert stored is not None
    assert stored.email_sent is True
    assert stored.email_sent_at is not None
    assert stored.email_error is None
    assert transport.sent[0]["to"] == "divya@example.com"
    assert transport.sent[0]["subject"] == "Order Confirmed"
    assert "has been confirmed" in transport.sent[0]["html"]


def test_failed_delivery_keeps_notification_and_records_error(db_session: Session, recipient: User) -> None:
    set_email_transport(RecordingEmailTransport(fail=True))
    notification = _notify(db_session, recipient.id)

    NotificationDispatcher().deliver(db_session, [notification])

    stored = db_session.get(Notification, notification.id)
    assert stored is not None
    assert stored.email_sent is False
    assert stored.email_error == "Failed to send email"
    assert db_session.scalar(select(func.count(Notification.id))) == 1


def test_unconfigured_transport_is_recorded_as_undelivered(db_session: Session, recipient: User) -> None:
    set_email_transport(LogEmailTransport())
    notification = _notify(db_session, recipient.id)

    NotificationDispatcher().deliver(db_session, [notification])

    stored = db_session.get(Notification, notification.id)
    assert stored is not None
    assert stored.email_sent is False
    assert stored.email_sent_at is None
    assert stored.email_error == "email transport not configured"


def test_transport_exception_is_recorded_not_raised(db_session: Session, recipient: User) -> None:
    class ExplodingTransport:
        def send_email(self, to_email: str, subject: str, html_body: str) -> bool:
            raise RuntimeError("relay offline")

    set_email_transport(ExplodingTransport())
    notification = _notify(db_session, recipient.id)

    NotificationDispatcher().deliver(db_session, [notification])

    stored = db_session.get(Notification, notification.id)
    assert stored is not None
    assert stored.email_sent is False
    assert stored.email_error == "Failed to send email"


def test_missing_recipient_is_recorded(db_session: Session) -> None:
    transport = RecordingEmailTransport()
    set_email_transport(transport)
    notification = _notify(db_session, uuid.uuid4())

    NotificationDispatcher().deliver(db_session, [notification])

    stored = db_session.get(Notification, notification.id)
    assert stored is not None
    assert stored.email_sent is False
    assert stored.email_error == "Recipient not found"
    assert transport.sent == []


def test_no_email_when_not_requested(db_session: Session, recipient: User) -> None:
    transport = RecordingEmailTransport()
    set_email_transport(transport)
    notification = _notify(db_session, recipient.id, send_email=False)

    NotificationDispatcher().deliver(db_session, [notification])

    assert transport.sent == []
    stored = db_session.get(Notification, notification.id)
    assert stored is not None
    assert stored.email_sent is False
    assert stored.email_error is None


def test_emails_disabled_by_settings(
    db_session: Session, recipient: User, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("NOTIFICATION_EMAILS_ENABLED", "false")
    get_settings.cache_clear()
    transport = RecordingEmailTransport()
    set_email_transport(transport)
    notification = _notify(db_session, recipient.id)

    NotificationDispatcher().deliver(db_session, [notification])

    assert transport.sent == []


def test_persistence_failure_raises_dispatch_failed(
    db_session: Session, recipient: User, monkeypatch: pytest.MonkeyPatch
) -> None:
    def failing_flush(*args: object, **kwargs: object) -> None:
        raise OperationalError("INSERT INTO notification", {}, Exception("disk full"))

    monkeypatch.setattr(db_session, "flush", failing_flush)

    with pytest.raises(DispatchFailedError) as exc_info:
        _notify(db_session, recipient.id)
    assert exc_info.value.status_code == 500

    monkeypatch.undo()
    assert db_session.scalar(select(func.count(Notification.id))) == 0


def test_read_flags(db_session: Session, recipient: User) -> None:
    dispatcher = NotificationDispatcher()
    first = _notify(db_session, recipient.id, send_email=False)
    _notify(db_session, recipient.id, send_email=False)
    _notify(db_session, uuid.uuid4(), send_email=False)

    assert len(dispatcher.list_for_user(db_session, recipient.id, unread_only=True)) == 2

    marked = dispatcher.mark_as_read(db_session, first.id, recipient.id)
    assert marked.is_read is True
    assert marked.read_at is not None
    assert len(dispatcher.list_for_user(db_session, recipient.id, unread_only=True)) == 1

    assert dispatcher.mark_all_as_read(db_session, recipient.id) == 1
    assert dispatcher.list_for_user(db_session, recipient.id, unread_only=True) == []
    assert len(dispatcher.list_for_user(db_session, recipient.id)) == 2


def test_mark_as_read_rejects_other_users_notification(db_session: Session, recipient: User) -> None:
    notification = _notify(db_session, uuid.uuid4(), send_email=False)

    with pytest.raises(NotFoundError):
        NotificationDispatcher().mark_as_read(db_session, notification.id, recipient.id)
