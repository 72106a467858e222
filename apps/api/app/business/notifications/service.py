from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.business.notifications.models import Notification
from app.business.notifications.schemas import (
    NotificationPriority,
    NotificationRead,
    NotificationType,
    RelatedToType,
)
from app.business.users.models import User
from app.context import get_correlation_id
from app.core.config import get_settings
from app.core.errors import DispatchFailedError, NotFoundError
from app.metrics import observe_notification_email
from app.platform.email import get_email_transport
from app.platform.email.templates import render_notification_email


logger = logging.getLogger("app.notifications")

EMAIL_FAILED_MESSAGE = "Failed to send email"
EMAIL_NOT_CONFIGURED_MESSAGE = "email transport not configured"

_HIGH_PRIORITY = {
    NotificationType.SUBSCRIPTION_EXPIRED,
    NotificationType.SUBSCRIPTION_RENEWAL_DUE,
    NotificationType.ORDER_CONFIRMED,
    NotificationType.ACTIVITY_OVERDUE,
}
_MEDIUM_PRIORITY = {
    NotificationType.LEAD_ASSIGNED,
    NotificationType.TASK_ASSIGNED,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def determine_priority(notification_type: NotificationType) -> NotificationPriority:
    if notification_type in _HIGH_PRIORITY:
        return NotificationPriority.HIGH
    if notification_type in _MEDIUM_PRIORITY:
        return NotificationPriority.MEDIUM
    return NotificationPriority.LOW


class NotificationDispatcher:
    """Records notifications inside a workflow transaction and emails them once it commits.

    ``notify`` only flushes; the row becomes durable together with the
    transition that produced it. ``deliver`` runs after that commit and never
    raises: the outcome of each send is written back onto the row.
    """

    def notify(
        self,
        session: Session,
        *,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_to_type: RelatedToType | None = None,
        related_to_id: uuid.UUID | None = None,
        send_email: bool = True,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type.value,
            title=title,
            message=message,
            related_to_type=related_to_type.value if related_to_type is not None else None,
            related_to_id=related_to_id,
            priority=determine_priority(notification_type).value,
            should_send_email=send_email,
            correlation_id=get_correlation_id(),
        )
        try:
            session.add(notification)
            session.flush()
        except SQLAlchemyError as exc:
            raise DispatchFailedError(
                "failed to record notification",
                details={"notification_type": notification_type.value},
            ) from exc

        logger.info(
            "notification.recorded",
            extra={
                "notification_id": str(notification.id),
                "notification_type": notification.notification_type,
                "user_id": str(user_id),
            },
        )
        return notification

    def deliver(self, session: Session, notifications: Iterable[Notification]) -> None:
        pending = [item for item in notifications if item.should_send_email and not item.email_sent]
        if not pending:
            return

        if not get_settings().notification_emails_enabled:
            logger.info("notification.email_disabled")
            return

        transport = get_email_transport()
        failure_message = (
            EMAIL_FAILED_MESSAGE if getattr(transport, "configured", True) else EMAIL_NOT_CONFIGURED_MESSAGE
        )
        for notification in pending:
            recipient = session.get(User, notification.user_id)
            if recipient is None or not recipient.is_active:
                notification.email_error = "Recipient not found"
                observe_notification_email("no_recipient")
                continue

            try:
                sent = transport.send_email(
                    recipient.email,
                    notification.title,
                    render_notification_email(notification.title, notification.message),
                )
            except Exception as exc:
                logger.exception(
                    "notification.email_error",
                    extra={"notification_id": str(notification.id), "error": str(exc)},
                )
                sent = False

            if sent:
                notification.email_sent = True
                notification.email_sent_at = utcnow()
                notification.email_error = None
                observe_notification_email("sent")
            else:
                notification.email_error = failure_message
                observe_notification_email("failed")
                logger.warning(
                    "notification.email_failed",
                    extra={"notification_id": str(notification.id), "notification_type": notification.notification_type},
                )

        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("notification.outcome_not_saved", extra={"error": str(exc)})

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        *,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRead]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        rows = session.scalars(stmt.order_by(Notification.created_at.desc()).limit(limit)).all()
        return [NotificationRead.model_validate(row) for row in rows]

    def mark_as_read(self, session: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> NotificationRead:
        notification = session.scalar(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        if notification is None:
            raise NotFoundError("notification not found")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            session.commit()
            session.refresh(notification)
        return NotificationRead.model_validate(notification)

    def mark_all_as_read(self, session: Session, user_id: uuid.UUID) -> int:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        session.commit()
        return result.rowcount or 0


notification_dispatcher = NotificationDispatcher()
