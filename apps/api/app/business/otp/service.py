from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from app.business.otp.models import OtpChallenge
from app.business.users.models import User
from app.business.users.service import user_service
from app.core.config import get_settings
from app.core.database import unit_of_work
from app.core.errors import InvalidInputError, NotFoundError
from app.metrics import observe_otp_event
from app.platform.email import get_email_transport
from app.platform.email.templates import render_otp_email


logger = logging.getLogger("app.otp")

OTP_LENGTH = 6
OTP_EMAIL_SUBJECT = "Your CRM Password Reset OTP"
OTP_SENT_MESSAGE = "OTP sent to your email"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int = OTP_LENGTH) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OtpChallengeService:
    """Single-use password reset codes.

    Only the SHA-256 digest of a code is stored. A challenge is valid while it
    is unused and ``now < expires_at``; both checks run in SQL so the claim in
    ``consume`` is a compare-and-swap on ``is_used``.
    """

    def issue(self, session: Session, email: str, *, now: datetime | None = None) -> str:
        user = user_service.find_active_by_email(session, email)
        if user is None:
            observe_otp_event("rejected")
            raise NotFoundError("no active user with this email")

        issued_at = now or utcnow()
        validity = get_settings().otp_validity_minutes
        code = generate_code()
        with unit_of_work(session):
            session.execute(
                delete(OtpChallenge).where(OtpChallenge.user_id == user.id, OtpChallenge.is_used.is_(False))
            )
            session.add(
                OtpChallenge(
                    user_id=user.id,
                    code_hash=hash_code(code),
                    expires_at=issued_at + timedelta(minutes=validity),
                    is_used=False,
                    created_at=issued_at,
                )
            )

        observe_otp_event("issued")
        logger.info("otp.issued", extra={"user_id": str(user.id)})
        self._send_code(user, code, validity)
        return OTP_SENT_MESSAGE

    def verify(self, session: Session, email: str, code: str, *, now: datetime | None = None) -> bool:
        user = user_service.find_active_by_email(session, email)
        if user is None:
            return False
        valid = self._find_valid(session, user, code, now or utcnow()) is not None
        observe_otp_event("verified" if valid else "rejected")
        return valid

    def consume(self, session: Session, email: str, code: str, *, now: datetime | None = None) -> bool:
        user = user_service.find_active_by_email(session, email)
        if user is None:
            return False
        with unit_of_work(session):
            consumed = self._claim(session, user, code, now or utcnow())
        observe_otp_event("consumed" if consumed else "rejected")
        return consumed

    def reset_password(
        self,
        session: Session,
        email: str,
        code: str,
        new_password: str,
        *,
        now: datetime | None = None,
    ) -> None:
        user = user_service.find_active_by_email(session, email)
        if user is None:
            observe_otp_event("rejected")
            raise InvalidInputError("invalid or expired OTP")

        with unit_of_work(session):
            if not self._claim(session, user, code, now or utcnow()):
                raise InvalidInputError("invalid or expired OTP")
            user_service.set_password(session, user, new_password)

        observe_otp_event("consumed")
        logger.info("otp.password_reset", extra={"user_id": str(user.id)})

    def purge_expired(self, session: Session, *, now: datetime | None = None) -> int:
        with unit_of_work(session):
            result = session.execute(
                delete(OtpChallenge).where(
                    or_(OtpChallenge.expires_at <= (now or utcnow()), OtpChallenge.is_used.is_(True))
                )
            )
        purged = result.rowcount or 0
        logger.info("otp.purged", extra={"purged": purged})
        return purged

    @staticmethod
    def _find_valid(session: Session, user: User, code: str, now: datetime) -> OtpChallenge | None:
        return session.scalar(
            select(OtpChallenge)
            .where(
                OtpChallenge.user_id == user.id,
                OtpChallenge.code_hash == hash_code(code),
                OtpChallenge.is_used.is_(False),
                OtpChallenge.expires_at > now,
            )
            .order_by(OtpChallenge.created_at.desc())
            .limit(1)
        )

    def _claim(self, session: Session, user: User, code: str, now: datetime) -> bool:
        challenge = self._find_valid(session, user, code, now)
        if challenge is None:
            return False
        result = session.execute(
            update(OtpChallenge)
            .where(
                OtpChallenge.id == challenge.id,
                OtpChallenge.is_used.is_(False),
                OtpChallenge.expires_at > now,
            )
            .values(is_used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def _send_code(user: User, code: str, validity_minutes: int) -> None:
        transport = get_email_transport()
        try:
            sent = transport.send_email(
                user.email,
                OTP_EMAIL_SUBJECT,
                render_otp_email(user.name, code, validity_minutes),
            )
        except Exception as exc:
            logger.exception("otp.email_failed", extra={"user_id": str(user.id), "error": str(exc)})
            sent = False
        if not sent:
            observe_otp_event("email_failed")
            reason = "send failed" if getattr(transport, "configured", True) else "email transport not configured"
            logger.warning("otp.email_not_sent", extra={"user_id": str(user.id), "error": reason})


otp_service = OtpChallengeService()
