from __future__ import annotations

import re
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.otp.models import OtpChallenge
from app.business.otp.service import OtpChallengeService, generate_code, hash_code
from app.business.users.models import User
from app.business.users.service import hash_password, verify_password
from app.core.database import Base
from app.core.errors import InvalidInputError, NotFoundError
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


@pytest.fixture()
def transport() -> Generator[RecordingEmailTransport, None, None]:
    recording = RecordingEmailTransport()
    set_email_transport(recording)
    yield recording
    set_email_transport(None)


@pytest.fixture()
def user(db_session: Session) -> User:
    account = User(
        name="Farah Admin",
        email="farah@example.com",
        password_hash=hash_password("old-password"),
        role="ManagementAdmin",
        is_active=True,
    )
    db_session.add(account)
    db_session.commit()
    return account


def _issued_code(transport: RecordingEmailTransport) -> str:
    match = re.search(r'<p class="code">(\d{6})</p>', transport.sent[-1]["html"])
    assert match is not None
    return match.group(1)


def test_generate_code_is_six_digits() -> None:
    for _ in range(50):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()


def test_issue_stores_hash_and_emails_code(
    db_session: Session, user: User, transport: RecordingEmailTransport
) -> None:
    now = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    message = OtpChallengeService().issue(db_session, "Farah@Example.com", now=now)

    assert message == "OTP sent to your email"
    assert transport.sent[0]["to"] == "farah@example.com"
    assert transport.sent[0]["subject"] == "Your CRM Password Reset OTP"
    code = _issued_code(transport)
    challenge = db_session.scalar(select(OtpChallenge))
    assert challenge is not None
    assert challenge.code_hash == hash_code(code)
    assert challenge.code_hash != code
    assert challenge.is_used is False
    assert challenge.expires_at.replace(tzinfo=None) == (now + timedelta(minutes=10)).replace(tzinfo=None)


def test_issue_for_unknown_email_is_not_found(db_session: Session, transport: RecordingEmailTransport) -> None:
    with pytest.raises(NotFoundError):
        OtpChallengeService().issue(db_session, "nobody@example.com")
    assert transport.sent == []


def test_issue_for_inactive_user_is_not_found(
    db_session: Session, user: User, transport: RecordingEmailTransport
) -> None:
    user.is_active = False
    db_session.commit()

    with pytest.raises(NotFoundError):
        OtpChallengeService().issue(db_session, "farah@example.com")


def test_new_challenge_replaces_unused_ones(
    db_session: Session, user: User, transport: RecordingEmailTransport
) -> None:
    service = OtpChallengeService()
    service.issue(db_session, "farah@example.com")
    first_code = _issued_code(transport)
    service.issue(db_session, "farah@example.com")
    second_code = _issued_code(transport)

    assert db_session.scalar(select(func.count(OtpChallenge.id))) == 1
    if first_code != second_code:
        assert service.verify(db_session, "farah@example.com", first_code) is False
    assert service.verify(db_session, "farah@example.com", second_code) is True


def test_code_is_single_use(db_session: Session, user: User, transport: RecordingEmailTransport) -> None:
    service = OtpChallengeService()
    service.issue(db_session, "farah@example.com")
    code = _issued_code(transport)

    assert service.verify(db_session, "farah@example.com", code) is True
    assert service.verify(db_session, "farah@example.com", code) is True
    assert service.consume(db_session, "farah@example.com", code) is True
    assert service.consume(db_session, "farah@example.com", code) is False
    assert service.verify(db_session, "farah@example.com", code) is False


def test_expired_code_is_rejected(db_session: Session, user: User, transport: RecordingEmailTransport) -> None:
    service = OtpChallengeService()
    issued_at = datetime.now(timezone.utc) - timedelta(minutes=11)
    service.issue(db_session, "farah@example.com", now=issued_at)
    code = _issued_code(transport)

    assert service.verify(db_session, "farah@example.com", code) is False
    assert service.consume(db_session, "farah@example.com", code) is False
    assert service.verify(db_session, "farah@example.com", code, now=issued_at + timedelta(minutes=9)) is True


def test_wrong_code_is_rejected(db_session: Session, user: User, transport: RecordingEmailTransport) -> None:
    service = OtpChallengeService()
    service.issue(db_session, "farah@example.com")
    code = _issued_code(transport)
    wrong = f"{(int(code) + 1) % 1_000_000:06d}"

    assert service.verify(db_session, "farah@example.com", wrong) is False
    assert service.consume(db_session, "farah@example.com", wrong) is False
    assert service.consume(db_session, "farah@example.com", code) is True


def test_email_failure_keeps_code_valid(db_session: Session, user: User) -> None:
    failing = RecordingEmailTransport(fail=True)
    set_email_transport(failing)
    try:
        service = OtpChallengeService()
        assert service.issue(db_session, "farah@example.com") == "OTP sent to your email"
        challenge = db_session.scalar(select(OtpChallenge))
        assert challenge is not None
        assert challenge.is_used is False
    finally:
        set_email_transport(None)


def test_unconfigured_transport_logs_undelivered_code(
    db_session: Session, user: User, caplog: pytest.LogCaptureFixture
) -> None:
    set_email_transport(LogEmailTransport())
    try:
        with caplog.at_level("WARNING", logger="app.otp"):
            OtpChallengeService().issue(db_session, "farah@example.com")
    finally:
        set_email_transport(None)

    records = [record for record in caplog.records if record.getMessage() == "otp.email_not_sent"]
    assert len(records) == 1
    assert records[0].error == "email transport not configured"


def test_reset_password_consumes_code(db_session: Session, user: User, transport: RecordingEmailTransport) -> None:
    service = OtpChallengeService()
    service.issue(db_session, "farah@example.com")
    code = _issued_code(transport)

    service.reset_password(db_session, "farah@example.com", code, "new-password-1")

    db_session.refresh(user)
    assert verify_password("new-password-1", user.password_hash)
    assert not verify_password("old-password", user.password_hash)
    with pytest.raises(InvalidInputError):
        service.reset_password(db_session, "farah@example.com", code, "another-password")


def test_reset_password_with_bad_code_leaves_password(
    db_session: Session, user: User, transport: RecordingEmailTransport
) -> None:
    service = OtpChallengeService()
    service.issue(db_session, "farah@example.com")
    code = _issued_code(transport)
    wrong = f"{(int(code) + 1) % 1_000_000:06d}"

    with pytest.raises(InvalidInputError):
        service.reset_password(db_session, "farah@example.com", wrong, "new-password-1")

    db_session.refresh(user)
    assert verify_password("old-password", user.password_hash)


def test_purge_expired_removes_stale_and_used(
    db_session: Session, user: User, transport: RecordingEmailTransport
) -> None:
    service = OtpChallengeService()
    service.issue(db_session, "farah@example.com", now=datetime.now(timezone.utc) - timedelta(hours=1))

    assert service.purge_expired(db_session) == 1
    assert db_session.scalar(select(func.count(OtpChallenge.id))) == 0
