from app.platform.email.transport import (
    EmailTransport,
    LogEmailTransport,
    RecordingEmailTransport,
    SmtpEmailTransport,
    build_email_transport,
    get_email_transport,
    set_email_transport,
)

__all__ = [
    "EmailTransport",
    "SmtpEmailTransport",
    "LogEmailTransport",
    "RecordingEmailTransport",
    "build_email_transport",
    "get_email_transport",
    "set_email_transport",
]
