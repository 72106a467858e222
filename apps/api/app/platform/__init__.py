from app.platform.email import EmailTransport, get_email_transport, set_email_transport

__all__ = [
    "EmailTransport",
    "get_email_transport",
    "set_email_transport",
]
