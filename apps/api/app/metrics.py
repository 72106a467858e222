from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

sales_lead_transitions_total = Counter(
    "sales_lead_transitions_total",
    "Lead mutations by change type",
    ["change_type"],
)

sales_orders_total = Counter(
    "sales_orders_total",
    "Order lifecycle transitions by resulting status",
    ["status"],
)

sales_subscriptions_provisioned_total = Counter(
    "sales_subscriptions_provisioned_total",
    "Subscriptions provisioned from confirmed orders",
)

sales_workflow_failures_total = Counter(
    "sales_workflow_failures_total",
    "Rejected workflow operations by error code",
    ["operation", "code"],
)

notification_emails_total = Counter(
    "notification_emails_total",
    "Notification email delivery attempts by outcome",
    ["outcome"],
)

otp_events_total = Counter(
    "otp_events_total",
    "OTP challenge events by kind",
    ["event"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        for attribute in ("path_format", "path"):
            value = getattr(route, attribute, None)
            if isinstance(value, str) and value:
                return _PATH_PARAM_RE.sub("{id}", value)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_lead_transition(change_type: str) -> None:
    sales_lead_transitions_total.labels(change_type=change_type).inc()


def observe_order_status(status: str) -> None:
    sales_orders_total.labels(status=status).inc()


def observe_subscription_provisioned() -> None:
    sales_subscriptions_provisioned_total.inc()


def observe_workflow_failure(operation: str, code: str) -> None:
    sales_workflow_failures_total.labels(operation=operation, code=code).inc()


def observe_notification_email(outcome: str) -> None:
    notification_emails_total.labels(outcome=outcome).inc()


def observe_otp_event(event: str) -> None:
    otp_events_total.labels(event=event).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
