from __future__ import annotations

from enum import StrEnum

from app.core.errors import AlreadyConvertedError, InvalidTransitionError


class LeadStatus(StrEnum):
    NEW = "New"
    DEMO = "Demo"
    CONVERTED = "Converted"
    LOST = "Lost"


TERMINAL_LEAD_STATUSES = frozenset({LeadStatus.CONVERTED, LeadStatus.LOST})

VALID_LEAD_TRANSITIONS: dict[LeadStatus, set[LeadStatus]] = {
    LeadStatus.NEW: {LeadStatus.DEMO, LeadStatus.LOST, LeadStatus.CONVERTED},
    LeadStatus.DEMO: {LeadStatus.NEW, LeadStatus.LOST, LeadStatus.CONVERTED},
    LeadStatus.CONVERTED: set(),
    LeadStatus.LOST: set(),
}


def assert_lead_mutable(current: LeadStatus) -> None:
    if current in TERMINAL_LEAD_STATUSES:
        raise InvalidTransitionError(f"lead is {current} and can no longer change", details={"status": current.value})


def next_lead_status(current: LeadStatus, target: LeadStatus) -> LeadStatus:
    """Resolve a manual status change.

    Returns ``current`` unchanged when the target equals it so callers can
    treat the request as a no-op. Converted is only reachable through
    conversion to a customer.
    """
    assert_lead_mutable(current)
    if target == LeadStatus.CONVERTED:
        raise InvalidTransitionError(
            "leads become Converted only through conversion to a customer",
            details={"status": current.value, "target": target.value},
        )
    if target == current:
        return current
    if target not in VALID_LEAD_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"invalid lead transition {current} -> {target}",
            details={"status": current.value, "target": target.value},
        )
    return target


def assert_convertible(current: LeadStatus) -> None:
    if current == LeadStatus.CONVERTED:
        raise AlreadyConvertedError("lead already converted")
    if current == LeadStatus.LOST:
        raise InvalidTransitionError("a lost lead cannot be converted", details={"status": current.value})
