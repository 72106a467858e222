from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class LeadStats(BaseModel):
    total: int
    new: int
    demo: int
    converted: int
    lost: int
    conversion_rate: Decimal


class OrderStats(BaseModel):
    total: int
    pending: int
    confirmed: int
    delivered: int
    cancelled: int
    total_revenue: Decimal


class SubscriptionStats(BaseModel):
    active: int
    expired: int
    renewals_due_30_days: int
    renewals_due_90_days: int


class DashboardStatsRead(BaseModel):
    leads: LeadStats
    customers: int
    orders: OrderStats
    subscriptions: SubscriptionStats
