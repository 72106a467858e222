from app.business.leads.models import Lead, LeadHistoryEvent
from app.business.leads.transitions import LeadStatus, next_lead_status

__all__ = [
    "Lead",
    "LeadHistoryEvent",
    "LeadStatus",
    "next_lead_status",
]
