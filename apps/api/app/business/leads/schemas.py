from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.business.customers.schemas import CustomerRead
from app.business.leads.transitions import LeadStatus


class LeadSource(StrEnum):
    WEBSITE = "Website"
    REFERRAL = "Referral"
    COLD_CALL = "ColdCall"
    CAMPAIGN = "Campaign"
    SOCIAL_MEDIA = "SocialMedia"
    OTHER = "Other"


class LeadRating(StrEnum):
    HOT = "Hot"
    WARM = "Warm"
    COLD = "Cold"


class LeadChangeType(StrEnum):
    STATUS_CHANGED = "StatusChanged"
    NOTE_ADDED = "NoteAdded"
    ASSIGNMENT_CHANGED = "AssignmentChanged"
    DETAILS_ADDED = "DetailsAdded"
    RATING_CHANGED = "RatingChanged"
    CONVERTED_TO_CUSTOMER = "ConvertedToCustomer"


class LeadCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=200)
    contact_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=20)
    website: str | None = Field(default=None, max_length=200)
    industry: str | None = Field(default=None, max_length=100)
    lead_source: LeadSource = LeadSource.WEBSITE
    rating: LeadRating | None = None
    assigned_to: UUID | None = None
    estimated_value: Decimal | None = Field(default=None, ge=Decimal("0"))
    expected_close_date: date | None = None
    notes: str | None = None


class LeadDetailsUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=200)
    contact_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=20)
    website: str | None = Field(default=None, max_length=200)
    industry: str | None = Field(default=None, max_length=100)
    lead_source: LeadSource | None = None
    estimated_value: Decimal | None = Field(default=None, ge=Decimal("0"))
    expected_close_date: date | None = None


class LeadNoteCreate(BaseModel):
    note: str = Field(min_length=1)
    description: str | None = None


class LeadStatusUpdate(BaseModel):
    status: LeadStatus
    notes: str | None = None


class LeadAssignmentUpdate(BaseModel):
    assigned_to: UUID


class LeadRatingUpdate(BaseModel):
    rating: LeadRating


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_name: str
    contact_name: str
    email: str
    phone: str | None
    website: str | None
    industry: str | None
    lead_source: str
    status: str
    rating: str | None
    assigned_to: UUID | None
    estimated_value: Decimal | None
    expected_close_date: date | None
    notes: str | None
    lost_reason: str | None
    converted_to_customer_id: UUID | None
    converted_date: datetime | None
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    row_version: int


class LeadHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    change_type: str
    old_value: str | None
    new_value: str | None
    description: str | None
    changed_by_user_id: UUID
    correlation_id: str | None
    changed_at: datetime


class LeadWithHistoryRead(BaseModel):
    lead: LeadRead
    history: list[LeadHistoryRead] = Field(default_factory=list)


class LeadConversionRead(BaseModel):
    lead: LeadRead
    customer: CustomerRead
