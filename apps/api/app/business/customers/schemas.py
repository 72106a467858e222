from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CustomerType(StrEnum):
    INDIVIDUAL = "Individual"
    BUSINESS = "Business"


class CustomerCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=200)
    contact_person: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=20)
    alternate_phone: str | None = Field(default=None, max_length=20)
    website: str | None = Field(default=None, max_length=200)
    industry: str | None = Field(default=None, max_length=100)
    customer_type: CustomerType = CustomerType.BUSINESS
    billing_address: str | None = None
    billing_city: str | None = None
    billing_state: str | None = None
    billing_country: str = "India"
    billing_postal_code: str | None = None
    shipping_address: str | None = None
    shipping_city: str | None = None
    shipping_state: str | None = None
    shipping_country: str | None = None
    shipping_postal_code: str | None = None
    gst_number: str | None = Field(default=None, max_length=50)
    pan_number: str | None = Field(default=None, max_length=50)
    account_owner: UUID | None = None


class CustomerUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=200)
    contact_person: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=20)
    alternate_phone: str | None = Field(default=None, max_length=20)
    website: str | None = Field(default=None, max_length=200)
    industry: str | None = Field(default=None, max_length=100)
    customer_type: CustomerType | None = None
    billing_address: str | None = None
    billing_city: str | None = None
    billing_state: str | None = None
    billing_country: str | None = None
    billing_postal_code: str | None = None
    shipping_address: str | None = None
    shipping_city: str | None = None
    shipping_state: str | None = None
    shipping_country: str | None = None
    shipping_postal_code: str | None = None
    gst_number: str | None = Field(default=None, max_length=50)
    pan_number: str | None = Field(default=None, max_length=50)
    account_owner: UUID | None = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID | None
    company_name: str
    contact_person: str
    email: str
    phone: str | None
    alternate_phone: str | None
    website: str | None
    industry: str | None
    customer_type: str
    billing_address: str | None
    billing_city: str | None
    billing_state: str | None
    billing_country: str
    billing_postal_code: str | None
    shipping_address: str | None
    shipping_city: str | None
    shipping_state: str | None
    shipping_country: str | None
    shipping_postal_code: str | None
    gst_number: str | None
    pan_number: str | None
    account_owner: UUID | None
    created_by: UUID
    created_at: datetime
    updated_at: datetime
