"""Request/response schemas for the lead API."""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from leadsync.models.lead import Lead, LeadSource, LeadStatus, Person


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None


class LeadCreate(BaseModel):
    """Schema for creating a lead by hand."""

    email: EmailStr
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[Address] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    picture_url: Optional[str] = None
    external_id: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    metadata: Optional[Dict[str, Any]] = None


class LeadUpdate(BaseModel):
    email: Optional[EmailStr] = None
    status: Optional[LeadStatus] = None
    external_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PersonRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    date_of_birth: Optional[datetime] = None
    nationality: Optional[str] = None
    gender: Optional[str] = None
    picture_url: Optional[str] = None


class LeadRead(BaseModel):
    id: str
    person_id: str
    email: str
    external_id: Optional[str] = None
    source: LeadSource
    status: LeadStatus
    metadata: Optional[Dict[str, Any]] = None
    synced_at: Optional[datetime] = None
    summary: Optional[str] = None
    next_action: Optional[str] = None
    summary_generated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    person: Optional[PersonRead] = None

    @classmethod
    def from_rows(cls, lead: Lead, person: Optional[Person] = None) -> "LeadRead":
        return cls(
            id=lead.id,
            person_id=lead.person_id,
            email=lead.email,
            external_id=lead.external_id,
            source=lead.source,
            status=lead.status,
            metadata=lead.lead_metadata,
            synced_at=lead.synced_at,
            summary=lead.summary,
            next_action=lead.next_action,
            summary_generated_at=lead.summary_generated_at,
            created_at=lead.created_at,
            updated_at=lead.updated_at,
            person=PersonRead.model_validate(person) if person is not None else None,
        )


class PageMeta(BaseModel):
    total: int
    page: int
    take: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, total: int, skip: int, take: int) -> "PageMeta":
        page = skip // take + 1 if take else 1
        total_pages = math.ceil(total / take) if take else 0
        return cls(
            total=total,
            page=page,
            take=take,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


class LeadPage(BaseModel):
    data: List[LeadRead]
    meta: PageMeta
