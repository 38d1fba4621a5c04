"""Lead and person models."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from leadsync.models.common import new_id, utc_now


class LeadSource(str, Enum):
    MANUAL = "manual"
    EXTERNAL_API = "external_api"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


class Person(SQLModel, table=True):
    """Profile data. Owned by exactly one Lead."""

    id: str = Field(default_factory=new_id, primary_key=True)
    first_name: str = Field(max_length=255)
    last_name: str = Field(max_length=255)
    full_name: str = Field(index=True)
    phone: Optional[str] = Field(default=None, max_length=50)
    # {"street", "city", "state", "postcode", "country"}
    address: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    date_of_birth: Optional[datetime] = None
    nationality: Optional[str] = Field(default=None, max_length=100)
    gender: Optional[str] = Field(default=None, max_length=20)
    picture_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Lead(SQLModel, table=True):
    """One prospect. Email is the natural key and is unique across the store."""

    id: str = Field(default_factory=new_id, primary_key=True)
    person_id: str = Field(foreign_key="person.id", index=True)
    external_id: Optional[str] = Field(default=None, index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    source: LeadSource = Field(default=LeadSource.MANUAL, index=True)
    status: LeadStatus = Field(default=LeadStatus.NEW, index=True)
    lead_metadata: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON)
    )
    synced_at: Optional[datetime] = None

    # AI summary
    summary: Optional[str] = None
    next_action: Optional[str] = None
    summary_generated_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
