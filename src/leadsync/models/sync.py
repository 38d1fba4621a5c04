"""Sync ledger models: one SyncJob row per sync run, plus the leads each run created."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from leadsync.models.common import new_id, utc_now


class SyncStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({SyncStatus.COMPLETED, SyncStatus.FAILED})


class SyncJob(SQLModel, table=True):
    """
    Ledger row for one sync run.

    The id doubles as the queue task id. Counts and errors are written once,
    when the run reaches a terminal state.
    """

    id: str = Field(default_factory=new_id, primary_key=True)
    source: str = "randomuser-api"
    batch_size: int = 10
    status: SyncStatus = Field(default=SyncStatus.PENDING, index=True)

    records_processed: int = 0
    records_created: int = 0
    records_skipped: int = 0
    # [{"record_key": "<email>", "message": "..."}], errors of the last finished attempt
    errors: List[Dict[str, str]] = Field(default_factory=list, sa_column=Column(JSON))

    attempts: int = 0
    error_message: Optional[str] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)


class SyncJobLead(SQLModel, table=True):
    """Links a sync run to each lead it created."""

    sync_job_id: str = Field(foreign_key="syncjob.id", primary_key=True)
    lead_id: str = Field(foreign_key="lead.id", primary_key=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
