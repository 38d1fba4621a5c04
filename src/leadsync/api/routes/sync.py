"""Sync trigger and status routes."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from leadsync.api.deps import get_container, get_lead_service, get_sync_service
from leadsync.bootstrap import Container
from leadsync.exceptions import QueueUnavailableError, UnknownSourceError
from leadsync.leads.schemas import LeadRead
from leadsync.leads.service import LeadService
from leadsync.models.sync import SyncJob
from leadsync.sources.registry import SOURCE_NAMES
from leadsync.sync.service import SyncService

router = APIRouter()


class SyncTriggerRequest(BaseModel):
    source: str = SOURCE_NAMES[0]
    batch_size: int = Field(default=10, ge=1, le=5000)


@router.post("/trigger", response_model=SyncJob, status_code=202)
async def trigger_sync(
    request: SyncTriggerRequest,
    sync_service: SyncService = Depends(get_sync_service),
):
    """
    Queue one sync run and return its PENDING job immediately.
    Poll GET /sync/jobs/{id} for the outcome.
    """
    try:
        return await sync_service.trigger_sync(request.source, request.batch_size)
    except UnknownSourceError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except QueueUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("/jobs", response_model=List[SyncJob])
async def list_sync_jobs(
    limit: int = Query(default=10, ge=1, le=100),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Most recent sync jobs, newest first."""
    return await sync_service.list_recent_sync_jobs(limit)


@router.get("/jobs/{job_id}", response_model=SyncJob)
async def get_sync_job(job_id: str, sync_service: SyncService = Depends(get_sync_service)):
    job = await sync_service.get_sync_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Sync job not found")
    return job


@router.get("/jobs/{job_id}/leads", response_model=List[LeadRead])
async def list_sync_job_leads(
    job_id: str,
    container: Container = Depends(get_container),
    lead_service: LeadService = Depends(get_lead_service),
):
    """Leads created by one sync run."""
    if not await container.ledger.get(job_id):
        raise HTTPException(status_code=404, detail="Sync job not found")
    lead_ids = await container.ledger.created_lead_ids(job_id)
    return await lead_service.get_leads(lead_ids)
