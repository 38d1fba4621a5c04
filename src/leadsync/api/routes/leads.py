"""Lead CRUD routes."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from leadsync.api.deps import get_lead_service
from leadsync.exceptions import LeadConflictError, LeadNotFoundError, SummaryGenerationError
from leadsync.leads.schemas import LeadCreate, LeadPage, LeadRead, LeadUpdate
from leadsync.leads.service import LeadService
from leadsync.models.lead import LeadStatus

router = APIRouter()


@router.post("", response_model=LeadRead, status_code=201)
async def create_lead(data: LeadCreate, service: LeadService = Depends(get_lead_service)):
    try:
        return await service.create_lead(data)
    except LeadConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.get("", response_model=LeadPage)
async def list_leads(
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=10, ge=1, le=100),
    status: Optional[LeadStatus] = None,
    search: Optional[str] = None,
    service: LeadService = Depends(get_lead_service),
):
    """List leads, newest first, with pagination meta."""
    return await service.list_leads(skip=skip, take=take, status=status, search=search)


@router.get("/{lead_id}", response_model=LeadRead)
async def get_lead(lead_id: str, service: LeadService = Depends(get_lead_service)):
    try:
        return await service.get_lead(lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")


@router.patch("/{lead_id}", response_model=LeadRead)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    service: LeadService = Depends(get_lead_service),
):
    try:
        return await service.update_lead(lead_id, data)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")
    except LeadConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.delete("/{lead_id}", status_code=204)
async def delete_lead(lead_id: str, service: LeadService = Depends(get_lead_service)):
    try:
        await service.delete_lead(lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")
    return Response(status_code=204)


@router.post("/{lead_id}/summary", response_model=LeadRead)
async def generate_summary(lead_id: str, service: LeadService = Depends(get_lead_service)):
    """Generate and store an AI summary plus next action for the lead."""
    try:
        return await service.generate_summary(lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")
    except SummaryGenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
