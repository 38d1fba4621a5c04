"""FastAPI dependencies resolving services from the app's container."""
from fastapi import Request

from leadsync.bootstrap import Container
from leadsync.leads.service import LeadService
from leadsync.sync.service import SyncService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_sync_service(request: Request) -> SyncService:
    return get_container(request).sync_service


def get_lead_service(request: Request) -> LeadService:
    return get_container(request).lead_service
