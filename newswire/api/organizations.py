"""Organizations router -- create, list and delete feed owners."""

import logging
from typing import List

from fastapi import APIRouter, Response

from newswire.api.dependencies import Articles
from newswire.api.schemas import OrganizationCreateRequest
from newswire.schemas import OrganizationRecord

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=OrganizationRecord, status_code=201)
async def create_organization(body: OrganizationCreateRequest, service: Articles):
    return service.create_organization(body.name, body.url)


@router.get("", response_model=List[OrganizationRecord])
async def list_organizations(service: Articles):
    return service.list_organizations()


@router.delete("/{slug}", status_code=204)
async def delete_organization(slug: str, service: Articles):
    """Delete the organization and all of its articles."""
    service.delete_organization(slug)
    return Response(status_code=204)
