"""Organization API routes."""

from __future__ import annotations

from dataclasses import replace

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tenant_api.core.responses import ApiResponses
from tenant_api.core.responses import get_api_responses
from tenant_api.db.base import get_db_session
from tenant_api.schemas.organization import Organization
from tenant_api.schemas.organization import OrganizationCreate
from tenant_api.schemas.organization import OrganizationUpdate
from tenant_api.services.organizations import create_organization_service
from tenant_api.services.organizations import disable_organization_service
from tenant_api.services.organizations import get_organization_service
from tenant_api.services.organizations import list_organizations_service
from tenant_api.services.organizations import update_organization_service

router = APIRouter(prefix="/api/v1", tags=["organizations"])


@router.post("/organizations", status_code=201)
def create_organization_endpoint(
    payload: OrganizationCreate,
    session: Session = Depends(get_db_session),
    responses: ApiResponses = Depends(get_api_responses),
) -> JSONResponse:
    """Create an organization."""
    organization = create_organization_service(session, payload)
    return responses.created(Organization.model_validate(organization), "Organization created successfully")


@router.get("/organizations")
def list_organizations_endpoint(
    request: Request,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    is_active: bool | None = None,
    session: Session = Depends(get_db_session),
    responses: ApiResponses = Depends(get_api_responses),
) -> JSONResponse:
    """List organizations one page at a time."""
    result = list_organizations_service(
        session,
        page=page,
        per_page=per_page,
        is_active=is_active,
        path=str(request.url.replace(query="")),
    )
    result = replace(result, items=[Organization.model_validate(item) for item in result.items])
    return responses.paginated(result, "Organizations retrieved successfully")


@router.get("/organizations/{organization_id}")
def get_organization_endpoint(
    organization_id: str,
    session: Session = Depends(get_db_session),
    responses: ApiResponses = Depends(get_api_responses),
) -> JSONResponse:
    """Get a single organization by id."""
    organization = get_organization_service(session, organization_id)
    return responses.success("Organization retrieved successfully", Organization.model_validate(organization))


@router.patch("/organizations/{organization_id}")
def update_organization_endpoint(
    organization_id: str,
    payload: OrganizationUpdate,
    session: Session = Depends(get_db_session),
    responses: ApiResponses = Depends(get_api_responses),
) -> JSONResponse:
    """Update an organization."""
    organization = update_organization_service(session, organization_id, payload)
    return responses.updated(Organization.model_validate(organization), "Organization updated successfully")


@router.delete("/organizations/{organization_id}")
def delete_organization_endpoint(
    organization_id: str,
    session: Session = Depends(get_db_session),
    responses: ApiResponses = Depends(get_api_responses),
) -> JSONResponse:
    """Soft-disable an organization."""
    disable_organization_service(session, organization_id)
    return responses.deleted("Organization disabled successfully")
