"""Service helpers for organization API operations."""

from __future__ import annotations

import re
from typing import Any
from typing import NoReturn
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenant_api.core.exceptions import ConflictFailure
from tenant_api.core.exceptions import RecordNotFound
from tenant_api.core.exceptions import ValidationFailure
from tenant_api.core.pagination import Page
from tenant_api.core.pagination import normalize_page_params
from tenant_api.db.models.organization import Organization
from tenant_api.db.repository.organizations import count_organizations
from tenant_api.db.repository.organizations import create_organization
from tenant_api.db.repository.organizations import disable_organization
from tenant_api.db.repository.organizations import find_conflicting_fields
from tenant_api.db.repository.organizations import get_organization
from tenant_api.db.repository.organizations import list_organizations
from tenant_api.db.repository.organizations import update_organization
from tenant_api.schemas.organization import OrganizationCreate
from tenant_api.schemas.organization import OrganizationUpdate

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")

RESOURCE_NAME = "Organization"


def slugify(name: str) -> str:
    return _SLUG_SEPARATORS.sub("-", name.lower()).strip("-")


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not slugify(cleaned):
        raise ValidationFailure({"name": ["The name must contain at least one letter or digit."]})
    return cleaned


def _raise_unique_conflict(
    session: Session,
    *,
    name: str | None,
    slug: str | None,
    exclude_id: UUID | None = None,
) -> NoReturn:
    taken = find_conflicting_fields(session, name=name, slug=slug, exclude_id=exclude_id)
    field_name = "slug" if taken == {"slug"} else "name"
    raise ConflictFailure(
        f"Organization {field_name} must be unique",
        details={field_name: [f"The {field_name} has already been taken."]},
    )


def create_organization_service(session: Session, payload: OrganizationCreate) -> Organization:
    """Create and persist a new organization."""
    name = _clean_name(payload.name)
    slug = slugify(name)
    try:
        organization = create_organization(session, name=name, slug=slug, email=payload.email)
        session.commit()
        return organization
    except IntegrityError:
        session.rollback()
        _raise_unique_conflict(session, name=name, slug=slug)


def list_organizations_service(
    session: Session,
    *,
    page: int | None = None,
    per_page: int | None = None,
    is_active: bool | None = None,
    path: str = "",
) -> Page:
    """Return one page of organizations."""
    page, per_page = normalize_page_params(page, per_page)
    query: dict[str, Any] = {"per_page": per_page}
    if is_active is not None:
        query["is_active"] = str(is_active).lower()

    items = list_organizations(session, is_active=is_active, limit=per_page, offset=(page - 1) * per_page)
    total = count_organizations(session, is_active=is_active)
    return Page(items=items, total=total, page=page, per_page=per_page, path=path, query=query)


def get_organization_service(session: Session, organization_id: str) -> Organization:
    """Fetch an organization or raise not found."""
    try:
        key = UUID(organization_id)
    except ValueError:
        raise RecordNotFound(RESOURCE_NAME, organization_id) from None

    organization = get_organization(session, key)
    if organization is None:
        raise RecordNotFound(RESOURCE_NAME, organization_id)
    return organization


def update_organization_service(
    session: Session,
    organization_id: str,
    payload: OrganizationUpdate,
) -> Organization:
    """Update mutable fields of an existing organization."""
    organization = get_organization_service(session, organization_id)
    organization_key = organization.id
    name = _clean_name(payload.name) if payload.name is not None else None
    slug = slugify(name) if name is not None else None
    try:
        organization = update_organization(
            session,
            organization,
            name=name,
            slug=slug,
            email=payload.email,
            is_active=payload.is_active,
        )
        session.commit()
        return organization
    except IntegrityError:
        session.rollback()
        _raise_unique_conflict(session, name=name, slug=slug, exclude_id=organization_key)


def disable_organization_service(session: Session, organization_id: str) -> Organization:
    """Soft-disable an organization and persist the change."""
    organization = get_organization_service(session, organization_id)
    organization = disable_organization(session, organization)
    session.commit()
    return organization
