"""Repository primitives for organization entities."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenant_api.db.models.organization import Organization


def create_organization(
    session: Session,
    *,
    name: str,
    slug: str,
    email: str | None = None,
    is_active: bool = True,
) -> Organization:
    """Create and return an organization row."""
    organization = Organization(name=name, slug=slug, email=email, is_active=is_active)
    session.add(organization)
    session.flush()
    session.refresh(organization)
    return organization


def get_organization(session: Session, organization_id: UUID) -> Organization | None:
    """Fetch an organization by id."""
    return session.get(Organization, organization_id)


def list_organizations(
    session: Session,
    *,
    is_active: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Organization]:
    """List organizations, newest first."""
    stmt = select(Organization)
    if is_active is not None:
        stmt = stmt.where(Organization.is_active == is_active)
    stmt = stmt.order_by(Organization.created_at.desc(), Organization.name).limit(limit).offset(offset)
    return list(session.scalars(stmt))


def count_organizations(session: Session, *, is_active: bool | None = None) -> int:
    """Count organizations matching the active-state filter."""
    stmt = select(func.count()).select_from(Organization)
    if is_active is not None:
        stmt = stmt.where(Organization.is_active == is_active)
    return int(session.scalar(stmt) or 0)


def update_organization(
    session: Session,
    organization: Organization,
    *,
    name: str | None = None,
    slug: str | None = None,
    email: str | None = None,
    is_active: bool | None = None,
) -> Organization:
    """Update mutable organization fields."""
    if name is not None:
        organization.name = name
    if slug is not None:
        organization.slug = slug
    if email is not None:
        organization.email = email
    if is_active is not None:
        organization.is_active = is_active
    session.flush()
    session.refresh(organization)
    return organization


def disable_organization(session: Session, organization: Organization) -> Organization:
    """Soft-disable an organization."""
    organization.is_active = False
    session.flush()
    session.refresh(organization)
    return organization


def find_conflicting_fields(
    session: Session,
    *,
    name: str | None = None,
    slug: str | None = None,
    exclude_id: UUID | None = None,
) -> set[str]:
    """Return which of ``name``/``slug`` already belong to another organization."""
    taken: set[str] = set()
    for field_name, column, value in (("name", Organization.name, name), ("slug", Organization.slug, slug)):
        if value is None:
            continue
        stmt = select(Organization.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(Organization.id != exclude_id)
        if session.scalar(stmt.limit(1)) is not None:
            taken.add(field_name)
    return taken
