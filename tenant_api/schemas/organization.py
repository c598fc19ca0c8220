"""Pydantic schemas for organization API payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class OrganizationCreate(BaseModel):
    """Payload to create an organization."""

    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class OrganizationUpdate(BaseModel):
    """Payload to update mutable organization fields."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


class Organization(BaseModel):
    """Organization response payload."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    email: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
