"""Response envelope schemas shared by every API endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from tenant_api.core.error_codes import ErrorCode


class PaginationLinks(BaseModel):
    """Navigation links for a paginated collection."""

    first: str
    last: str
    prev: str | None = None
    next: str | None = None


class Pagination(BaseModel):
    """Pager metadata attached to paginated success envelopes."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    per_page: int
    total: int
    last_page: int
    from_: int | None = Field(default=None, alias="from")
    to: int | None = None
    has_more_pages: bool
    path: str
    links: PaginationLinks


class DebugInfo(BaseModel):
    """Call-site details attached to failure envelopes outside production."""

    model_config = ConfigDict(populate_by_name=True)

    file: str | None = None
    line: int | None = None
    function: str | None = None
    class_: str | None = Field(default=None, alias="class")
    trace_id: str


class Envelope(BaseModel):
    """Top-level API response envelope.

    Only explicitly populated fields are serialized, so a success envelope
    never shows ``error_code``/``errors`` and a failure envelope never shows
    ``data``.
    """

    success: bool
    message: str
    timestamp: str
    request_id: str
    data: Any = None
    pagination: Pagination | None = None
    error_code: ErrorCode | None = None
    errors: list[Any] | dict[str, Any] | None = None
    meta: dict[str, Any] | None = None
    debug: DebugInfo | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
