"""Read-only request metadata used while classifying and logging failures."""

from __future__ import annotations

from dataclasses import asdict
from dataclasses import dataclass
from typing import Any

from fastapi import Request

REQUEST_ID_HEADER = "X-Request-ID"


def resolve_request_id(request: Request) -> str | None:
    """Return the id assigned by the middleware, else the inbound header."""
    existing = getattr(request.state, "request_id", None)
    if isinstance(existing, str) and existing:
        return existing
    return request.headers.get(REQUEST_ID_HEADER) or None


@dataclass(frozen=True)
class RequestContext:
    """Snapshot of the in-flight request."""

    method: str
    url: str
    path: str
    ip: str | None = None
    user_agent: str | None = None
    user_id: str | None = None
    request_id: str | None = None
    input: dict[str, Any] | None = None

    @classmethod
    def from_request(cls, request: Request, *, user_id: str | None = None) -> "RequestContext":
        if user_id is None:
            state_user = getattr(request.state, "user_id", None)
            user_id = str(state_user) if state_user is not None else None

        captured = getattr(request.state, "request_input", None)
        if not isinstance(captured, dict):
            captured = dict(request.query_params) or None

        return cls(
            method=request.method,
            url=str(request.url),
            path=request.url.path,
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("User-Agent"),
            user_id=user_id,
            request_id=resolve_request_id(request),
            input=captured,
        )

    def for_logging(self) -> dict[str, Any]:
        """Return the context fields without the raw request input."""
        payload = asdict(self)
        payload.pop("input", None)
        return payload
