"""JSON response helpers built on top of the envelope builder."""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sized
from typing import Any

from fastapi import Request
from fastapi import Response
from fastapi.responses import JSONResponse

from tenant_api.core.config import get_app_settings
from tenant_api.core.context import REQUEST_ID_HEADER
from tenant_api.core.context import resolve_request_id
from tenant_api.core.envelope import EnvelopeBuilder
from tenant_api.core.error_codes import ErrorCode
from tenant_api.core.pagination import Page
from tenant_api.schemas.envelope import Envelope


def envelope_response(
    envelope: Envelope,
    status_code: int,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Render an envelope, echoing its request id as a response header."""
    response_headers = {REQUEST_ID_HEADER: envelope.request_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(status_code=status_code, content=envelope.to_payload(), headers=response_headers)


def get_envelope_builder(request: Request) -> EnvelopeBuilder:
    """Return the app's builder, falling back to one built from process settings."""
    builder = getattr(request.app.state, "envelope_builder", None)
    if isinstance(builder, EnvelopeBuilder):
        return builder
    return EnvelopeBuilder(get_app_settings())


def not_found_message(resource: str, identifier: str | None = None) -> str:
    if identifier:
        return f"{resource} with identifier '{identifier}' not found"
    return f"{resource} not found"


class ApiResponses:
    """Response helpers bound to one request id."""

    def __init__(self, builder: EnvelopeBuilder, request_id: str | None = None) -> None:
        self._builder = builder
        self._request_id = request_id

    def success(
        self,
        message: str = "Operation successful",
        data: Any = None,
        status_code: int = 200,
        meta: Mapping[str, Any] | None = None,
    ) -> JSONResponse:
        envelope = self._builder.success(message, data, meta=meta, request_id=self._request_id)
        return envelope_response(envelope, status_code)

    def error(
        self,
        message: str = "Operation failed",
        errors: Any = None,
        status_code: int = 400,
        error_code: ErrorCode | str | None = None,
        meta: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> JSONResponse:
        envelope = self._builder.failure(
            message,
            errors,
            error_code=error_code,
            meta=meta,
            request_id=self._request_id,
        )
        return envelope_response(envelope, status_code, headers)

    def created(self, data: Any = None, message: str = "Resource created successfully") -> JSONResponse:
        return self.success(message, data, status_code=201)

    def updated(self, data: Any = None, message: str = "Resource updated successfully") -> JSONResponse:
        return self.success(message, data)

    def deleted(self, message: str = "Resource deleted successfully") -> JSONResponse:
        return self.success(message)

    def paginated(self, page: Page, message: str = "Data retrieved successfully") -> JSONResponse:
        return self.success(message, page)

    def collection(
        self,
        items: Any,
        message: str = "Data retrieved successfully",
        meta: Mapping[str, Any] | None = None,
    ) -> JSONResponse:
        merged = dict(meta or {})
        if isinstance(items, Sized):
            merged["total_count"] = len(items)
        return self.success(message, items, meta=merged)

    @staticmethod
    def no_content() -> Response:
        return Response(status_code=204)

    def not_found(self, resource: str = "Resource", identifier: str | None = None) -> JSONResponse:
        return self.error(
            not_found_message(resource, identifier),
            status_code=404,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
        )

    def validation_error(self, errors: Any, message: str = "Validation failed") -> JSONResponse:
        return self.error(message, errors, status_code=422, error_code=ErrorCode.VALIDATION_ERROR)

    def unauthorized(
        self,
        message: str = "Unauthorized access",
        error_code: ErrorCode | str | None = None,
    ) -> JSONResponse:
        return self.error(message, status_code=401, error_code=error_code or ErrorCode.UNAUTHORIZED)

    def forbidden(self, message: str = "Access forbidden") -> JSONResponse:
        return self.error(message, status_code=403, error_code=ErrorCode.FORBIDDEN)

    def rate_limit_exceeded(
        self,
        message: str = "Too many requests. Please try again later.",
        meta: Mapping[str, Any] | None = None,
    ) -> JSONResponse:
        return self.error(message, status_code=429, error_code=ErrorCode.RATE_LIMIT_EXCEEDED, meta=meta)

    def server_error(self, message: str = "Internal server error", details: Any = None) -> JSONResponse:
        return self.error(message, details, status_code=500, error_code=ErrorCode.INTERNAL_SERVER_ERROR)

    def service_unavailable(self, message: str = "Service temporarily unavailable") -> JSONResponse:
        return self.error(message, status_code=503, error_code=ErrorCode.SERVICE_UNAVAILABLE)


def get_api_responses(request: Request) -> ApiResponses:
    """FastAPI dependency returning response helpers for the current request."""
    return ApiResponses(get_envelope_builder(request), resolve_request_id(request))
