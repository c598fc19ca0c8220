"""HTTP middleware assigning request ids and capturing request input."""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
import json
from typing import Any

from fastapi import Request
from fastapi import Response

from tenant_api.core.context import REQUEST_ID_HEADER
from tenant_api.core.envelope import generate_request_id

MAX_CAPTURED_BODY_BYTES = 64 * 1024


async def _capture_input(request: Request) -> dict[str, Any]:
    captured: dict[str, Any] = dict(request.query_params)

    content_type = request.headers.get("Content-Type", "")
    if "application/json" not in content_type:
        return captured

    body = await request.body()
    if not body or len(body) > MAX_CAPTURED_BODY_BYTES:
        return captured

    try:
        parsed = json.loads(body)
    except ValueError:
        # Malformed JSON is reported by request validation.
        return captured

    if isinstance(parsed, dict):
        captured.update(parsed)
    else:
        captured["body"] = parsed
    return captured


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Attach a request id and captured input to ``request.state``."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
    request.state.request_id = request_id
    request.state.request_input = await _capture_input(request)

    response = await call_next(request)
    if REQUEST_ID_HEADER not in response.headers:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response
