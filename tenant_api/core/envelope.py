"""Response envelope construction.

Every API response, success or failure, is built here so clients always see
the same top-level shape. Settings, clock and id generators are injected so
the mapping itself stays deterministic.
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping
from datetime import datetime
from datetime import timezone
import inspect
from types import FrameType
from typing import Any
from uuid import uuid4

from fastapi.encoders import jsonable_encoder

from tenant_api.core.config import AppSettings
from tenant_api.core.error_codes import ErrorCode
from tenant_api.core.pagination import Page
from tenant_api.schemas.envelope import DebugInfo
from tenant_api.schemas.envelope import Envelope
from tenant_api.schemas.envelope import Pagination

DEFAULT_SUCCESS_MESSAGE = "Operation successful"
DEFAULT_FAILURE_MESSAGE = "Operation failed"

_HELPER_MODULES = frozenset({__name__, "tenant_api.core.responses", "tenant_api.core.errors"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with microseconds and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def generate_request_id() -> str:
    return f"req_{uuid4().hex}"


def generate_trace_id() -> str:
    return f"trace_{uuid4().hex}"


def safe_text(value: Any) -> str:
    """Return ``str(value)``, or a placeholder naming the type when that fails."""
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def to_jsonable(value: Any) -> Any:
    """Return a JSON-compatible copy of ``value``.

    Leaves ``jsonable_encoder`` cannot handle are rendered as text.
    """
    try:
        return jsonable_encoder(value)
    except Exception:
        if isinstance(value, Mapping):
            return {safe_text(key): to_jsonable(item) for key, item in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [to_jsonable(item) for item in value]
        return safe_text(value)


def _string_keys(mapping: Mapping[Any, Any]) -> dict[str, Any]:
    return {key if isinstance(key, str) else safe_text(key): value for key, value in mapping.items()}


def normalize_errors(errors: Any) -> list[Any] | dict[str, Any]:
    """Coerce an error payload into a list or an object."""
    if isinstance(errors, str):
        return [errors]
    if isinstance(errors, Mapping):
        return _string_keys(to_jsonable(dict(errors)))
    if isinstance(errors, (list, tuple, set, frozenset)):
        return to_jsonable(list(errors))
    return {"details": to_jsonable(errors)}


def _frame_location(frame: FrameType, line: int) -> dict[str, Any]:
    owner = frame.f_locals.get("self", frame.f_locals.get("cls"))
    if owner is not None and not isinstance(owner, type):
        owner = type(owner)
    return {
        "file": frame.f_code.co_filename,
        "line": line,
        "function": frame.f_code.co_name,
        "class": owner.__qualname__ if owner is not None else None,
    }


def caller_location() -> dict[str, Any]:
    """Return file/line/function/class of the first frame outside the response helpers."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_globals.get("__name__") in _HELPER_MODULES:
            frame = frame.f_back
        if frame is None:
            return {"file": None, "line": None, "function": None, "class": None}
        return _frame_location(frame, frame.f_lineno)
    finally:
        del frame


def exception_location(exc: BaseException) -> dict[str, Any] | None:
    """Return the location of the frame that raised ``exc``; ``None`` if it was never raised."""
    tb = exc.__traceback__
    if tb is None:
        return None
    while tb.tb_next is not None:
        tb = tb.tb_next
    return _frame_location(tb.tb_frame, tb.tb_lineno)


def _pagination(page: Page) -> Pagination:
    return Pagination.model_validate(
        {
            "current_page": page.page,
            "per_page": page.per_page,
            "total": page.total,
            "last_page": page.last_page,
            "from": page.first_item,
            "to": page.last_item,
            "has_more_pages": page.has_more_pages,
            "path": page.path,
            "links": {
                "first": page.url(1),
                "last": page.url(page.last_page),
                "prev": page.previous_page_url(),
                "next": page.next_page_url(),
            },
        }
    )


class EnvelopeBuilder:
    """Build success and failure envelopes for one process configuration."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
        request_id_factory: Callable[[], str] = generate_request_id,
        trace_id_factory: Callable[[], str] = generate_trace_id,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._request_id_factory = request_id_factory
        self._trace_id_factory = trace_id_factory

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def success(
        self,
        message: str = DEFAULT_SUCCESS_MESSAGE,
        data: Any = None,
        *,
        meta: Mapping[str, Any] | None = None,
        request_id: str | None = None,
    ) -> Envelope:
        """Build a success envelope.

        A :class:`Page` is unpacked into its items plus a ``pagination`` block.
        """
        fields = self._base_fields(True, message, request_id)
        if data is not None:
            if isinstance(data, Page):
                fields["data"] = to_jsonable(list(data.items))
                fields["pagination"] = _pagination(data)
            else:
                fields["data"] = to_jsonable(data)
        if meta:
            fields["meta"] = self._meta(meta)
        return Envelope(**fields)

    def failure(
        self,
        message: str = DEFAULT_FAILURE_MESSAGE,
        errors: Any = None,
        *,
        error_code: ErrorCode | str | None = None,
        meta: Mapping[str, Any] | None = None,
        request_id: str | None = None,
        location: Mapping[str, Any] | None = None,
    ) -> Envelope:
        """Build a failure envelope, with a ``debug`` block outside production.

        ``debug`` points at ``location`` when given, else at the caller.
        """
        fields = self._base_fields(False, message, request_id)
        if error_code is not None:
            fields["error_code"] = ErrorCode(error_code)
        if errors is not None:
            fields["errors"] = normalize_errors(errors)
        if not self._settings.is_production:
            fields["debug"] = DebugInfo(**(location or caller_location()), trace_id=self._trace_id_factory())
        if meta:
            fields["meta"] = self._meta(meta)
        return Envelope(**fields)

    def _base_fields(self, success: bool, message: str, request_id: str | None) -> dict[str, Any]:
        return {
            "success": success,
            "message": message if isinstance(message, str) else safe_text(message),
            "timestamp": format_timestamp(self._clock()),
            "request_id": request_id or self._request_id_factory(),
        }

    def _meta(self, meta: Mapping[str, Any]) -> dict[str, Any]:
        merged: dict[str, Any] = {
            "api_version": self._settings.api_version,
            "environment": self._settings.environment,
        }
        merged.update(_string_keys(to_jsonable(dict(meta))))
        return merged
