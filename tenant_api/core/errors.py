"""Failure classification and exception handler registration.

Every failure raised while serving a request passes through
:func:`classify_failure`, which picks the HTTP status, error code, message
and details from an ordered first-match table keyed on the failure type,
logs the failure once and never raises.
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
import logging
import traceback
from typing import Any

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import NoResultFound
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenant_api.core.config import AppSettings
from tenant_api.core.context import RequestContext
from tenant_api.core.envelope import EnvelopeBuilder
from tenant_api.core.envelope import exception_location
from tenant_api.core.envelope import safe_text
from tenant_api.core.envelope import to_jsonable
from tenant_api.core.error_codes import ErrorCode
from tenant_api.core.error_codes import error_code_for_status
from tenant_api.core.error_codes import reason_phrase
from tenant_api.core.exceptions import ApiFailure
from tenant_api.core.exceptions import AuthenticationFailure
from tenant_api.core.exceptions import AuthorizationFailure
from tenant_api.core.exceptions import HttpFailure
from tenant_api.core.exceptions import RateLimitExceeded
from tenant_api.core.exceptions import RecordNotFound
from tenant_api.core.exceptions import TokenExpired
from tenant_api.core.exceptions import TokenFailure
from tenant_api.core.exceptions import TokenInvalid
from tenant_api.core.exceptions import ValidationFailure
from tenant_api.core.responses import envelope_response
from tenant_api.core.responses import get_envelope_builder
from tenant_api.core.responses import not_found_message

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

SENSITIVE_INPUT_KEYS = frozenset(
    {
        "password",
        "password_confirmation",
        "token",
        "api_key",
        "secret",
        "private_key",
        "card_number",
        "cvv",
        "ssn",
    }
)

VALIDATION_MESSAGE = "Validation failed. Please check your input and try again."
AUTHENTICATION_MESSAGE = "Authentication required. Please provide valid credentials."
AUTHORIZATION_MESSAGE = "You do not have permission to perform this action."
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."
TOKEN_EXPIRED_MESSAGE = "Your session has expired. Please login again."
TOKEN_INVALID_MESSAGE = "Invalid authentication token. Please login again."
TOKEN_ERROR_MESSAGE = "Authentication token error. Please login again."
DATABASE_PRODUCTION_MESSAGE = "A database error occurred. Please try again later."
GENERIC_PRODUCTION_MESSAGE = "An unexpected error occurred. Please try again later."


class FailureKind(str, Enum):
    """Closed set of failure kinds the classifier distinguishes."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RECORD_NOT_FOUND = "record_not_found"
    ROUTE_NOT_FOUND = "route_not_found"
    RATE_LIMIT = "rate_limit"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    PERSISTENCE = "persistence"
    HTTP = "http"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class FailureClassification:
    """Canonical outcome chosen for one failure."""

    status_code: int
    error_code: ErrorCode
    message: str
    details: Any | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


def _is_http_status(exc: BaseException, status_code: int) -> bool:
    return isinstance(exc, StarletteHTTPException) and exc.status_code == status_code


# Order matters: the first matching predicate wins.
_KIND_RULES: tuple[tuple[FailureKind, Callable[[BaseException], bool]], ...] = (
    (
        FailureKind.VALIDATION,
        lambda exc: isinstance(exc, (ValidationFailure, RequestValidationError, PydanticValidationError)),
    ),
    (FailureKind.AUTHENTICATION, lambda exc: isinstance(exc, AuthenticationFailure)),
    (FailureKind.AUTHORIZATION, lambda exc: isinstance(exc, AuthorizationFailure)),
    (FailureKind.RECORD_NOT_FOUND, lambda exc: isinstance(exc, (RecordNotFound, NoResultFound))),
    (FailureKind.ROUTE_NOT_FOUND, lambda exc: _is_http_status(exc, 404)),
    (
        FailureKind.RATE_LIMIT,
        lambda exc: isinstance(exc, RateLimitExceeded) or _is_http_status(exc, 429),
    ),
    (FailureKind.TOKEN_EXPIRED, lambda exc: isinstance(exc, TokenExpired)),
    (FailureKind.TOKEN_INVALID, lambda exc: isinstance(exc, TokenFailure)),
    (FailureKind.PERSISTENCE, lambda exc: isinstance(exc, SQLAlchemyError)),
    (FailureKind.HTTP, lambda exc: isinstance(exc, (HttpFailure, StarletteHTTPException))),
)


def failure_kind(exc: BaseException) -> FailureKind:
    """Return the kind of the first rule matching ``exc``."""
    for kind, matches in _KIND_RULES:
        if matches(exc):
            return kind
    return FailureKind.UNCLASSIFIED


def _format_location(location: tuple[Any, ...] | list[Any] | Any) -> str:
    if not isinstance(location, (tuple, list)):
        return str(location)

    prefixes = {"body", "query", "path", "header", "cookie"}
    filtered = [str(part) for part in location if part not in prefixes]
    if filtered:
        return ".".join(filtered)

    if not location:
        return "request"

    return str(location[0])


def validation_errors(exc: BaseException) -> dict[str, list[str]]:
    """Return a ``{field: [messages]}`` map for any validation failure."""
    if isinstance(exc, ValidationFailure):
        return {name: list(issues) for name, issues in exc.errors.items()}

    fields: dict[str, list[str]] = {}
    for issue in exc.errors():  # type: ignore[attr-defined]
        name = _format_location(issue.get("loc", ()))
        fields.setdefault(name, []).append(str(issue.get("msg", "Invalid value")))
    return fields


def _origin(exc: BaseException) -> tuple[str | None, int | None]:
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    if not frames:
        return None, None
    return frames[-1].filename, frames[-1].lineno


def _exception_name(exc: BaseException) -> str:
    exc_type = type(exc)
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


def _classify_validation(exc: BaseException, context: RequestContext, settings: AppSettings) -> FailureClassification:
    return FailureClassification(
        status_code=422,
        error_code=ErrorCode.VALIDATION_ERROR,
        message=VALIDATION_MESSAGE,
        details=validation_errors(exc),
    )


def _classify_authentication(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    return FailureClassification(status_code=401, error_code=ErrorCode.UNAUTHORIZED, message=AUTHENTICATION_MESSAGE)


def _classify_authorization(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    return FailureClassification(status_code=403, error_code=ErrorCode.FORBIDDEN, message=AUTHORIZATION_MESSAGE)


def _classify_record_not_found(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    if isinstance(exc, RecordNotFound):
        message = not_found_message(exc.resource, ", ".join(exc.ids))
    else:
        message = not_found_message("Resource")
    return FailureClassification(status_code=404, error_code=ErrorCode.RESOURCE_NOT_FOUND, message=message)


def _classify_route_not_found(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    return FailureClassification(
        status_code=404,
        error_code=ErrorCode.RESOURCE_NOT_FOUND,
        message=not_found_message("Endpoint", context.path),
    )


def _classify_rate_limit(exc: BaseException, context: RequestContext, settings: AppSettings) -> FailureClassification:
    if isinstance(exc, RateLimitExceeded):
        retry_after = exc.retry_after
    else:
        retry_after = (getattr(exc, "headers", None) or {}).get("Retry-After")

    meta: dict[str, Any] = {}
    headers: dict[str, str] = {}
    if retry_after is not None and retry_after != "":
        meta["retry_after"] = retry_after
        headers["Retry-After"] = str(retry_after)

    return FailureClassification(
        status_code=429,
        error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
        message=RATE_LIMIT_MESSAGE,
        meta=meta,
        headers=headers,
    )


def _classify_token_expired(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    return FailureClassification(status_code=401, error_code=ErrorCode.TOKEN_EXPIRED, message=TOKEN_EXPIRED_MESSAGE)


def _classify_token_invalid(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    message = TOKEN_INVALID_MESSAGE if isinstance(exc, TokenInvalid) else TOKEN_ERROR_MESSAGE
    return FailureClassification(status_code=401, error_code=ErrorCode.TOKEN_INVALID, message=message)


def _classify_persistence(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    if settings.is_production:
        return FailureClassification(
            status_code=500,
            error_code=ErrorCode.DATABASE_ERROR,
            message=DATABASE_PRODUCTION_MESSAGE,
        )

    original = getattr(exc, "orig", None)
    return FailureClassification(
        status_code=500,
        error_code=ErrorCode.DATABASE_ERROR,
        message=f"Database error: {safe_text(original or exc)}",
        details={
            "sql": getattr(exc, "statement", None),
            "bindings": to_jsonable(getattr(exc, "params", None)),
        },
    )


def _classify_http(exc: BaseException, context: RequestContext, settings: AppSettings) -> FailureClassification:
    status_code = int(getattr(exc, "status_code", 500))
    details: Any | None = None
    headers: dict[str, str] = {}

    if isinstance(exc, HttpFailure):
        error_code = exc.error_code or error_code_for_status(status_code)
        message = exc.message
        details = exc.details
        headers = dict(exc.headers)
    else:
        error_code = error_code_for_status(status_code)
        detail = getattr(exc, "detail", None)
        message = detail if isinstance(detail, str) else ""
        if detail is not None and not isinstance(detail, str):
            details = to_jsonable(detail)
        headers = dict(getattr(exc, "headers", None) or {})

    return FailureClassification(
        status_code=status_code,
        error_code=error_code,
        message=message or reason_phrase(status_code),
        details=details,
        headers=headers,
    )


def _classify_unclassified(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    if settings.is_production:
        return FailureClassification(
            status_code=500,
            error_code=ErrorCode.INTERNAL_SERVER_ERROR,
            message=GENERIC_PRODUCTION_MESSAGE,
        )

    file, line = _origin(exc)
    return FailureClassification(
        status_code=500,
        error_code=ErrorCode.INTERNAL_SERVER_ERROR,
        message=safe_text(exc) or type(exc).__name__,
        details={
            "exception": _exception_name(exc),
            "file": file,
            "line": line,
            "trace": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        },
    )


_CLASSIFIERS: dict[FailureKind, Callable[[BaseException, RequestContext, AppSettings], FailureClassification]] = {
    FailureKind.VALIDATION: _classify_validation,
    FailureKind.AUTHENTICATION: _classify_authentication,
    FailureKind.AUTHORIZATION: _classify_authorization,
    FailureKind.RECORD_NOT_FOUND: _classify_record_not_found,
    FailureKind.ROUTE_NOT_FOUND: _classify_route_not_found,
    FailureKind.RATE_LIMIT: _classify_rate_limit,
    FailureKind.TOKEN_EXPIRED: _classify_token_expired,
    FailureKind.TOKEN_INVALID: _classify_token_invalid,
    FailureKind.PERSISTENCE: _classify_persistence,
    FailureKind.HTTP: _classify_http,
    FailureKind.UNCLASSIFIED: _classify_unclassified,
}

_unmapped_kinds = set(FailureKind) - set(_CLASSIFIERS)
if _unmapped_kinds:
    raise RuntimeError(f"Failure kinds without a classifier: {sorted(kind.value for kind in _unmapped_kinds)}")


def sanitize_input(data: Any) -> Any:
    """Return a copy of request input with sensitive values redacted."""
    if isinstance(data, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_INPUT_KEYS else sanitize_input(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_input(item) for item in data]
    return data


def log_failure(
    exc: BaseException,
    classification: FailureClassification,
    context: RequestContext,
    settings: AppSettings,
    *,
    classifier_error: BaseException | None = None,
) -> None:
    """Emit exactly one log record describing a classified failure."""
    file, line = _origin(exc)
    failure_context: dict[str, Any] = {
        "exception": _exception_name(exc),
        "message": safe_text(exc),
        "file": file,
        "line": line,
        "status_code": classification.status_code,
        "error_code": classification.error_code.value,
        "request": context.for_logging(),
    }
    if classifier_error is not None:
        failure_context["classifier_error"] = f"{_exception_name(classifier_error)}: {safe_text(classifier_error)}"
    if not settings.is_production:
        failure_context["request_data"] = sanitize_input(context.input or {})

    is_client_error = classification.status_code < 500
    logger.log(
        logging.WARNING if is_client_error else logging.ERROR,
        "API %s error: %s %s -> %s %s",
        "client" if is_client_error else "server",
        context.method,
        context.path,
        classification.status_code,
        classification.error_code.value,
        extra={"failure_context": failure_context},
        exc_info=None if is_client_error else (type(exc), exc, exc.__traceback__),
    )


def _generic_failure() -> FailureClassification:
    return FailureClassification(
        status_code=500,
        error_code=ErrorCode.INTERNAL_SERVER_ERROR,
        message=GENERIC_PRODUCTION_MESSAGE,
    )


def _fallback_classification(
    exc: BaseException, context: RequestContext, settings: AppSettings
) -> FailureClassification:
    try:
        return _classify_unclassified(exc, context, settings)
    except Exception:
        return _generic_failure()


def classify_failure(
    exc: BaseException,
    context: RequestContext,
    settings: AppSettings,
) -> FailureClassification:
    """Classify a failure and log it once. Never raises.

    A classifier that fails degrades to the unclassified outcome, and that
    degrades to the generic 500 when the failure cannot even be described.
    """
    kind = failure_kind(exc)
    classifier_error: BaseException | None = None
    try:
        classification = _CLASSIFIERS[kind](exc, context, settings)
    except Exception as err:
        classifier_error = err
        classification = _fallback_classification(exc, context, settings)

    try:
        log_failure(exc, classification, context, settings, classifier_error=classifier_error)
    except Exception:
        logger.error(
            "Could not log %s failure: %s %s -> %s",
            kind.value,
            context.method,
            context.path,
            classification.status_code,
            exc_info=True,
        )
    return classification


def render_failure(
    builder: EnvelopeBuilder,
    classification: FailureClassification,
    context: RequestContext,
    exc: BaseException | None = None,
) -> JSONResponse:
    """Turn a classification into a failure envelope response.

    When ``exc`` was raised, ``debug`` points at the frame that raised it.
    """
    envelope = builder.failure(
        classification.message,
        classification.details,
        error_code=classification.error_code,
        meta=classification.meta or None,
        request_id=context.request_id,
        location=exception_location(exc) if exc is not None else None,
    )
    return envelope_response(envelope, classification.status_code, classification.headers)


async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Normalize any failure to the shared envelope."""
    builder = get_envelope_builder(request)
    context = RequestContext.from_request(request)
    classification = classify_failure(exc, context, builder.settings)
    return render_failure(builder, classification, context, exc)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the failure handler for every failure family."""
    app.add_exception_handler(RequestValidationError, api_exception_handler)
    app.add_exception_handler(PydanticValidationError, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, api_exception_handler)
    app.add_exception_handler(ApiFailure, api_exception_handler)
    app.add_exception_handler(SQLAlchemyError, api_exception_handler)
    app.add_exception_handler(Exception, api_exception_handler)
