"""Typed failures raised by services and dependencies.

Callers raise one of these and let the registered exception handlers turn it
into an error envelope. None of them subclass Starlette's ``HTTPException``.
"""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from tenant_api.core.error_codes import ErrorCode


class ApiFailure(Exception):
    """Base application failure."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailure(ApiFailure):
    """Input failed validation; carries a field -> messages map."""

    default_message = "Validation failed"

    def __init__(
        self,
        errors: Mapping[str, Sequence[str] | str],
        message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.errors: dict[str, list[str]] = {
            str(field): [issues] if isinstance(issues, str) else [str(issue) for issue in issues]
            for field, issues in errors.items()
        }


class AuthenticationFailure(ApiFailure):
    """Credentials are missing or invalid."""

    default_message = "Unauthenticated"


class AuthorizationFailure(ApiFailure):
    """The caller is authenticated but not allowed to perform the action."""

    default_message = "This action is unauthorized"


class RecordNotFound(ApiFailure):
    """A domain record lookup returned nothing."""

    def __init__(self, resource: str, ids: Iterable[Any] | Any = ()) -> None:
        if isinstance(ids, (str, bytes)) or not isinstance(ids, Iterable):
            ids = [ids]
        self.resource = resource
        self.ids = [str(identifier) for identifier in ids]
        super().__init__(f"No query results for {resource}")


class RateLimitExceeded(ApiFailure):
    """The caller exceeded a request quota."""

    default_message = "Too Many Attempts."

    def __init__(self, retry_after: int | str | None = None, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TokenFailure(ApiFailure):
    """Access-token problem that is neither expiry nor a malformed token."""

    default_message = "Token could not be parsed"


class TokenExpired(TokenFailure):
    default_message = "Token has expired"


class TokenInvalid(TokenFailure):
    default_message = "Token is invalid"


class HttpFailure(ApiFailure):
    """Failure carrying an explicit HTTP status.

    When ``error_code`` is omitted, the code is derived from the status.
    """

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        *,
        error_code: ErrorCode | None = None,
        details: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message or "")
        self.message = message or ""
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        self.headers = dict(headers) if headers else {}


class ConflictFailure(HttpFailure):
    """Convenience failure for uniqueness and state conflicts."""

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(409, message, error_code=ErrorCode.RESOURCE_CONFLICT, details=details)
