"""
Error taxonomy shared by the services and the HTTP layer.

Each error carries the status code and machine-readable kind that the API
exception handlers render, so services raise domain errors and never build
HTTP responses themselves.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class AnalysisServiceError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    kind: str = "internal_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AnalysisServiceError):
    """Malformed or missing input, rejected before any external call."""

    status_code = HTTPStatus.BAD_REQUEST
    kind = "validation_error"


class AuthError(AnalysisServiceError):
    status_code = HTTPStatus.UNAUTHORIZED
    kind = "auth_error"


class RateLimitExceeded(AnalysisServiceError):
    """Caller exceeded the per-minute request cap."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS
    kind = "rate_limit_exceeded"

    def __init__(self, message: str, *, retry_after: float, details: Any = None) -> None:
        super().__init__(message, details=details)
        self.retry_after = retry_after


class RateLimitExhausted(AnalysisServiceError):
    """The queue ran out of retries against the generation API."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS
    kind = "rate_limit_exhausted"


class TaskTimeout(AnalysisServiceError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    kind = "task_timeout"


class ContentBlocked(AnalysisServiceError):
    """The generation API refused the prompt on policy grounds."""

    status_code = HTTPStatus.BAD_REQUEST
    kind = "content_blocked"


class UpstreamError(AnalysisServiceError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    kind = "upstream_error"


class UpstreamRateLimited(UpstreamError):
    """The generation API answered with a rate-limit (429) condition."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS
    kind = "upstream_rate_limited"


class DocumentExtractionError(AnalysisServiceError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    kind = "document_extraction_error"


def is_rate_limited(exc: BaseException) -> bool:
    """Default retry predicate for the job queue."""
    if isinstance(exc, UpstreamRateLimited):
        return True
    for attr in ("status", "status_code", "code"):
        if getattr(exc, attr, None) == HTTPStatus.TOO_MANY_REQUESTS:
            return not isinstance(exc, (RateLimitExceeded, RateLimitExhausted))
    return False


__all__ = [
    "AnalysisServiceError",
    "AuthError",
    "ContentBlocked",
    "DocumentExtractionError",
    "RateLimitExceeded",
    "RateLimitExhausted",
    "TaskTimeout",
    "UpstreamError",
    "UpstreamRateLimited",
    "ValidationError",
    "is_rate_limited",
]
