"""
Request guards shared by the API routes.
"""

import hmac
import logging

from fastapi import Depends, Request

from strategic_analysis.core.config import AppSettings
from strategic_analysis.core.errors import AuthError
from strategic_analysis.dependencies.clients import get_request_throttle
from strategic_analysis.dependencies.config import get_app_settings
from strategic_analysis.services import RequestThrottle

API_KEY_HEADER = "x-api-key"

logger = logging.getLogger(__name__)


def require_api_key(
    request: Request, settings: AppSettings = Depends(get_app_settings)
) -> None:
    """Reject requests whose ``x-api-key`` header does not match the shared secret."""
    expected = settings.security.frontend_api_key
    if not expected:
        return
    provided = request.headers.get(API_KEY_HEADER, "")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected %s %s: invalid API key.", request.method, request.url.path)
        raise AuthError("Invalid API key")


def enforce_analyze_throttle(
    request: Request, throttle: RequestThrottle = Depends(get_request_throttle)
) -> None:
    caller = request.client.host if request.client else "unknown"
    throttle.check(caller)


__all__ = ["API_KEY_HEADER", "enforce_analyze_throttle", "require_api_key"]
