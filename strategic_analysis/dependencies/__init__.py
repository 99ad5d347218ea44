"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_analysis_service,
    get_document_extractor,
    get_gemini_client,
    get_job_queue,
    get_methodology_store,
    get_request_throttle,
    get_text_generator,
)
from .config import SettingsDependency, get_app_settings, get_upload_settings
from .security import enforce_analyze_throttle, require_api_key

__all__ = [
    "SettingsDependency",
    "enforce_analyze_throttle",
    "get_analysis_service",
    "get_app_settings",
    "get_document_extractor",
    "get_gemini_client",
    "get_job_queue",
    "get_methodology_store",
    "get_request_throttle",
    "get_text_generator",
    "get_upload_settings",
    "require_api_key",
]
