"""Service layer exports."""

from .analysis import AnalysisOutcome, AnalysisService, parse_analysis_request
from .document_text import DocxTextExtractor
from .export_renderer import render_docx
from .job_queue import JobQueue, QueueConfig
from .request_throttle import RequestThrottle

__all__ = [
    "AnalysisOutcome",
    "AnalysisService",
    "DocxTextExtractor",
    "JobQueue",
    "QueueConfig",
    "RequestThrottle",
    "parse_analysis_request",
    "render_docx",
]
