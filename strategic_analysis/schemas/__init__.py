"""Public schema exports."""

from .analysis import (
    DOCX_MIME_TYPE,
    AnalysisKind,
    AnalysisRequest,
    AnalysisResponse,
    ErrorResponse,
    ExportRequest,
    ExtractedDocument,
    MethodologyMetadata,
    MethodologyStatus,
    UploadedDocument,
)

__all__ = [
    "AnalysisKind",
    "AnalysisRequest",
    "AnalysisResponse",
    "DOCX_MIME_TYPE",
    "ErrorResponse",
    "ExportRequest",
    "ExtractedDocument",
    "MethodologyMetadata",
    "MethodologyStatus",
    "UploadedDocument",
]
