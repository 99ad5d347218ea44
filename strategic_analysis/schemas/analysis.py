"""
Pydantic models for analysis requests, responses and export payloads.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DOCX_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)


class AnalysisKind(str, Enum):
    """Analyses the service knows how to prompt for."""

    FUNDAMENTALS = "fundamentals"
    STRATEGY = "strategy"
    INSIGHTS = "insights"
    CHALLENGE_ANALYSIS = "challenge-analysis"
    STRATEGIC_CALIBRATION = "strategic-calibration"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class UploadedDocument(BaseModel):
    """Raw supporting document received with an analysis request."""

    name: str = Field(..., description="Original file name supplied by the client.")
    content_type: str = Field(..., description="MIME type reported for the upload.")
    content: bytes = Field(..., repr=False)


class ExtractedDocument(BaseModel):
    """Plain text recovered from an uploaded document."""

    name: str
    text: str


class AnalysisRequest(BaseModel):
    """Validated analysis request owned by the handler for one call."""

    kind: AnalysisKind
    strategic_text: str = Field(..., description="Free-form strategic narrative.")
    mission_statement: Optional[str] = Field(
        None, description="Optional mission statement supplied alongside the text."
    )
    methodology: Optional[UploadedDocument] = None
    additional_documents: list[UploadedDocument] = Field(default_factory=list)


class AnalysisResponse(BaseModel):
    """Envelope returned by the analyze endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    content: Any = Field(
        ..., description="Parsed JSON analysis, or raw text when parsing failed."
    )
    analysis_id: str = Field(..., alias="analysisId")
    warning: Optional[str] = Field(
        None, description="Present when the result could not be parsed as JSON."
    )


class MethodologyMetadata(BaseModel):
    """Describes the stored methodology document."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    upload_date: datetime = Field(..., alias="uploadDate")
    size: int
    custom: bool = True


class MethodologyStatus(BaseModel):
    methodology: Optional[MethodologyMetadata] = None


class ExportRequest(BaseModel):
    """Analysis result to render into a Word document."""

    model_config = ConfigDict(populate_by_name=True)

    analysis_results: Any = Field(None, alias="analysisResults")
    analysis_type: Optional[str] = Field(None, alias="analysisType")


class ErrorResponse(BaseModel):
    """Body returned for every failed request."""

    error: str
    kind: str
    details: Any = None
    timestamp: datetime


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
