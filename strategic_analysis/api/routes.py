"""
FastAPI routes for the strategic analysis service.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import time
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from strategic_analysis.clients import MethodologyStore
from strategic_analysis.core.config import AppSettings, UploadSettings
from strategic_analysis.core.errors import ValidationError
from strategic_analysis.dependencies import (
    enforce_analyze_throttle,
    get_analysis_service,
    get_app_settings,
    get_methodology_store,
    get_upload_settings,
    require_api_key,
)
from strategic_analysis.schemas import (
    DOCX_MIME_TYPE,
    AnalysisResponse,
    ExportRequest,
    MethodologyStatus,
    UploadedDocument,
)
from strategic_analysis.services import (
    AnalysisService,
    parse_analysis_request,
    render_docx,
)
from strategic_analysis.services.response_extractor import coerce_result

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "python_version": platform.python_version(),
    }


@router.get(
    "/methodology/current",
    response_model=MethodologyStatus,
    dependencies=[Depends(require_api_key)],
)
async def current_methodology(
    store: Annotated[MethodologyStore, Depends(get_methodology_store)],
) -> MethodologyStatus:
    """Describe the stored methodology document, if one was uploaded."""
    return MethodologyStatus(methodology=store.current())


@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    dependencies=[Depends(enforce_analyze_throttle), Depends(require_api_key)],
)
async def analyze(
    request: Request,
    service: Annotated[AnalysisService, Depends(get_analysis_service)],
    limits: Annotated[UploadSettings, Depends(get_upload_settings)],
) -> JSONResponse:
    """Run one strategic analysis from a JSON or multipart request."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        analysis_type, input_data, methodology, documents = await _read_form(
            request, limits
        )
    else:
        analysis_type, input_data = await _read_json(request)
        methodology, documents = None, []

    logger.info(
        "Received analyze request for type %s (%d supporting documents).",
        analysis_type,
        len(documents) + (1 if methodology else 0),
    )
    analysis_request = parse_analysis_request(
        analysis_type,
        input_data,
        methodology=methodology,
        additional_documents=documents,
    )
    outcome = await service.analyze(analysis_request)

    body = AnalysisResponse(
        content=outcome.content,
        analysis_id=outcome.analysis_id,
        warning=outcome.warning,
    ).model_dump(mode="json", by_alias=True)
    if body["warning"] is None:
        body.pop("warning")
    return JSONResponse(content=body)


@router.post("/export", dependencies=[Depends(require_api_key)])
async def export_analysis(
    payload: ExportRequest,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> Response:
    """Render analysis results into a downloadable Word document."""
    results = payload.analysis_results
    if results is None or results == "":
        raise ValidationError("No analysis results provided for export")
    if isinstance(results, str):
        results = coerce_result(results)
    if not isinstance(results, (dict, list)):
        raise ValidationError("Invalid format for analysis results provided")

    document = await asyncio.to_thread(render_docx, results, title=settings.export_title)
    filename = (
        f"strategic-analysis-{payload.analysis_type or 'export'}-"
        f"{int(time.time() * 1000)}.docx"
    )
    logger.info("Exported %s (%d bytes).", filename, len(document))
    return Response(
        content=document,
        media_type=DOCX_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _read_json(request: Request) -> tuple[Optional[str], Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("The request body could not be parsed as JSON.") from exc
    if not isinstance(body, dict):
        raise ValidationError("The request body must be a JSON object.")
    return body.get("analysisType"), body.get("inputData")


async def _read_form(
    request: Request, limits: UploadSettings
) -> tuple[Optional[str], Any, Optional[UploadedDocument], list[UploadedDocument]]:
    form = await request.form()
    try:
        analysis_type = form.get("analysisType")
        input_data = form.get("inputData")
        methodology = await _collect_uploads(form.getlist("methodology"), limits)
        documents = await _collect_uploads(form.getlist("additionalDocuments"), limits)
    finally:
        await form.close()

    if len(methodology) > 1:
        raise ValidationError("Only one methodology document may be uploaded.")
    if len(documents) > limits.max_additional_documents:
        raise ValidationError(
            f"At most {limits.max_additional_documents} additional documents "
            "may be uploaded.",
            details={"received": len(documents)},
        )
    if isinstance(analysis_type, UploadFile) or isinstance(input_data, UploadFile):
        raise ValidationError("analysisType and inputData must be form fields.")

    return analysis_type, input_data, (methodology[0] if methodology else None), documents


async def _collect_uploads(
    items: list[Any], limits: UploadSettings
) -> list[UploadedDocument]:
    uploads: list[UploadedDocument] = []
    for item in items:
        if not isinstance(item, UploadFile):
            raise ValidationError("Expected a file upload.")
        name = item.filename or "document.docx"
        if item.content_type != DOCX_MIME_TYPE:
            raise ValidationError(
                "Invalid file type. Only .docx files are allowed.",
                details={"document": name, "content_type": item.content_type},
            )
        content = await item.read(limits.max_bytes + 1)
        if len(content) > limits.max_bytes:
            raise ValidationError(
                "Uploaded file exceeds the size limit.",
                details={"document": name, "max_bytes": limits.max_bytes},
            )
        uploads.append(
            UploadedDocument(name=name, content_type=item.content_type, content=content)
        )
    return uploads


__all__ = ["router"]
