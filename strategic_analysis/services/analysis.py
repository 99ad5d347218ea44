"""
Request validation and orchestration for strategic analyses.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from strategic_analysis.clients.base import GenerationOptions, TextGenerator
from strategic_analysis.clients.methodology_store import MethodologyStore
from strategic_analysis.core.errors import ValidationError
from strategic_analysis.schemas import AnalysisRequest, UploadedDocument
from strategic_analysis.services.document_text import DocxTextExtractor
from strategic_analysis.services.job_queue import JobQueue
from strategic_analysis.services.prompt_builder import (
    KIND_POLICIES,
    MIN_STRATEGIC_TEXT_LENGTH,
    build_prompt,
    format_documents,
    resolve_kind,
)
from strategic_analysis.services.response_extractor import extract_json

logger = logging.getLogger(__name__)

UNPARSED_RESPONSE_WARNING = "Could not parse JSON from response, returning raw text."


@dataclass
class AnalysisOutcome:
    """Result of one analysis, ready to serialise for the client."""

    content: Any
    analysis_id: str
    warning: Optional[str] = None


def _coerce_input_data(input_data: Any) -> dict[str, Any]:
    if isinstance(input_data, str):
        try:
            input_data = json.loads(input_data)
        except ValueError as exc:
            raise ValidationError("Invalid JSON format in inputData field") from exc
    if not input_data or not isinstance(input_data, dict):
        raise ValidationError("Input data is required and must be an object")
    return input_data


def parse_analysis_request(
    analysis_type: Optional[str],
    input_data: Any,
    *,
    methodology: Optional[UploadedDocument] = None,
    additional_documents: Sequence[UploadedDocument] = (),
) -> AnalysisRequest:
    """Validate raw request fields and build an ``AnalysisRequest``.

    Checks run in a fixed order so the first failing rule decides the message:
    type present, input shape, text length, type recognised, text present.
    """
    if not analysis_type:
        raise ValidationError("Analysis type is required")

    data = _coerce_input_data(input_data)
    strategic_text = data.get("strategicText")
    if strategic_text is not None and not isinstance(strategic_text, str):
        raise ValidationError("strategicText must be a string")

    if strategic_text and len(strategic_text.strip()) < MIN_STRATEGIC_TEXT_LENGTH:
        raise ValidationError(
            f"Strategic text must be at least {MIN_STRATEGIC_TEXT_LENGTH} "
            "characters if provided"
        )

    kind = resolve_kind(analysis_type)
    if KIND_POLICIES[kind].requires_text and not (strategic_text or "").strip():
        raise ValidationError(f"Strategic text is required for {kind.value}")

    mission_statement = data.get("missionStatement")
    if mission_statement is not None and not isinstance(mission_statement, str):
        raise ValidationError("missionStatement must be a string")

    return AnalysisRequest(
        kind=kind,
        strategic_text=strategic_text or "",
        mission_statement=mission_statement,
        methodology=methodology,
        additional_documents=list(additional_documents),
    )


class AnalysisService:
    """Turn a validated request into a model analysis through the job queue."""

    def __init__(
        self,
        *,
        generator: TextGenerator,
        queue: JobQueue,
        methodology_store: MethodologyStore,
        extractor: Optional[DocxTextExtractor] = None,
        options: Optional[GenerationOptions] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._generator = generator
        self._queue = queue
        self._methodology_store = methodology_store
        self._extractor = extractor or DocxTextExtractor()
        self._options = options or GenerationOptions()
        self._clock = clock

    async def analyze(self, request: AnalysisRequest) -> AnalysisOutcome:
        methodology_text: Optional[str] = None
        if request.methodology is not None:
            # A methodology that fails to parse never replaces the stored one.
            methodology_text = (await self._extractor.extract(request.methodology)).text
            stored = await asyncio.to_thread(
                self._methodology_store.save, request.methodology.content
            )
            logger.info(
                "Stored methodology %s (%d bytes).",
                request.methodology.name,
                stored.size,
            )

        documents = await self._extractor.extract_all(request.additional_documents)

        prompt = build_prompt(
            request.kind,
            request.strategic_text,
            methodology_text=methodology_text,
            additional_documents_text=format_documents(documents) or None,
            mission_statement=request.mission_statement,
        )

        job_id = f"{request.kind.value}-{int(self._clock() * 1000)}"
        logger.info(
            "Submitting %s analysis as job %s (%d supporting documents).",
            request.kind.value,
            job_id,
            len(documents),
        )
        raw = await self._queue.submit(
            lambda: self._generator.generate(prompt, self._options), job_id
        )

        parsed = extract_json(raw)
        if parsed is None:
            logger.warning("[job %s] Response was not JSON; returning raw text.", job_id)
            return AnalysisOutcome(
                content=raw, analysis_id=job_id, warning=UNPARSED_RESPONSE_WARNING
            )
        return AnalysisOutcome(content=parsed, analysis_id=job_id)


__all__ = [
    "AnalysisOutcome",
    "AnalysisService",
    "UNPARSED_RESPONSE_WARNING",
    "parse_analysis_request",
]
