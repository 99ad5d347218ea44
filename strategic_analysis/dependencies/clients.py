"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from fastapi import Depends

from strategic_analysis.clients import (
    GeminiClient,
    GenerationOptions,
    MethodologyStore,
    TextGenerator,
)
from strategic_analysis.core.config import AppSettings, get_settings
from strategic_analysis.dependencies.config import get_app_settings
from strategic_analysis.services import (
    AnalysisService,
    DocxTextExtractor,
    JobQueue,
    RequestThrottle,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_gemini_client() -> GeminiClient:
    """Provide Gemini client instance."""
    settings = _settings()
    return GeminiClient(settings.gemini)


def get_text_generator() -> TextGenerator:
    """Provide the generator used for analyses."""
    return get_gemini_client()


@lru_cache()
def get_job_queue() -> JobQueue:
    """Provide the process-wide queue guarding the generation API."""
    settings = _settings()
    return JobQueue(settings.queue.to_config())


@lru_cache()
def get_methodology_store() -> MethodologyStore:
    """Provide the single-slot methodology store."""
    settings = _settings()
    return MethodologyStore(settings.methodology_dir)


@lru_cache()
def get_document_extractor() -> DocxTextExtractor:
    return DocxTextExtractor()


@lru_cache()
def get_request_throttle() -> RequestThrottle:
    """Provide the per-caller throttle for the analyze endpoint."""
    settings = _settings()
    return RequestThrottle(
        limit=settings.throttle.limit,
        window_seconds=settings.throttle.window_seconds,
    )


def get_analysis_service(
    generator: TextGenerator = Depends(get_text_generator),
    queue: JobQueue = Depends(get_job_queue),
    methodology_store: MethodologyStore = Depends(get_methodology_store),
    extractor: DocxTextExtractor = Depends(get_document_extractor),
    settings: AppSettings = Depends(get_app_settings),
) -> AnalysisService:
    """Build an analysis service from the shared collaborators."""
    return AnalysisService(
        generator=generator,
        queue=queue,
        methodology_store=methodology_store,
        extractor=extractor,
        options=GenerationOptions(temperature=settings.gemini.temperature),
    )


__all__ = [
    "get_analysis_service",
    "get_document_extractor",
    "get_gemini_client",
    "get_job_queue",
    "get_methodology_store",
    "get_request_throttle",
    "get_text_generator",
]
