"""Client wrapper for interacting with Google Gemini models."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable

import google.generativeai as genai
from google.api_core.exceptions import (
    GoogleAPIError,
    NotFound,
    ResourceExhausted,
    TooManyRequests,
)

from strategic_analysis.clients.base import GenerationOptions
from strategic_analysis.core.config import GeminiSettings
from strategic_analysis.core.errors import (
    ContentBlocked,
    UpstreamError,
    UpstreamRateLimited,
)


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
)

logger = logging.getLogger(__name__)


class GeminiModelError(UpstreamError):
    """Raised when Gemini cannot fulfill a request due to configuration issues."""


class GeminiClient:
    """Generate analysis text with the configured Gemini model."""

    def __init__(self, settings: GeminiSettings) -> None:
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    def default_options(self) -> GenerationOptions:
        return GenerationOptions(temperature=self._settings.temperature)

    async def generate(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> str:
        """Return the text of the first candidate for ``prompt``."""
        config = _generation_config(options or self.default_options())

        def _invoke() -> str:
            response = self._invoke_with_models(
                models=self._text_model_candidates(),
                env_var="GEMINI_MODEL_NAME",
                error_prefix="Gemini generate_content failed",
                call=lambda model: model.generate_content(
                    [{"role": "user", "parts": [prompt]}],
                    generation_config=config,
                ),
            )
            return extract_candidate_text(response)

        return await asyncio.to_thread(_invoke)

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        env_var: str,
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(model_name)
            try:
                return call(generative_model)
            except NotFound as exc:
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPIError as exc:
                raise translate_api_error(exc, error_prefix) from exc
            except Exception as exc:
                logger.exception(
                    "Gemini call on '%s' failed outside the API layer.", model_name
                )
                raise UpstreamError(f"{error_prefix}: {exc}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                "Gemini model '"
                f"{primary}"
                "' is not available. Update "
                f"{env_var} to a supported value."
            ) from last_not_found

        raise GeminiModelError(f"{error_prefix}: Unknown error invoking Gemini.")

    def _text_model_candidates(self) -> list[str]:
        return self._collect_candidates(self._settings.model_name, _TEXT_FALLBACKS)

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _generation_config(options: GenerationOptions) -> dict[str, Any]:
    config: dict[str, Any] = {"temperature": options.temperature}
    if options.response_mime_type:
        config["response_mime_type"] = options.response_mime_type
    if options.max_output_tokens:
        config["max_output_tokens"] = options.max_output_tokens
    return config


def translate_api_error(exc: GoogleAPIError, prefix: str) -> UpstreamError:
    """Map a Google API failure onto the service error taxonomy."""
    message = getattr(exc, "message", None) or str(exc)
    if isinstance(exc, (ResourceExhausted, TooManyRequests)):
        return UpstreamRateLimited(f"{prefix}: {message}")
    return UpstreamError(f"{prefix}: {message}")


def extract_candidate_text(response: Any) -> str:
    """Validate a generate_content response and return its text."""
    if response is None:
        raise UpstreamError("Invalid response structure from Gemini API (no response).")

    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None)
    if block_reason:
        reason = getattr(block_reason, "name", str(block_reason))
        logger.error("Gemini blocked the prompt: %s", reason)
        raise ContentBlocked(
            f"Content blocked by API: {reason}",
            details={"block_reason": reason},
        )

    candidates = list(getattr(response, "candidates", None) or [])
    if not candidates:
        raise UpstreamError(
            "Invalid response structure from Gemini API (no candidates)."
        )

    content = getattr(candidates[0], "content", None)
    parts = list(getattr(content, "parts", None) or [])
    text = getattr(parts[0], "text", None) if parts else None
    if not text:
        raise UpstreamError("Missing or invalid text content in Gemini API response.")
    return text


__all__ = [
    "GeminiClient",
    "GeminiModelError",
    "extract_candidate_text",
    "translate_api_error",
]
