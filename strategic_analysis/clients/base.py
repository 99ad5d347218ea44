"""Capability interface for text generation providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation knobs understood by every provider."""

    temperature: float = 0.5
    response_mime_type: Optional[str] = "application/json"
    max_output_tokens: Optional[int] = None


class TextGenerator(Protocol):
    """Anything that turns a prompt into raw model text."""

    async def generate(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> str:
        ...


__all__ = ["GenerationOptions", "TextGenerator"]
