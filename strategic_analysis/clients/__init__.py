"""Expose constructed client wrappers."""

from .base import GenerationOptions, TextGenerator
from .gemini import GeminiClient
from .methodology_store import MethodologyStore

__all__ = [
    "GeminiClient",
    "GenerationOptions",
    "MethodologyStore",
    "TextGenerator",
]
