"""Recover JSON payloads from free-form model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

PLAIN_TEXT_KEY = "Analysis Results"

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")


def extract_json(text: Any) -> Any | None:
    """Return the JSON value embedded in ``text``, or ``None`` when absent.

    Strategies, first success wins: a ```json fenced block, then the span from
    the first ``{`` to the last ``}``. Parse failures only move on to the next
    strategy.
    """
    if not text or not isinstance(text, str):
        return None

    fenced = _FENCED_JSON.search(text)
    if fenced and fenced.group(1):
        try:
            return json.loads(fenced.group(1))
        except (ValueError, RecursionError):
            logger.warning("Fenced JSON block did not parse; trying brace span.")

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None

    try:
        return json.loads(text[start : end + 1])
    except (ValueError, RecursionError) as exc:
        logger.warning("Brace-delimited span did not parse: %s", exc)
        return None


def wrap_plain_text(text: str) -> dict[str, str]:
    return {PLAIN_TEXT_KEY: text}


def coerce_result(value: str) -> Any:
    """Parse a string result, falling back to the plain-text wrapper."""
    extracted = extract_json(value)
    if extracted is None:
        return wrap_plain_text(value)
    return extracted


__all__ = ["PLAIN_TEXT_KEY", "coerce_result", "extract_json", "wrap_plain_text"]
