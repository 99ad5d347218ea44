"""Prompt construction for the supported analysis kinds."""

from __future__ import annotations

import re
from dataclasses import dataclass
from textwrap import dedent
from typing import Iterable

from strategic_analysis.core.errors import ValidationError
from strategic_analysis.schemas import AnalysisKind, ExtractedDocument

MIN_STRATEGIC_TEXT_LENGTH = 150

_ROLE_MARKER = re.compile(r"(?:human|assistant)\s*:", re.IGNORECASE)
_LINE_FOOTNOTE = re.compile(r"\bLine\s*\d+\b")
_NONE_PROVIDED = "None provided."


@dataclass(frozen=True)
class KindPolicy:
    """Input requirements and the fixed system instruction for one kind."""

    system_prompt: str
    requires_text: bool = True
    min_length: int = MIN_STRATEGIC_TEXT_LENGTH
    strip_line_footnotes: bool = False


KIND_POLICIES: dict[AnalysisKind, KindPolicy] = {
    AnalysisKind.FUNDAMENTALS: KindPolicy(
        system_prompt=(
            "You are an AI assistant specialized in providing comprehensive "
            "strategic analyses. Based on the provided strategic text and "
            "additional documents, generate detailed insights and recommendations "
            "to enhance organizational performance. Ensure the output is a JSON "
            "object."
        ),
    ),
    AnalysisKind.STRATEGY: KindPolicy(
        system_prompt=(
            "Analyze the strategic text and additional content to formulate "
            "effective strategies that align with the organization's goals and "
            "market dynamics. Ensure the output is a JSON object."
        ),
    ),
    AnalysisKind.INSIGHTS: KindPolicy(
        system_prompt=(
            "Extract and elaborate on key insights from the strategic text and "
            "supplementary documents to inform decision-making and strategic "
            "planning. Ensure the output is a JSON object."
        ),
    ),
    AnalysisKind.CHALLENGE_ANALYSIS: KindPolicy(
        system_prompt=(
            "Analyze the provided strategic text, methodology, and additional "
            "content to generate a summary and 10 insightful points addressing "
            "the core challenges. Ensure the output is a JSON object."
        ),
    ),
    AnalysisKind.STRATEGIC_CALIBRATION: KindPolicy(
        system_prompt=(
            "Evaluate the strategic text, considering any provided methodology "
            "and documents, to calibrate strategies ensuring alignment with "
            "organizational objectives and market conditions. Produce "
            "recommendations. Ensure the output is a JSON object."
        ),
        strip_line_footnotes=True,
    ),
}


def resolve_kind(kind: AnalysisKind | str) -> AnalysisKind:
    """Return the enum member for ``kind`` or raise ``ValidationError``."""
    if isinstance(kind, AnalysisKind):
        return kind
    try:
        return AnalysisKind(kind)
    except ValueError as exc:
        raise ValidationError(
            "Invalid analysis type provided",
            details={"allowed": AnalysisKind.values()},
        ) from exc


def strip_role_markers(text: str) -> str:
    """Remove role-delimiter look-alikes so user text cannot open a new turn."""
    cleaned = text
    while True:
        stripped = _ROLE_MARKER.sub("", cleaned)
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def sanitize_strategic_text(text: str, *, strip_line_footnotes: bool = False) -> str:
    cleaned = strip_role_markers(text)
    if strip_line_footnotes:
        cleaned = _LINE_FOOTNOTE.sub("", cleaned)
    return cleaned.strip()


def validate_strategic_text(kind: AnalysisKind, text: str | None) -> None:
    policy = KIND_POLICIES[kind]
    if not policy.requires_text:
        return
    if not text or not text.strip():
        raise ValidationError(f"Strategic text is required for {kind.value}")
    if len(text.strip()) < policy.min_length:
        raise ValidationError(
            f"Strategic text must be at least {policy.min_length} characters",
            details={"min_length": policy.min_length, "length": len(text.strip())},
        )


def _supporting_text(text: str | None) -> str:
    cleaned = strip_role_markers(text or "").strip()
    return cleaned or _NONE_PROVIDED


def format_documents(documents: Iterable[ExtractedDocument]) -> str:
    """Label each document so the model can tell them apart."""
    blocks = [
        f"--- Document: {document.name} ---\n{document.text.strip()}"
        for document in documents
    ]
    return "\n\n".join(blocks)


def build_prompt(
    kind: AnalysisKind | str,
    strategic_text: str | None,
    *,
    methodology_text: str | None = None,
    additional_documents_text: str | None = None,
    mission_statement: str | None = None,
) -> str:
    """Build the single prompt string sent to the generation API."""
    resolved = resolve_kind(kind)
    validate_strategic_text(resolved, strategic_text)
    policy = KIND_POLICIES[resolved]
    sanitized = sanitize_strategic_text(
        strategic_text or "", strip_line_footnotes=policy.strip_line_footnotes
    )

    if resolved is AnalysisKind.CHALLENGE_ANALYSIS:
        brief, instructions = _CHALLENGE_BRIEF, _CHALLENGE_INSTRUCTIONS
    elif resolved is AnalysisKind.STRATEGIC_CALIBRATION:
        brief, instructions = _CALIBRATION_BRIEF, _CALIBRATION_INSTRUCTIONS
    else:
        brief, instructions = _GENERIC_BRIEF, _generic_instructions(resolved)

    sections = [
        policy.system_prompt,
        brief,
        "Methodology Document Content:\n"
        f"{_supporting_text(methodology_text)}",
        "Additional Documents Content:\n"
        f"{_supporting_text(additional_documents_text)}",
        f"Strategic Text:\n{sanitized}",
        instructions,
    ]
    mission = strip_role_markers(mission_statement or "").strip()
    if mission:
        sections.insert(-2, f"Mission Statement:\n{mission}")
    return "\n\n".join(section.strip() for section in sections) + "\n"


_GENERIC_BRIEF = dedent(
    """
    Base the analysis only on the strategic text and any supporting documents
    below. Reference the organization's own language where possible.
    """
)


def _generic_instructions(kind: AnalysisKind) -> str:
    return dedent(
        f"""
        Instructions: Generate the {kind.value} analysis based on the text
        provided. Return the result as a JSON object only, following this
        structure example:
        {{
          "{kind.value}": "Your {kind.value}..."
        }}
        """
    )


_CHALLENGE_BRIEF = dedent(
    """
    You are a strategic consultant analyzing exclusively the specific challenges
    described in the strategic text below. Do not produce a generic or
    superficial analysis. Focus only on the strategic text and the uploaded
    documents, articulate the challenge and show how to address it. In every
    section, quote from or directly reference the lines in the text.

    Provide comprehensive analysis with:
        - Minimum 3 paragraphs per explanation
        - Specific examples from the text
        - Detailed implementation suggestions
        - Connection to broader context
    """
)

_CHALLENGE_INSTRUCTIONS = dedent(
    """
    Instructions: Provide a challenge-focused strategic analysis with these
    sections in valid JSON format only. Do not include any text before or after
    the JSON object. Adhere strictly to the 10-item total limit.

    1. Opportunities: up to 5 opportunities derived from the text and context.
       Each item has a concise "headline" and an "explanation" of at least
       3 sentences (~50 words).
    2. Core_Strategic_Insights: up to 5 core strategic insights. Each item has a
       concise "headline" and an "explanation" of at least 3 sentences
       (~50 words). Do not include a "type" field, and do not repeat the words
       "headline" or "explanation" inside the values.

    Respond with valid JSON only, following this structure example:
    {
      "Opportunities": [
        {"headline": "Opportunity headline", "explanation": "Explanation text..."}
      ],
      "Core_Strategic_Insights": [
        {"headline": "Insight headline", "explanation": "Explanation text..."}
      ]
    }
    """
)

_CALIBRATION_BRIEF = dedent(
    """
    You are a strategic consultant working exclusively for the organization
    mentioned in the strategic text, analyzing the specific challenge or
    challenges it faces. Do not produce a generic or superficial analysis. If the
    text includes a specific challenge, show how the organization may address
    it. In every section, quote from or directly reference the lines in the
    text. Do not ignore the unique value proposition as stated.
    """
)

_CALIBRATION_INSTRUCTIONS = dedent(
    """
    Instructions: Return a single JSON object with these keys only:

    1. Background_Context: identify the specific organizational unit discussed
       and cite the challenge(s); no more than 5 sentences and 90 words.
    2. Vision: the desired reality within 5 years if the organization
       succeeds, using the organization's own language where it appears.
    3. Mission: what the organization should do to serve the vision; at least
       4 sentences derived from the text.
    4. Strategy: 8 key insights. Each object has exactly two properties:
       "insight" (a bold-style headline without the word "Insight") and
       "implication" (a 2 or 3 sentence description).
    5. Values: 4 values explicitly mentioned or strongly implied.
    6. Unique_Value_Proposition: 4 propositions referencing specific
       capabilities, assets or advantages mentioned in the text.
    7. Immediate_Actions: clear objectives, scope and a task breakdown.
    8. Success_Metrics: how progress will be measured and the key indicators.
    9. Structure: 1 to 3 insights on aligning the organization with the
       challenge.

    Do not make generic statements about organizational strategy. Do not emit
    other fields called "explanation" or "headline". Do not wrap the JSON in
    markdown or add commentary. Respond with valid JSON only, for example:
    {
      "Background_Context": "...",
      "Vision": "...",
      "Mission": "...",
      "Strategy": [{"insight": "...", "implication": "..."}],
      "Values": ["..."],
      "Unique_Value_Proposition": ["..."],
      "Immediate_Actions": ["..."],
      "Success_Metrics": ["..."],
      "Structure": ["..."]
    }
    """
)


__all__ = [
    "KIND_POLICIES",
    "KindPolicy",
    "MIN_STRATEGIC_TEXT_LENGTH",
    "build_prompt",
    "format_documents",
    "resolve_kind",
    "sanitize_strategic_text",
    "strip_role_markers",
    "validate_strategic_text",
]
