"""
Render analysis results into a styled Word document.

Results are first classified into a small tagged tree (``Scalar``,
``ListNode``, ``PairItem``, ``GenericObject``), then flattened into styled
``Block`` values, and finally written with python-docx. Keeping the middle
step pure lets each variant be checked without opening a document.

List items whose fields match an entry of ``PAIR_SHAPES`` render as a bold
title line followed by a body line. The field names mirror the shapes the
prompts ask the model to produce (strategic calibration ``Strategy`` items and
challenge analysis ``Opportunities`` / ``Core_Strategic_Insights`` items).
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, Optional, Union

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor, Twips

from strategic_analysis.services.response_extractor import PLAIN_TEXT_KEY

INDENT_STEP = 360
SKIPPED_KEYS = frozenset({"Immediate_Actions"})
UNTITLED_KEYS = frozenset({PLAIN_TEXT_KEY})

_DEFAULT_SIZE = 24
_EMPHASIS_SIZE = 26
_DEFAULT_COLOR = "333333"
_EMPTY_COLOR = "888888"
_BULLET_STYLES = ("List Bullet", "List Bullet 2", "List Bullet 3")


@dataclass(frozen=True)
class PairShape:
    """Field names of a two-part list item."""

    title_field: str
    body_field: str

    def matches(self, value: dict[str, Any]) -> bool:
        return bool(value.get(self.title_field)) and bool(value.get(self.body_field))


PAIR_SHAPES: tuple[PairShape, ...] = (
    PairShape("insight", "implication"),
    PairShape("headline", "explanation"),
)


@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class PairItem:
    title: str
    body: str
    shape: PairShape


@dataclass(frozen=True)
class ListNode:
    items: tuple["RenderNode", ...]


@dataclass(frozen=True)
class GenericObject:
    entries: tuple[tuple[str, Optional["RenderNode"]], ...]


RenderNode = Union[Scalar, PairItem, ListNode, GenericObject]


@dataclass(frozen=True)
class Block:
    """One styled paragraph of the exported document."""

    text: str
    indent: int = 0
    bold: bool = False
    size: Optional[int] = _DEFAULT_SIZE
    color: str = _DEFAULT_COLOR
    bullet_level: Optional[int] = None
    style: Optional[str] = None
    space_before: int = 100
    space_after: int = 100


def classify(value: Any) -> RenderNode:
    """Build the tagged tree for a JSON value."""
    if isinstance(value, dict):
        return GenericObject(
            entries=tuple(
                (str(key), None if child is None else classify(child))
                for key, child in value.items()
            )
        )
    if isinstance(value, list):
        return ListNode(
            items=tuple(_classify_item(item) for item in value if item is not None)
        )
    return Scalar(value)


def _classify_item(item: Any) -> RenderNode:
    if isinstance(item, dict):
        for shape in PAIR_SHAPES:
            if shape.matches(item):
                return PairItem(
                    title=_scalar_text(item[shape.title_field]),
                    body=_scalar_text(item[shape.body_field]),
                    shape=shape,
                )
    return classify(item)


def heading_text(key: str) -> str:
    """``core_strategic_insights`` -> ``Core Strategic Insights``."""
    words = key.replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_blocks(node: RenderNode, depth: int = 0) -> list[Block]:
    """Flatten ``node`` into styled blocks, indenting one step per level."""
    indent = depth * INDENT_STEP
    blocks: list[Block] = []

    if isinstance(node, GenericObject):
        for key, child in node.entries:
            if key in SKIPPED_KEYS:
                continue
            if key not in UNTITLED_KEYS:
                blocks.append(_heading_block(key, depth, indent))
            if child is None:
                blocks.append(
                    Block("(empty)", indent=indent + INDENT_STEP, color=_EMPTY_COLOR)
                )
            else:
                blocks.extend(render_blocks(child, depth + 1))
    elif isinstance(node, ListNode):
        for item in node.items:
            if isinstance(item, PairItem):
                blocks.append(
                    Block(
                        item.title,
                        indent=indent + INDENT_STEP,
                        bold=True,
                        size=_EMPHASIS_SIZE,
                        space_before=200,
                        space_after=50,
                    )
                )
                blocks.append(Block(item.body, indent=indent + INDENT_STEP))
            elif isinstance(item, Scalar):
                blocks.append(
                    Block(
                        _scalar_text(item.value),
                        indent=indent + INDENT_STEP,
                        bullet_level=depth % 9,
                    )
                )
            else:
                blocks.extend(render_blocks(item, depth + 1))
    elif isinstance(node, PairItem):
        blocks.append(Block(node.title, indent=indent, bold=True, size=_EMPHASIS_SIZE))
        blocks.append(Block(node.body, indent=indent))
    else:
        blocks.append(Block(_scalar_text(node.value), indent=indent))

    return blocks


def _heading_block(key: str, depth: int, indent: int) -> Block:
    if depth == 0:
        style: Optional[str] = "Heading 1"
    elif depth == 1:
        style = "Heading 2"
    else:
        style = None
    return Block(
        heading_text(key),
        indent=indent,
        bold=depth > 1,
        size=_EMPHASIS_SIZE if depth > 1 else None,
        style=style,
        space_before=300,
        space_after=100,
    )


def _apply_styles(document: Any) -> None:
    for name, size, color in (
        ("Heading 1", 18, "333333"),
        ("Heading 2", 16, "444444"),
        ("Normal", 12, "555555"),
    ):
        font = document.styles[name].font
        font.size = Pt(size)
        font.color.rgb = RGBColor.from_string(color)
        if name != "Normal":
            font.bold = True


def _write_block(document: Any, block: Block) -> None:
    style = block.style
    if style is None and block.bullet_level is not None:
        style = _BULLET_STYLES[min(block.bullet_level, len(_BULLET_STYLES) - 1)]
    paragraph = document.add_paragraph(style=style)
    run = paragraph.add_run(block.text)
    if block.bold:
        run.bold = True
    if block.size is not None:
        run.font.size = Pt(block.size / 2)
    if block.style is None:
        run.font.color.rgb = RGBColor.from_string(block.color)

    paragraph_format = paragraph.paragraph_format
    paragraph_format.left_indent = Twips(block.indent)
    paragraph_format.space_before = Twips(block.space_before)
    paragraph_format.space_after = Twips(block.space_after)
    paragraph_format.keep_together = True


def render_docx(result: Any, *, title: str) -> bytes:
    """Render ``result`` under a centered ``title`` and return the .docx bytes."""
    document = Document()
    _apply_styles(document)

    heading = document.add_heading(title, level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    heading.paragraph_format.space_after = Twips(400)

    for block in render_blocks(classify(result)):
        _write_block(document, block)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


__all__ = [
    "Block",
    "GenericObject",
    "ListNode",
    "PAIR_SHAPES",
    "PairItem",
    "PairShape",
    "RenderNode",
    "Scalar",
    "classify",
    "heading_text",
    "render_blocks",
    "render_docx",
]
