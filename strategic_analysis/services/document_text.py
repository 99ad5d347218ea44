"""Plain-text extraction for uploaded Word documents."""

from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from typing import Iterable

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from strategic_analysis.core.errors import DocumentExtractionError
from strategic_analysis.schemas import ExtractedDocument, UploadedDocument

logger = logging.getLogger(__name__)


class DocxTextExtractor:
    """Pull paragraph and table text out of ``.docx`` payloads."""

    def extract_text(self, content: bytes) -> str:
        document = Document(io.BytesIO(content))
        lines: list[str] = []

        for paragraph in document.paragraphs:
            text = " ".join(paragraph.text.split()).strip()
            if text:
                lines.append(text)

        for table in document.tables:
            for row in table.rows:
                cell_values = [" ".join(cell.text.split()).strip() for cell in row.cells]
                row_text = " | ".join([value for value in cell_values if value])
                if row_text:
                    lines.append(row_text)

        return "\n".join(lines).strip()

    async def extract(self, upload: UploadedDocument) -> ExtractedDocument:
        """Extract ``upload`` off the event loop, wrapping parse failures."""
        logger.info("Reading uploaded document %s (%d bytes).", upload.name, len(upload.content))
        try:
            text = await asyncio.to_thread(self.extract_text, upload.content)
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise DocumentExtractionError(
                f"Failed to read uploaded document ({upload.name}): {exc}",
                details={"document": upload.name},
            ) from exc
        return ExtractedDocument(name=upload.name, text=text)

    async def extract_all(
        self, uploads: Iterable[UploadedDocument]
    ) -> list[ExtractedDocument]:
        return [await self.extract(upload) for upload in uploads]


__all__ = ["DocxTextExtractor"]
