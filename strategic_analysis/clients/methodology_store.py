"""Single-slot file storage for the current methodology document."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from strategic_analysis.schemas import MethodologyMetadata

METHODOLOGY_FILENAME = "current-methodology.docx"


class MethodologyStore:
    """Keep exactly one methodology file; every save replaces the last."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        if not self._directory.exists():
            self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._directory / METHODOLOGY_FILENAME

    def save(self, content: bytes) -> MethodologyMetadata:
        """Atomically replace the stored methodology with ``content``."""
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return self._describe(self.path)

    def current(self) -> Optional[MethodologyMetadata]:
        """Describe the stored file, or ``None`` when nothing was uploaded."""
        if not self.path.exists():
            return None
        return self._describe(self.path)

    @staticmethod
    def _describe(path: Path) -> MethodologyMetadata:
        stats = path.stat()
        return MethodologyMetadata(
            name=METHODOLOGY_FILENAME,
            upload_date=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
            size=stats.st_size,
            custom=True,
        )


__all__ = ["METHODOLOGY_FILENAME", "MethodologyStore"]
