"""Reader for plain-text and markdown files.

Produces the :class:`~src.models.raw.RawContent` consumed by the refiner.
Other formats (PDF, DOCX, HTML, ...) are read by external extractors that
hand over a ready ``RawContent``.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path

import structlog

from src.models.raw import FileMetadata, RawContent
from src.utils.errors import ExtractionError, InputValidationError

logger = structlog.get_logger(logger_name=__name__)

SUPPORTED_EXTENSIONS = frozenset({".txt", ".md", ".markdown"})


class TextReader:
    """Reads ``.txt``, ``.md`` and ``.markdown`` files as UTF-8.

    Undecodable bytes are replaced rather than rejected, and a warning is
    recorded on the result.
    """

    def can_read(self, path: str | Path) -> bool:
        return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS

    def read(self, path: str | Path) -> RawContent:
        """Read *path* into a :class:`RawContent`.

        Raises
        ------
        InputValidationError
            If *path* is empty.
        ExtractionError
            If the extension is unsupported or the file cannot be read.
        """
        if not str(path).strip():
            raise InputValidationError(message="File path is required", stage="extraction")

        file_path = Path(path)
        if not self.can_read(file_path):
            raise ExtractionError(
                message=f"Unsupported file extension: {file_path.suffix or '(none)'}",
                file_name=file_path.name,
            )

        try:
            data = file_path.read_bytes()
            stat = file_path.stat()
        except OSError as exc:
            raise ExtractionError(
                message=f"Cannot read file: {exc}", file_name=file_path.name
            ) from exc

        warnings: list[str] = []
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            text = data.decode("utf-8", errors="replace")
            warnings.append("File is not valid UTF-8; undecodable bytes were replaced")
        text = text.lstrip("\ufeff")

        raw = RawContent(
            id=hashlib.sha256(data).hexdigest()[:16],
            text=text,
            file=FileMetadata(
                file_name=file_path.name,
                file_path=str(file_path.resolve()),
                extension=file_path.suffix.lower(),
                size=stat.st_size,
                created_at=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ),
            warnings=warnings,
        )
        logger.info(
            "file_read",
            file_name=file_path.name,
            size=stat.st_size,
            chars=len(text),
            warnings=len(warnings),
        )
        return raw
