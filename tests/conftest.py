"""Shared pytest fixtures for the docflux test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog
from structlog.testing import LogCapture

from src.interfaces.text_completion_service import ITextCompletionService
from src.models.chunk import DocumentChunk
from src.models.completion import ContentSummary
from src.models.raw import FileMetadata, RawContent


@pytest.fixture(autouse=True, scope="session")
def _captured_logs() -> LogCapture:
    """Keep structlog events in memory for the whole session."""
    capture = LogCapture()
    structlog.configure(processors=[capture])
    return capture


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

SAMPLE_MARKDOWN = """\
# Retrieval Pipeline Guide

This guide explains how documents move through the retrieval pipeline. \
Each stage produces an immutable record for the next one.

## Refinement

Refinement removes extraction noise and rebuilds markdown structure. \
Headings, lists and tables are normalized before chunking starts.

- Remove artificial headings
- Rebuild tables from structured data
- Normalize heading levels

## Chunking

Chunking splits the refined text into overlapping windows. \
The strategy decides where boundaries fall and how large each chunk grows.

```python
def split(text):
    return text.split("\\n\\n")
```

## Evaluation

Evaluation scores every chunk set along six dimensions. \
The composite score ranks strategies against each other.
"""

SAMPLE_TEXT = (
    "Document processing starts with extraction. Readers turn files into raw text "
    "and structured blocks.\n\n"
    "Refinement cleans the extracted text. It removes page numbers, running headers "
    "and other noise that readers leave behind.\n\n"
    "Chunking divides refined text into pieces sized for embedding models. Overlap "
    "between neighbouring pieces keeps context available at the boundaries.\n\n"
    "Evaluation measures how well the chunks will serve retrieval. Scores cover "
    "completeness, density, structure and boundaries.\n"
)


@pytest.fixture
def sample_markdown() -> str:
    """A small markdown document with headings, a list and a code block."""
    return SAMPLE_MARKDOWN


@pytest.fixture
def sample_text() -> str:
    """Four plain-text paragraphs without markdown structure."""
    return SAMPLE_TEXT


@pytest.fixture
def long_text() -> str:
    """Sixty distinct numbered sentences in paragraphs of three."""
    paragraphs = []
    for p in range(20):
        sentences = [
            f"Paragraph {p} sentence {s} describes item number {p * 3 + s} in detail."
            for s in range(3)
        ]
        paragraphs.append(" ".join(sentences))
    return "\n\n".join(paragraphs)


def make_raw(text: str, file_name: str = "sample.md", **kwargs) -> RawContent:
    """Build a RawContent with minimal file metadata."""
    return RawContent(
        id=kwargs.pop("id", "raw-001"),
        text=text,
        file=FileMetadata(
            file_name=file_name,
            file_path=f"/tmp/{file_name}",
            extension="." + file_name.rsplit(".", 1)[-1],
            size=len(text.encode("utf-8")),
        ),
        **kwargs,
    )


@pytest.fixture
def sample_raw(sample_markdown: str) -> RawContent:
    return make_raw(sample_markdown)


def make_chunk(content: str, index: int = 0, **kwargs) -> DocumentChunk:
    """Build a DocumentChunk with a deterministic id."""
    return DocumentChunk(id=f"chunk-{index}", index=index, content=content, **kwargs)


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_completion_service() -> MagicMock:
    """Return a mock ITextCompletionService that always succeeds."""
    service = MagicMock(spec=ITextCompletionService)
    service.is_available.return_value = True
    service.get_provider_name.return_value = "mock-completion"
    service.generate = AsyncMock(return_value="This chunk belongs to the refinement chapter.")
    service.summarize = AsyncMock(
        return_value=ContentSummary(
            summary="Short summary.",
            keywords=["refinement", "chunking"],
            confidence=0.9,
            original_length=100,
        )
    )
    return service


@pytest.fixture
def text_file(tmp_path: Path, sample_markdown: str) -> Path:
    """Write the sample markdown document to a temp file and return its path."""
    path = tmp_path / "guide.md"
    path.write_text(sample_markdown, encoding="utf-8")
    return path


@pytest.fixture
def raw_factory():
    """Return :func:`make_raw` for tests that build several documents."""
    return make_raw


@pytest.fixture
def chunk_factory():
    """Return :func:`make_chunk` for tests that build chunk lists."""
    return make_chunk
