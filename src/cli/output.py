"""File writers for CLI results.

Layout of an output directory::

    chunk_001.md ... chunk_NNN.md   one file per chunk, YAML front matter + content
    manifest.json                   document info, options and per-chunk index
    quality.json                    RAG quality report (``process`` only)
"""

from __future__ import annotations

import json
from pathlib import Path

import yaml

from src.models.chunk import ChunkOptions, DocumentChunk
from src.models.quality import RAGQualityReport, StrategyComparison
from src.models.refined import RefinedContent
from src.utils.errors import DocFluxError


def chunk_file_name(index: int) -> str:
    return f"chunk_{index + 1:03d}.md"


def render_chunk(chunk: DocumentChunk) -> str:
    front_matter = {
        "id": chunk.id,
        "index": chunk.index,
        "strategy": chunk.strategy.value,
        "start": chunk.start_position,
        "end": chunk.end_position,
        "content_type": chunk.content_type,
        "heading_path": chunk.heading_path,
    }
    if chunk.annotations.summary:
        front_matter["summary"] = chunk.annotations.summary
    header = yaml.safe_dump(front_matter, allow_unicode=True, sort_keys=False)
    return f"---\n{header}---\n\n{chunk.content}\n"


def write_chunks(
    out_dir: Path,
    chunks: list[DocumentChunk],
    refined: RefinedContent,
    options: ChunkOptions,
) -> Path:
    """Write chunk files and ``manifest.json``; return the manifest path."""
    _ensure_dir(out_dir)
    entries = []
    for chunk in chunks:
        name = chunk_file_name(chunk.index)
        _write(out_dir / name, render_chunk(chunk))
        entries.append(
            {
                "file": name,
                "id": chunk.id,
                "index": chunk.index,
                "start": chunk.start_position,
                "end": chunk.end_position,
                "chars": len(chunk.content),
                "token_count": chunk.token_count,
                "content_type": chunk.content_type,
                "heading_path": chunk.heading_path,
                "quality_score": chunk.quality_score,
                "oversized": chunk.oversized,
            }
        )

    manifest = {
        "document": {
            "file_name": refined.metadata.file_name,
            "file_type": refined.metadata.file_type,
            "title": refined.metadata.title,
            "chars": len(refined.text),
            "sections": len(refined.sections),
            "structures": len(refined.structures),
        },
        "options": options.model_dump(mode="json"),
        "chunk_count": len(chunks),
        "chunks": entries,
        "warnings": list(refined.warnings),
    }
    manifest_path = out_dir / "manifest.json"
    _write(manifest_path, json.dumps(manifest, ensure_ascii=False, indent=2) + "\n")
    return manifest_path


def write_report(out_dir: Path, report: RAGQualityReport | StrategyComparison) -> Path:
    _ensure_dir(out_dir)
    path = out_dir / "quality.json"
    _write(path, report.model_dump_json(indent=2) + "\n")
    return path


def write_text(path: Path, text: str) -> Path:
    _ensure_dir(path.parent)
    _write(path, text)
    return path


def _ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DocFluxError(message=f"Cannot create output directory {path}: {exc}") from exc


def _write(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise DocFluxError(message=f"Cannot write {path}: {exc}") from exc
