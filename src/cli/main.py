"""Command-line interface for docflux.

Usage::

    python -m src.cli refine report.md -o report.refined.md
    python -m src.cli chunk report.md -s semantic --max-size 800 -o out/report
    python -m src.cli process report.md --enhance
    python -m src.cli evaluate report.md --strategies sentence,paragraph,semantic

Every command reads a ``.txt``/``.md`` file, refines it, and then does
progressively more work.  Defaults come from ``config/config.yaml`` and
the environment (see :mod:`src.config`); command-line flags win.

Exit code is 0 on success and 1 when a :class:`~src.utils.errors.DocFluxError`
is raised; the error is printed to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError

from src.cli import output
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.text_completion_service import ITextCompletionService
from src.models.chunk import ChunkingStrategy, ChunkOptions
from src.models.refined import RefinedContent, RefineOptions
from src.pipeline.document_pipeline import DocumentPipeline
from src.readers.text_reader import TextReader
from src.services.chunking.chunk_service import ChunkService
from src.services.enhancement.chunk_enhancer import ChunkEnhancer
from src.services.quality.analyzer import RAGQualityAnalyzer
from src.services.refinement.refiner import DocumentRefiner
from src.utils.errors import DocFluxError, InputValidationError, ProviderUnavailableError
from src.utils.logging import configure_logging
from src.utils.scoring import score_to_grade

_COMPARABLE_STRATEGIES = [s.value for s in ChunkingStrategy if s is not ChunkingStrategy.AUTO]


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def _build_completion_service(app_settings: Settings) -> ITextCompletionService | None:
    """Select the first configured completion backend.

    Priority: OpenAI-compatible (API key) -> Ollama (base URL) -> none.
    """
    if app_settings.openai_api_key:
        from src.providers.completion.openai_completion_service import (
            OpenAICompletionService,
        )

        return OpenAICompletionService(app_settings)
    if app_settings.ollama_base_url:
        from src.providers.completion.ollama_completion_service import (
            OllamaCompletionService,
        )

        return OllamaCompletionService(app_settings)
    return None


def _build_refiner(app_settings: Settings, use_llm: bool) -> DocumentRefiner:
    converter = None
    image_to_text = None
    if use_llm:
        from src.providers.markdown.llm_markdown_converter import LLMMarkdownConverter
        from src.providers.vision.llm_image_to_text import LLMImageToTextService

        converter = LLMMarkdownConverter(_build_completion_service(app_settings))
        image_to_text = LLMImageToTextService(app_settings)
    return DocumentRefiner(markdown_converter=converter, image_to_text=image_to_text)


def _build_pipeline(app_settings: Settings, use_llm: bool, enhance: bool) -> DocumentPipeline:
    enhancer = None
    if enhance:
        completion_service = _build_completion_service(app_settings)
        if completion_service is None:
            raise ProviderUnavailableError(
                "--enhance needs OPENAI_API_KEY or OLLAMA_BASE_URL", stage="enhancement"
            )
        enhancer = ChunkEnhancer(
            completion_service,
            max_concurrent=app_settings.enhancement_max_concurrent,
        )
    return DocumentPipeline(
        refiner=_build_refiner(app_settings, use_llm),
        chunk_service=ChunkService(),
        analyzer=RAGQualityAnalyzer(),
        enhancer=enhancer,
    )


def _refine_options(config: dict, use_llm: bool) -> RefineOptions:
    values = dict(config.get("refinement") or {})
    values["use_llm"] = use_llm
    try:
        return RefineOptions(**values)
    except ValidationError as exc:
        raise InputValidationError(message=f"Invalid refinement options: {exc}") from exc


def _chunk_options(
    app_settings: Settings, config: dict, args: argparse.Namespace
) -> ChunkOptions:
    values = dict(config.get("chunking") or {})
    overrides = {
        "strategy": getattr(args, "strategy", None),
        "max_chunk_size": getattr(args, "max_size", None),
        "min_chunk_size": getattr(args, "min_size", None),
        "overlap_size": getattr(args, "overlap", None),
        "target_chunk_size": getattr(args, "target_size", None),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return app_settings.chunk_options(**values)


def _default_out_dir(app_settings: Settings, file_path: str) -> Path:
    return Path(app_settings.output_dir) / Path(file_path).stem


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------

async def _refine_file(
    args: argparse.Namespace, app_settings: Settings, config: dict
) -> RefinedContent:
    raw = TextReader().read(args.file)
    refiner = _build_refiner(app_settings, args.llm)
    return await refiner.refine(raw, _refine_options(config, args.llm))


async def _handle_refine(args: argparse.Namespace, app_settings: Settings, config: dict) -> int:
    refined = await _refine_file(args, app_settings, config)
    out_path = Path(args.output) if args.output else (
        Path(app_settings.output_dir) / f"{Path(args.file).stem}.refined.md"
    )
    output.write_text(out_path, refined.text)

    print(f"Refined: {args.file}")
    print(f"  Output:      {out_path}")
    print(f"  Characters:  {refined.quality.original_length} -> {refined.quality.refined_length}")
    print(f"  Sections:    {len(refined.sections)}")
    print(f"  Structures:  {len(refined.structures)}")
    print(f"  Steps:       {', '.join(refined.info.steps_applied)}")
    print(f"  Confidence:  {refined.quality.confidence_score:.2f}")
    _print_warnings(refined.warnings)
    return 0


async def _handle_chunk(args: argparse.Namespace, app_settings: Settings, config: dict) -> int:
    options = _chunk_options(app_settings, config, args)
    refined = await _refine_file(args, app_settings, config)
    chunks = await asyncio.to_thread(ChunkService().chunk, refined, options)
    strategy = chunks[0].strategy if chunks else options.strategy
    options = options.model_copy(update={"strategy": strategy})

    out_dir = Path(args.output) if args.output else _default_out_dir(app_settings, args.file)
    manifest = output.write_chunks(out_dir, chunks, refined, options)

    print(f"Chunked: {args.file}")
    print(f"  Strategy:  {strategy.value}")
    print(f"  Chunks:    {len(chunks)}")
    if chunks:
        average = sum(len(c.content) for c in chunks) // len(chunks)
        print(f"  Avg chars: {average}")
    print(f"  Manifest:  {manifest}")
    _print_warnings(refined.warnings)
    return 0


async def _handle_process(args: argparse.Namespace, app_settings: Settings, config: dict) -> int:
    options = _chunk_options(app_settings, config, args)
    raw = TextReader().read(args.file)
    pipeline = _build_pipeline(app_settings, args.llm, args.enhance)
    result = await pipeline.process(raw, _refine_options(config, args.llm), options)

    out_dir = Path(args.output) if args.output else _default_out_dir(app_settings, args.file)
    used_options = options.model_copy(update={"strategy": result.strategy})
    output.write_chunks(out_dir, result.chunks, result.refined, used_options)
    quality_path = output.write_report(out_dir, result.report)

    report = result.report
    print(f"Processed: {args.file}")
    print(f"  Strategy:   {result.strategy.value}")
    print(f"  Chunks:     {len(result.chunks)}")
    print(
        f"  Composite:  {report.composite_score:.3f} "
        f"({score_to_grade(report.composite_score).value})"
    )
    print(f"  Output:     {out_dir}")
    print(f"  Quality:    {quality_path}")
    _print_recommendations(report.recommendations)
    _print_warnings(result.warnings)
    return 0


async def _handle_evaluate(args: argparse.Namespace, app_settings: Settings, config: dict) -> int:
    names = [s.strip() for s in args.strategies.split(",") if s.strip()]
    if not names:
        raise InputValidationError(message="At least one strategy is required")
    strategies = [ChunkingStrategy.resolve(name) for name in names]
    base_options = _chunk_options(app_settings, config, args)

    refined = await _refine_file(args, app_settings, config)
    service = ChunkService()
    results = {}
    for strategy in strategies:
        options = base_options.model_copy(update={"strategy": strategy})
        results[strategy.value] = await asyncio.to_thread(service.chunk, refined, options)

    comparison = RAGQualityAnalyzer().compare(results, refined.text)

    print(f"Strategy comparison: {args.file}")
    print("=" * 52)
    print(f"  {'strategy':<14} {'chunks':>7} {'composite':>10}  grade")
    for name, report in comparison.reports.items():
        grade = score_to_grade(report.composite_score).value
        print(f"  {name:<14} {report.total_chunks:>7} {report.composite_score:>10.3f}  {grade}")
    print()
    print(f"Best strategy: {comparison.best_strategy}")
    if comparison.best_strategy is not None:
        _print_recommendations(comparison.reports[comparison.best_strategy].recommendations)
    if args.output:
        path = output.write_report(Path(args.output), comparison)
        print(f"Comparison written to {path}")
    return 0


def _print_recommendations(recommendations: list[str]) -> None:
    if recommendations:
        print("\nRecommendations:")
        for item in recommendations:
            print(f"  - {item}")


def _print_warnings(warnings: list[str]) -> None:
    if warnings:
        print("\nWarnings:")
        for item in warnings:
            print(f"  ! {item}")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _add_chunk_arguments(parser: argparse.ArgumentParser, with_strategy: bool = True) -> None:
    if with_strategy:
        parser.add_argument(
            "-s", "--strategy", default=None,
            help="auto, sentence, paragraph, token, semantic or hierarchical",
        )
    parser.add_argument("--max-size", type=int, dest="max_size", help="Maximum chunk size (chars)")
    parser.add_argument("--min-size", type=int, dest="min_size", help="Minimum chunk size (chars)")
    parser.add_argument("--overlap", type=int, help="Overlap between chunks (chars)")
    parser.add_argument(
        "--target-size", type=int, dest="target_size", help="Preferred chunk size (chars)"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the docflux CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Refine documents, chunk them for RAG and score the chunks.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config file")
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument(
        "--json-logs", action="store_true", dest="json_logs", help="Emit logs as JSON"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    refine_parser = subparsers.add_parser("refine", help="Write refined markdown")
    refine_parser.add_argument("file", help="Path to a .txt or .md file")
    refine_parser.add_argument("-o", "--output", help="Output markdown file")

    chunk_parser = subparsers.add_parser("chunk", help="Write chunk files and manifest.json")
    chunk_parser.add_argument("file", help="Path to a .txt or .md file")
    chunk_parser.add_argument("-o", "--output", help="Output directory")
    _add_chunk_arguments(chunk_parser)

    process_parser = subparsers.add_parser(
        "process", help="Refine, chunk and evaluate; also writes quality.json"
    )
    process_parser.add_argument("file", help="Path to a .txt or .md file")
    process_parser.add_argument("-o", "--output", help="Output directory")
    process_parser.add_argument(
        "--enhance", action="store_true", help="Annotate chunks with a completion service"
    )
    _add_chunk_arguments(process_parser)

    evaluate_parser = subparsers.add_parser(
        "evaluate", help="Compare chunking strategies by RAG quality"
    )
    evaluate_parser.add_argument("file", help="Path to a .txt or .md file")
    evaluate_parser.add_argument(
        "--strategies",
        default=",".join(_COMPARABLE_STRATEGIES),
        help="Comma-separated strategy names",
    )
    evaluate_parser.add_argument("-o", "--output", help="Directory for quality.json")
    _add_chunk_arguments(evaluate_parser, with_strategy=False)

    for sub in (refine_parser, chunk_parser, process_parser, evaluate_parser):
        sub.add_argument(
            "--llm", action="store_true",
            help="Use the configured LLM for markdown conversion and image text",
        )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

_HANDLERS = {
    "refine": _handle_refine,
    "chunk": _handle_chunk,
    "process": _handle_process,
    "evaluate": _handle_evaluate,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(
        args.log_level or app_settings.log_level,
        json_output=args.json_logs or app_settings.app_env == "production",
    )

    try:
        config = load_config(args.config)
        return asyncio.run(_HANDLERS[args.command](args, app_settings, config))
    except DocFluxError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
