"""Utility modules for docflux.

- **cancellation** -- cooperative cancellation token checked at iteration
  boundaries by every pipeline stage.
- **concurrency** -- semaphore-bounded ``asyncio.gather`` for batches and
  LLM enrichment.
- **errors** -- exception hierarchy rooted at DocFluxError; each stage
  raises its own subclass carrying the file name and stage.
- **logging** -- structlog setup with console/JSON renderers.
- **scoring** -- NaN-safe clamping, ratios and weighted averages.
"""

from src.utils.cancellation import CancellationToken, check_cancelled
from src.utils.concurrency import throttled_gather
from src.utils.errors import (
    ChunkingError,
    CompletionServiceError,
    ConfigurationError,
    DocFluxError,
    EnhancementError,
    ExtractionError,
    InputValidationError,
    ProcessingCancelledError,
    ProviderUnavailableError,
    RefinementError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.scoring import (
    QualityGrade,
    calculate_weighted_score,
    clamp_score,
    safe_ratio,
    score_to_grade,
)

__all__ = [
    "CancellationToken",
    "ChunkingError",
    "CompletionServiceError",
    "ConfigurationError",
    "DocFluxError",
    "EnhancementError",
    "ExtractionError",
    "InputValidationError",
    "ProcessingCancelledError",
    "ProviderUnavailableError",
    "QualityGrade",
    "RefinementError",
    "calculate_weighted_score",
    "check_cancelled",
    "clamp_score",
    "configure_logging",
    "get_logger",
    "safe_ratio",
    "score_to_grade",
    "throttled_gather",
]
