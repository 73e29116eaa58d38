"""Custom exception hierarchy for docflux.

All application exceptions inherit from :class:`DocFluxError`, which
carries an optional ``file_name`` and ``stage`` so a failure can be traced
to the document and pipeline step that produced it without exposing
internal call stacks to end users.

The hierarchy is organized by pipeline stage:

    DocFluxError  (base -- catch-all for any docflux error)
    +-- InputValidationError      (bad arguments, raised before any I/O)
    +-- ExtractionError           (reader failure, unsupported format)
    +-- RefinementError           (catastrophic refinement failure)
    +-- ChunkingError             (chunking engine failure)
    +-- EnhancementError          (LLM enrichment failure; caught at call site)
    +-- CompletionServiceError    (model API call failed)
    +-- ProviderUnavailableError  (collaborator not configured / unreachable)
    +-- ConfigurationError        (startup / missing config)
    +-- ProcessingCancelledError  (caller cancelled a running stage)
"""


class DocFluxError(Exception):
    """Base exception for all docflux errors.

    The ``__str__`` method prefixes the stage in brackets and the file name,
    e.g. ``[refinement] report.pdf: Refinement failed: ...``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        file_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        self._message = message
        self._file_name = file_name
        self._stage = stage
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def file_name(self) -> str | None:
        return self._file_name

    @property
    def stage(self) -> str | None:
        return self._stage

    def __str__(self) -> str:
        text = self._message
        if self._file_name:
            text = f"{self._file_name}: {text}"
        if self._stage:
            text = f"[{self._stage}] {text}"
        return text


# ---------------------------------------------------------------------------
# Input and extraction
# ---------------------------------------------------------------------------

class InputValidationError(DocFluxError):
    """Raised for empty paths, missing arguments and invalid option values."""

    def __init__(
        self,
        message: str = "Invalid input",
        file_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


class ExtractionError(DocFluxError):
    """Raised when a reader cannot turn a file into RawContent."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        file_name: str | None = None,
        stage: str | None = "extraction",
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

class RefinementError(DocFluxError):
    """Raised when refinement fails as a whole.

    Individual refinement steps degrade gracefully instead; this only
    surfaces for failures that leave no usable result.
    """

    def __init__(
        self,
        message: str = "Refinement failed",
        file_name: str | None = None,
        stage: str | None = "refinement",
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


class ChunkingError(DocFluxError):
    """Raised when the chunking engine fails on non-empty text."""

    def __init__(
        self,
        message: str = "Chunking failed",
        file_name: str | None = None,
        stage: str | None = "chunking",
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


class EnhancementError(DocFluxError):
    """Raised by enrichment helpers; callers catch it and keep the original chunk."""

    def __init__(
        self,
        message: str = "Chunk enhancement failed",
        file_name: str | None = None,
        stage: str | None = "enhancement",
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


class ProcessingCancelledError(DocFluxError):
    """Raised when a cancellation token is observed at an iteration boundary."""

    def __init__(
        self,
        message: str = "Processing was cancelled",
        file_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------

class CompletionServiceError(DocFluxError):
    """Raised when a text-completion or vision model call fails."""

    def __init__(
        self,
        message: str = "Completion service call failed",
        file_name: str | None = None,
        stage: str | None = "completion",
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


class ProviderUnavailableError(DocFluxError):
    """Raised when an optional collaborator is not configured or unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        file_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)


class ConfigurationError(DocFluxError):
    """Raised for missing or invalid configuration at startup."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        file_name: str | None = None,
        stage: str | None = "configuration",
    ) -> None:
        super().__init__(message=message, file_name=file_name, stage=stage)
