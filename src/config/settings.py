"""Application settings loaded from environment variables via pydantic-settings.

Values are read from, in priority order:

  1. Environment variables -- e.g. ``MAX_CHUNK_SIZE=800``
  2. A ``.env`` file in the working directory
  3. The defaults below

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY`` and so on
(pydantic-settings matches case-insensitively).
"""

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.chunk import ChunkingStrategy, ChunkOptions
from src.utils.errors import InputValidationError


class Settings(BaseSettings):
    """docflux settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Chunking defaults (characters) ===
    chunk_strategy: str = "auto"
    max_chunk_size: int = 1024
    min_chunk_size: int = 100
    overlap_size: int = 128
    target_chunk_size: int | None = None
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True

    # === Enhancement / LLM collaborators ===
    # Empty string = "not configured"; the CLI then runs without enrichment.
    enhancement_max_concurrent: int = 5
    openai_api_key: str = ""
    openai_base_url: str = ""  # Any OpenAI-compatible endpoint
    openai_text_model: str = "gpt-4o-mini"
    openai_vision_model: str = ""  # Empty disables image-to-text
    ollama_base_url: str = ""
    ollama_model: str = "llama3.1"

    # === App Config ===
    output_dir: str = "output"
    app_env: str = "development"
    log_level: str = "INFO"

    def chunk_options(self, **overrides: object) -> ChunkOptions:
        """Build :class:`ChunkOptions` from the configured defaults plus *overrides*.

        Raises :class:`InputValidationError` when the combined values are invalid.
        """
        values: dict[str, object] = {
            "strategy": ChunkingStrategy.resolve(self.chunk_strategy),
            "max_chunk_size": self.max_chunk_size,
            "min_chunk_size": self.min_chunk_size,
            "overlap_size": self.overlap_size,
            "target_chunk_size": self.target_chunk_size,
            "preserve_paragraphs": self.preserve_paragraphs,
            "preserve_sentences": self.preserve_sentences,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        if isinstance(values["strategy"], str):
            values["strategy"] = ChunkingStrategy.resolve(values["strategy"])
        try:
            return ChunkOptions(**values)
        except ValidationError as exc:
            raise InputValidationError(message=f"Invalid chunk options: {exc}") from exc

    def get_available_completion_providers(self) -> list[str]:
        """Return the names of completion backends that are configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
