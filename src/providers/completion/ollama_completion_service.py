"""Ollama text completion adapter.

Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
``openai.AsyncOpenAI`` pointed at the local server.  Reachability is
checked against Ollama's native ``/api/tags`` endpoint with httpx.

Setup: install Ollama, ``ollama pull llama3.1``, then set
``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.providers.completion.base_completion_service import BaseCompletionService
from src.utils.errors import CompletionServiceError

logger = structlog.get_logger(logger_name=__name__)


class OllamaCompletionService(BaseCompletionService):
    """Text completion backed by a local Ollama server."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            # Ollama ignores the key but the SDK requires a non-empty value.
            api_key="ollama",
        )
        self._text_model = settings.ollama_model or "llama3.1"

    async def _chat(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise CompletionServiceError(message=f"Ollama API error: {exc}") from exc

        content = response.choices[0].message.content
        if content is None:
            raise CompletionServiceError(message="Ollama returned empty response")
        logger.info("ollama_completion", model=self._text_model)
        return content

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    async def validate_connection(self) -> bool:
        """Check that the Ollama server answers on ``/api/tags``."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url.rstrip('/')}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"
