"""OpenAI-compatible text completion adapter.

Wraps the ``openai`` async client.  When ``openai_base_url`` is configured
(TogetherAI, Groq, a vLLM server, ...) the client points at that URL
instead of the default OpenAI endpoint, so one adapter covers every
provider exposing the OpenAI chat-completions API.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.providers.completion.base_completion_service import BaseCompletionService
from src.utils.errors import CompletionServiceError

logger = structlog.get_logger(logger_name=__name__)


class OpenAICompletionService(BaseCompletionService):
    """Text completion backed by an OpenAI-compatible API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key or "unset",
            "timeout": openai.Timeout(25.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

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
        except openai.APITimeoutError as exc:
            raise CompletionServiceError(
                message=f"{self._provider_label} timed out after 25s"
            ) from exc
        except openai.APIError as exc:
            raise CompletionServiceError(
                message=f"{self._provider_label} API error: {exc}"
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise CompletionServiceError(message=f"{self._provider_label} returned empty response")
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """List models to confirm the key is accepted, without inference cost."""
        if not self.is_available():
            return False
        try:
            await self._client.models.list()
            return True
        except openai.APIError:
            return False

    def get_provider_name(self) -> str:
        return self._provider_label
