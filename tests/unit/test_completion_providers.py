"""Unit tests for the LLM adapters -- completion, vision and markdown conversion."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config.settings import Settings
from src.utils.errors import CompletionServiceError

# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "openai_vision_model": "gpt-4o",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _mock_client(content: str | None = None, error: Exception | None = None) -> AsyncMock:
    mock_response = MagicMock()
    mock_response.choices = [MagicMock(message=MagicMock(content=content))]
    mock_response.usage = MagicMock(total_tokens=100)

    mock_client = AsyncMock()
    mock_client.chat.completions.create = AsyncMock(return_value=mock_response, side_effect=error)
    return mock_client


_OPENAI_CLIENT = "src.providers.completion.openai_completion_service.openai.AsyncOpenAI"
_OLLAMA_CLIENT = "src.providers.completion.ollama_completion_service.openai.AsyncOpenAI"
_OLLAMA_HTTP = "src.providers.completion.ollama_completion_service.httpx.AsyncClient"
_VISION_CLIENT = "src.providers.vision.llm_image_to_text.openai.AsyncOpenAI"


# ======================================================================
# JSON parsing
# ======================================================================


class TestParseJsonObject:
    def test_plain_json(self) -> None:
        from src.providers.completion import parse_json_object

        assert parse_json_object('{"summary": "ok"}') == {"summary": "ok"}

    def test_fenced_json(self) -> None:
        from src.providers.completion import parse_json_object

        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_json_after_preamble(self) -> None:
        from src.providers.completion import parse_json_object

        assert parse_json_object('Sure! Here it is: {"a": [1, 2]} Hope that helps.') == {
            "a": [1, 2]
        }

    def test_unparseable_returns_none(self) -> None:
        from src.providers.completion import parse_json_object

        assert parse_json_object("no json here") is None
        assert parse_json_object("[1, 2, 3]") is None


# ======================================================================
# OpenAI completion service
# ======================================================================


class TestOpenAICompletionService:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_is_available(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        assert OpenAICompletionService(settings).is_available() is True
        assert OpenAICompletionService(_settings(openai_api_key="")).is_available() is False

    def test_provider_name_reflects_base_url(self) -> None:
        from src.providers.completion import OpenAICompletionService

        assert OpenAICompletionService(_settings()).get_provider_name() == "openai"
        custom = OpenAICompletionService(_settings(openai_base_url="http://localhost:8000/v1"))
        assert custom.get_provider_name() == "openai-compatible"

    @pytest.mark.asyncio
    async def test_generate_success(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        mock_client = _mock_client("  Contextual sentence.  ")
        with patch(_OPENAI_CLIENT, return_value=mock_client):
            service = OpenAICompletionService(settings)
            result = await service.generate("prompt")

        assert result == "Contextual sentence."
        kwargs = mock_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][1] == {"role": "user", "content": "prompt"}

    @pytest.mark.asyncio
    async def test_generate_empty_answer_raises(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        with patch(_OPENAI_CLIENT, return_value=_mock_client("   ")):
            service = OpenAICompletionService(settings)
            with pytest.raises(CompletionServiceError, match="empty response"):
                await service.generate("prompt")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService
        import openai

        error = openai.APIError(message="Rate limit exceeded", request=MagicMock(), body=None)
        with patch(_OPENAI_CLIENT, return_value=_mock_client(error=error)):
            service = OpenAICompletionService(settings)
            with pytest.raises(CompletionServiceError, match="API error"):
                await service.generate("prompt")

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService
        import openai

        error = openai.APITimeoutError(request=MagicMock())
        with patch(_OPENAI_CLIENT, return_value=_mock_client(error=error)):
            service = OpenAICompletionService(settings)
            with pytest.raises(CompletionServiceError, match="timed out"):
                await service.summarize("text")

    @pytest.mark.asyncio
    async def test_summarize_parses_json(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        answer = '{"summary": "Chunking guide.", "keywords": ["chunk", ""], "confidence": 0.9}'
        with patch(_OPENAI_CLIENT, return_value=_mock_client(answer)):
            service = OpenAICompletionService(settings)
            summary = await service.summarize("A long text about chunking.")

        assert summary.summary == "Chunking guide."
        assert summary.keywords == ["chunk"]
        assert summary.confidence == 0.9
        assert summary.original_length == len("A long text about chunking.")

    @pytest.mark.asyncio
    async def test_summarize_falls_back_to_raw_answer(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        with patch(_OPENAI_CLIENT, return_value=_mock_client("Just a plain summary.")):
            service = OpenAICompletionService(settings)
            summary = await service.summarize("text", max_length=10)

        assert summary.summary == "Just a pla"
        assert summary.keywords == []
        assert summary.confidence == 0.5

    @pytest.mark.asyncio
    async def test_assess_quality_fallback(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        with patch(_OPENAI_CLIENT, return_value=_mock_client("Looks fine to me.")):
            service = OpenAICompletionService(settings)
            assessment = await service.assess_quality("text")

        assert assessment.overall_score == pytest.approx(0.5)
        assert "not valid JSON" in assessment.explanation

    @pytest.mark.asyncio
    async def test_analyze_structure_clamps_values(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        answer = (
            '{"documentType": "manual", "confidence": 3, "sections": ['
            '{"title": "Intro", "level": 9, "startPosition": -5, "endPosition": 40}, "bad"]}'
        )
        with patch(_OPENAI_CLIENT, return_value=_mock_client(answer)):
            service = OpenAICompletionService(settings)
            result = await service.analyze_structure("text")

        assert result.document_type == "manual"
        assert result.confidence == 1.0
        assert len(result.sections) == 1
        assert result.sections[0].level == 6
        assert result.sections[0].start_position == 0

    @pytest.mark.asyncio
    async def test_extract_metadata(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService

        answer = (
            '{"keywords": ["rag"], "language": "en", "categories": ["docs"], '
            '"entities": {"org": ["Acme"], "empty": []}, "confidence": 0.7}'
        )
        with patch(_OPENAI_CLIENT, return_value=_mock_client(answer)):
            service = OpenAICompletionService(settings)
            result = await service.extract_metadata("text")

        assert result.language == "en"
        assert result.entities == {"org": ["Acme"]}
        assert result.confidence == 0.7

    @pytest.mark.asyncio
    async def test_validate_credentials_failure(self, settings: Settings) -> None:
        from src.providers.completion import OpenAICompletionService
        import openai

        mock_client = AsyncMock()
        mock_client.models.list = AsyncMock(
            side_effect=openai.APIError(message="Invalid key", request=MagicMock(), body=None)
        )
        with patch(_OPENAI_CLIENT, return_value=mock_client):
            service = OpenAICompletionService(settings)
            assert await service.validate_credentials() is False


# ======================================================================
# Ollama completion service
# ======================================================================


class TestOllamaCompletionService:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_is_available(self, settings: Settings) -> None:
        from src.providers.completion import OllamaCompletionService

        assert OllamaCompletionService(settings).is_available() is True
        assert OllamaCompletionService(_settings(ollama_base_url="")).is_available() is False
        assert OllamaCompletionService(settings).get_provider_name() == "ollama"

    @pytest.mark.asyncio
    async def test_generate_success(self, settings: Settings) -> None:
        from src.providers.completion import OllamaCompletionService

        mock_client = _mock_client("Ollama response")
        with patch(_OLLAMA_CLIENT, return_value=mock_client) as client_cls:
            service = OllamaCompletionService(settings)
            result = await service.generate("prompt")

        assert result == "Ollama response"
        assert client_cls.call_args.kwargs["base_url"] == "http://localhost:11434/v1"
        assert mock_client.chat.completions.create.await_args.kwargs["model"] == "llama3.1"

    @pytest.mark.asyncio
    async def test_validate_connection_success(self, settings: Settings) -> None:
        from src.providers.completion import OllamaCompletionService

        mock_response = MagicMock()
        mock_response.status_code = 200

        mock_http_client = AsyncMock()
        mock_http_client.__aenter__ = AsyncMock(return_value=mock_http_client)
        mock_http_client.__aexit__ = AsyncMock(return_value=False)
        mock_http_client.get = AsyncMock(return_value=mock_response)

        with patch(_OLLAMA_HTTP, return_value=mock_http_client):
            service = OllamaCompletionService(settings)
            result = await service.validate_connection()

        assert result is True
        mock_http_client.get.assert_awaited_once_with("http://localhost:11434/api/tags")

    @pytest.mark.asyncio
    async def test_validate_connection_failure(self, settings: Settings) -> None:
        from src.providers.completion import OllamaCompletionService
        import httpx

        mock_http_client = AsyncMock()
        mock_http_client.__aenter__ = AsyncMock(return_value=mock_http_client)
        mock_http_client.__aexit__ = AsyncMock(return_value=False)
        mock_http_client.get = AsyncMock(side_effect=httpx.ConnectError("Connection refused"))

        with patch(_OLLAMA_HTTP, return_value=mock_http_client):
            service = OllamaCompletionService(settings)
            result = await service.validate_connection()

        assert result is False


# ======================================================================
# Vision image-to-text
# ======================================================================


class TestLLMImageToTextService:
    def test_is_available_requires_vision_model(self) -> None:
        from src.providers.vision import LLMImageToTextService

        assert LLMImageToTextService(_settings()).is_available() is True
        assert LLMImageToTextService(_settings(openai_vision_model="")).is_available() is False

    @pytest.mark.asyncio
    async def test_empty_image_data(self) -> None:
        from src.providers.vision import LLMImageToTextService

        result = await LLMImageToTextService(_settings()).extract_text(b"")
        assert result.is_success is False
        assert result.error_message == "Image data is empty"

    @pytest.mark.asyncio
    async def test_extract_text_success(self) -> None:
        from src.providers.vision import LLMImageToTextService

        mock_client = _mock_client("Quarterly sales chart\n")
        with patch(_VISION_CLIENT, return_value=mock_client):
            service = LLMImageToTextService(_settings())
            result = await service.extract_text(b"\x89PNG\r\n\x1a\nrest")

        assert result.is_success is True
        assert result.text == "Quarterly sales chart"
        assert result.confidence == 0.8
        content = mock_client.chat.completions.create.await_args.kwargs["messages"][0]["content"]
        assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        from src.providers.vision import LLMImageToTextService
        import openai

        error = openai.APIError(message="Bad image", request=MagicMock(), body=None)
        with patch(_VISION_CLIENT, return_value=_mock_client(error=error)):
            service = LLMImageToTextService(_settings())
            with pytest.raises(CompletionServiceError, match="Vision API error"):
                await service.extract_text(b"\xff\xd8data")

    @pytest.mark.parametrize(
        ("data", "media_type"),
        [
            (b"\x89PNG\r\n\x1a\n", "image/png"),
            (b"RIFF\x00\x00\x00\x00WEBP", "image/webp"),
            (b"GIF89a", "image/gif"),
            (b"\xff\xd8\xff", "image/jpeg"),
            (b"unknown", "image/jpeg"),
        ],
    )
    def test_media_type_detection(self, data: bytes, media_type: str) -> None:
        from src.providers.vision.llm_image_to_text import _detect_media_type

        assert _detect_media_type(data) == media_type


# ======================================================================
# LLM markdown converter
# ======================================================================


class TestLLMMarkdownConverter:
    @pytest.mark.asyncio
    async def test_outer_fence_stripped(self, raw_factory, mock_completion_service) -> None:
        from src.providers.markdown import LLMMarkdownConverter

        mock_completion_service.generate = AsyncMock(
            return_value="```markdown\n# Title\n\nBody text of the document.\n```"
        )
        raw = raw_factory("Title\nBody text of the document.", "a.txt")

        result = await LLMMarkdownConverter(mock_completion_service).convert(raw)

        assert result.success is True
        assert result.markdown == "# Title\n\nBody text of the document."
        assert result.method.value == "llm"

    @pytest.mark.asyncio
    async def test_short_answer_rejected(self, raw_factory, mock_completion_service) -> None:
        from src.providers.markdown import LLMMarkdownConverter

        mock_completion_service.generate = AsyncMock(return_value="# Title")
        raw = raw_factory("Title\n" + "Body text of the document. " * 10, "a.txt")

        result = await LLMMarkdownConverter(mock_completion_service).convert(raw)

        assert result.success is False
        assert any("much shorter" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_service_error_becomes_warning(
        self, raw_factory, mock_completion_service
    ) -> None:
        from src.providers.markdown import LLMMarkdownConverter

        mock_completion_service.generate = AsyncMock(
            side_effect=CompletionServiceError(message="openai API error: boom")
        )
        result = await LLMMarkdownConverter(mock_completion_service).convert(
            raw_factory("Some text.", "a.txt")
        )

        assert result.success is False
        assert any("boom" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_unavailable_without_service(self, raw_factory) -> None:
        from src.providers.markdown import LLMMarkdownConverter

        converter = LLMMarkdownConverter(None)
        result = await converter.convert(raw_factory("Some text.", "a.txt"))

        assert converter.is_available() is False
        assert result.success is False
        assert result.warnings == ["Completion service unavailable"]

    @pytest.mark.asyncio
    async def test_empty_text(self, raw_factory, mock_completion_service) -> None:
        from src.providers.markdown import LLMMarkdownConverter

        result = await LLMMarkdownConverter(mock_completion_service).convert(
            raw_factory("   ", "a.txt")
        )
        assert result.warnings == ["No text to convert"]
        mock_completion_service.generate.assert_not_awaited()
