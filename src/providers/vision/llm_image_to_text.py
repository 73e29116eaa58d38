"""Vision-model image-to-text adapter.

Sends the image as a base64 data URI in an ``image_url`` content part of
an OpenAI-compatible chat completion.  The refiner renders the returned
text below the image placeholder.
"""

from __future__ import annotations

import base64

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.image_to_text_service import IImageToTextService
from src.models.completion import ImageToTextOptions, ImageToTextResult
from src.utils.errors import CompletionServiceError

logger = structlog.get_logger(logger_name=__name__)

# Vision answers carry no usable logprob, so confidence is a fixed estimate.
_VISION_CONFIDENCE = 0.8

_BASE_PROMPT = (
    "Extract all readable text from this image. If the image is a chart, diagram "
    "or photo, describe its content in a few sentences instead."
)


def _detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    return "image/jpeg"


def _build_prompt(options: ImageToTextOptions) -> str:
    parts = [_BASE_PROMPT]
    if options.image_type_hint:
        parts.append(f"The image is probably a {options.image_type_hint}.")
    if options.language != "auto":
        parts.append(f"Answer in language '{options.language}'.")
    if options.extract_structure:
        parts.append("Preserve tables and lists as markdown.")
    return " ".join(parts)


class LLMImageToTextService(IImageToTextService):
    """Image-to-text backed by an OpenAI-compatible vision model.

    Available only when both an API key and ``openai_vision_model`` are
    configured.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._vision_model = settings.openai_vision_model

        client_kwargs: dict = {
            "api_key": self._api_key or "unset",
            "timeout": openai.Timeout(25.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    async def extract_text(
        self, image_data: bytes, options: ImageToTextOptions | None = None
    ) -> ImageToTextResult:
        if not image_data:
            return ImageToTextResult(error_message="Image data is empty")

        options = options or ImageToTextOptions()
        b64 = base64.b64encode(image_data).decode("utf-8")
        media_type = _detect_media_type(image_data)
        try:
            response = await self._client.chat.completions.create(
                model=self._vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": _build_prompt(options)},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{media_type};base64,{b64}"},
                            },
                        ],
                    }
                ],
                max_tokens=2000,
            )
        except openai.APIError as exc:
            raise CompletionServiceError(message=f"Vision API error: {exc}") from exc

        content = response.choices[0].message.content
        if content is None:
            raise CompletionServiceError(message="Vision model returned empty response")
        logger.info(
            "vision_extract",
            model=self._vision_model,
            media_type=media_type,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return ImageToTextResult(text=content.strip(), confidence=_VISION_CONFIDENCE)

    def is_available(self) -> bool:
        return bool(self._api_key and self._vision_model)

    def get_provider_name(self) -> str:
        return "openai-vision"
