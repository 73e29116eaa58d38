"""Markdown converters implementing IMarkdownConverter."""

from src.providers.markdown.llm_markdown_converter import LLMMarkdownConverter

__all__ = ["LLMMarkdownConverter"]
