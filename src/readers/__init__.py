"""File readers producing RawContent."""

from src.readers.text_reader import SUPPORTED_EXTENSIONS, TextReader

__all__ = ["SUPPORTED_EXTENSIONS", "TextReader"]
