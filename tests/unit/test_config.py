"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from src.config.loader import load_config
from src.config.settings import Settings
from src.models.chunk import ChunkingStrategy
from src.utils.errors import ConfigurationError, InputValidationError

_ENV_KEYS = (
    "CHUNK_STRATEGY",
    "MAX_CHUNK_SIZE",
    "MIN_CHUNK_SIZE",
    "OVERLAP_SIZE",
    "TARGET_CHUNK_SIZE",
    "LOG_LEVEL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OLLAMA_BASE_URL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the test.
    monkeypatch.chdir(tmp_path)


def _write_yaml(tmp_path: Path, body: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return str(path)


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.max_chunk_size == 1024
        assert settings.min_chunk_size == 100
        assert settings.overlap_size == 128
        assert settings.chunk_strategy == "auto"
        assert settings.get_available_completion_providers() == []

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_CHUNK_SIZE", "800")
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://localhost:11434")
        settings = Settings()
        assert settings.max_chunk_size == 800
        assert settings.get_available_completion_providers() == ["ollama"]

    def test_chunk_options_with_overrides(self) -> None:
        options = Settings(chunk_strategy="smart").chunk_options(
            max_chunk_size=500, overlap_size=None
        )
        assert options.strategy is ChunkingStrategy.SENTENCE
        assert options.max_chunk_size == 500
        assert options.overlap_size == 128

    def test_chunk_options_strategy_override_resolved(self) -> None:
        options = Settings().chunk_options(strategy="fixed-size")
        assert options.strategy is ChunkingStrategy.TOKEN

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(InputValidationError, match="Unknown chunking strategy"):
            Settings(chunk_strategy="random").chunk_options()

    def test_invalid_sizes_raise_input_validation_error(self) -> None:
        with pytest.raises(InputValidationError, match="Invalid chunk options") as exc_info:
            Settings().chunk_options(max_chunk_size=100, overlap_size=200)
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_non_positive_target_rejected(self) -> None:
        with pytest.raises(InputValidationError, match="target_chunk_size"):
            Settings().chunk_options(target_chunk_size=0)

    def test_target_size_override(self) -> None:
        options = Settings().chunk_options(target_chunk_size=400)
        assert options.effective_target == 400


class TestLoadConfig:
    def test_missing_file_uses_settings(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config["chunking"]["max_chunk_size"] == 1024
        assert config["logging"]["level"] == "INFO"
        assert config["completion"]["available_providers"] == []

    def test_yaml_value_kept_without_env(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "chunking:\n  max_chunk_size: 500\n")
        config = load_config(path)
        assert config["chunking"] == {"max_chunk_size": 500}

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_CHUNK_SIZE", "800")
        path = _write_yaml(tmp_path, "chunking:\n  max_chunk_size: 500\n  strategy: semantic\n")
        config = load_config(path)
        assert config["chunking"]["max_chunk_size"] == 800
        assert config["chunking"]["strategy"] == "semantic"

    def test_unrelated_sections_preserved(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "refinement:\n  remove_page_numbers: true\n")
        config = load_config(path)
        assert config["refinement"] == {"remove_page_numbers": True}
        assert "chunking" in config

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "chunking: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_config(path)

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)
