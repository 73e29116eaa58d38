"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers override earlier):

  1. ``config/config.yaml`` -- static defaults, optional
  2. ``.env`` file          -- local overrides
  3. Environment variables

Only keys that the environment actually sets override the YAML file, so a
YAML default survives unless someone changes it explicitly.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml") -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Fully resolved configuration dictionary with ``chunking``,
        ``completion`` and ``logging`` sections.

    Raises:
        ConfigurationError: If the YAML file exists but cannot be parsed.
    """
    config_path = Path(path)
    yaml_config: dict = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Cannot parse {config_path}: {exc}",
                    file_name=str(config_path),
                ) from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(
                message="Top-level YAML value must be a mapping",
                file_name=str(config_path),
            )

    settings = Settings()
    explicit = settings.model_fields_set
    env_values = {
        "chunking": {
            "strategy": settings.chunk_strategy,
            "max_chunk_size": settings.max_chunk_size,
            "min_chunk_size": settings.min_chunk_size,
            "overlap_size": settings.overlap_size,
        },
        "completion": {
            "openai_base_url": settings.openai_base_url,
            "ollama_base_url": settings.ollama_base_url,
            "available_providers": settings.get_available_completion_providers(),
        },
        "logging": {
            "level": settings.log_level,
        },
    }
    field_names = {
        "strategy": "chunk_strategy",
        "level": "log_level",
    }
    env_overrides = {
        section: {
            key: value
            for key, value in values.items()
            if key == "available_providers"
            or field_names.get(key, key) in explicit
            or section not in yaml_config
        }
        for section, values in env_values.items()
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
