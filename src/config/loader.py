"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

  1. :class:`Settings` field defaults
  2. ``config/config.yaml`` -- static defaults checked into the repo
  3. ``.env`` file and environment variables -- only the fields they
     actually set

``load_config`` returns the merged result as a nested dict keyed by
section (``app``, ``llm``, ``vector_store``, ``chunking``, ``queue``,
``retrieval``, ``logging``).
"""

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

# Settings field -> (section, key) in the nested config dict.
_FIELD_MAP: dict[str, tuple[str, str]] = {
    "app_host": ("app", "host"),
    "app_port": ("app", "port"),
    "app_env": ("app", "env"),
    "cors_origins": ("app", "cors_origins"),
    "ollama_base_url": ("llm", "base_url"),
    "ollama_chat_model": ("llm", "chat_model"),
    "ollama_embedding_model": ("llm", "embedding_model"),
    "ollama_embedding_dimension": ("llm", "embedding_dimension"),
    "llm_request_timeout": ("llm", "request_timeout"),
    "chromadb_persist_dir": ("vector_store", "persist_dir"),
    "chromadb_collection": ("vector_store", "collection"),
    "vector_store_batch_size": ("vector_store", "batch_size"),
    "chunk_size": ("chunking", "chunk_size"),
    "chunk_overlap": ("chunking", "chunk_overlap"),
    "respect_headers": ("chunking", "respect_headers"),
    "respect_paragraphs": ("chunking", "respect_paragraphs"),
    "queue_concurrent_processing": ("queue", "concurrent_processing"),
    "queue_max_size": ("queue", "max_size"),
    "embedding_batch_size": ("queue", "embedding_batch_size"),
    "enrichment_max_concurrent": ("queue", "enrichment_max_concurrent"),
    "search_max_results": ("retrieval", "max_results"),
    "search_score_threshold": ("retrieval", "score_threshold"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
            an error; defaults and the environment are used.
        settings: Settings instance to merge; a fresh one is built if omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML file exists but is malformed.
    """
    settings = settings or Settings()

    config = _settings_to_sections(settings, fields=_FIELD_MAP.keys())
    _deep_merge(config, _read_yaml(Path(path)))
    _deep_merge(config, _settings_to_sections(settings, fields=settings.model_fields_set))
    return config


def _read_yaml(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            # safe_load only: config files never need arbitrary objects.
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(message=f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(message=f"{config_path} must contain a mapping at top level")
    return data


def _settings_to_sections(settings: Settings, fields: Any) -> dict:
    sections: dict[str, dict[str, Any]] = {}
    for field in fields:
        if field not in _FIELD_MAP:
            continue
        section, key = _FIELD_MAP[field]
        sections.setdefault(section, {})[key] = getattr(settings, field)
    return sections


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
