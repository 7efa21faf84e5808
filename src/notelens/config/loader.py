"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (NOTELENS__SECTION__KEY)
3. Vault config (<vault>/.notelens/config.yaml)
4. Global config (~/.config/notelens/config.yaml)
5. Built-in defaults (lowest priority)

When no API key is configured anywhere, OPENAI_API_KEY is used.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from notelens.config.constants import STATE_DIR
from notelens.config.models import (
    EmbeddingConfig,
    IndexConfig,
    IndexerConfig,
    LoggingConfig,
    NoteLensConfig,
    ReindexConfig,
    SearchConfig,
)
from notelens.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/notelens/config.yaml").expanduser()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class NoteLensSettings(BaseSettings):
        """Root config. Env vars: NOTELENS__LOGGING__LEVEL, NOTELENS__EMBEDDING__MODEL, etc."""

        model_config = SettingsConfigDict(
            env_prefix="NOTELENS__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        embedding: EmbeddingConfig = EmbeddingConfig()
        index: IndexConfig = IndexConfig()
        indexer: IndexerConfig = IndexerConfig()
        reindex: ReindexConfig = ReindexConfig()
        search: SearchConfig = SearchConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return NoteLensSettings


def load_config(vault_root: Path | None = None, **kwargs: Any) -> NoteLensConfig:
    """Load config: defaults < global yaml < vault yaml < env vars < kwargs.

    Args:
        vault_root: Vault directory to load config from.
                    Defaults to current working directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    vault_root = vault_root or Path.cwd()

    yaml_config = _load_yaml(vault_root / STATE_DIR / "config.yaml")
    global_config = _load_yaml(GLOBAL_CONFIG_PATH)
    if global_config:
        yaml_config = _deep_merge(global_config, yaml_config)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e

    config = NoteLensConfig.model_validate(settings.model_dump())
    if not config.embedding.api_key and (env_key := os.environ.get("OPENAI_API_KEY")):
        config.embedding.api_key = env_key
    return config


def get_index_dir(vault_root: Path, config: NoteLensConfig) -> Path:
    """Directory holding the index snapshot, respecting config.index.index_path."""
    if config.index.index_path:
        return Path(config.index.index_path).expanduser()
    return vault_root / STATE_DIR
