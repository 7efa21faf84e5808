"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (NOTELENS__SECTION__KEY)
3. Vault YAML (<vault>/.notelens/config.yaml)
4. Global YAML (~/.config/notelens/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    NOTELENS__<SECTION>__<KEY>=<VALUE>

Examples:
    NOTELENS__LOGGING__LEVEL=DEBUG
    NOTELENS__EMBEDDING__MODEL=text-embedding-3-small
    NOTELENS__REINDEX__BATCH_SIZE=5
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        NOTELENS__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every chunk batch and debounce decision.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class EmbeddingConfig(BaseModel):
    """Embedding/completion service configuration.

    Env vars:
        NOTELENS__EMBEDDING__API_KEY: Service credential (falls back to OPENAI_API_KEY)
        NOTELENS__EMBEDDING__MODEL: Embedding model identifier
        NOTELENS__EMBEDDING__MAX_TOKENS: Hard input limit of the model
    """

    api_key: str | None = Field(
        default=None,
        description="API key for the embedding service. Never logged.",
    )
    base_url: str | None = Field(
        default=None,
        description="Override the service endpoint (OpenAI-compatible servers).",
    )
    model: str = Field(
        default="text-embedding-ada-002",
        description="Embedding model. Changing it invalidates the stored index.",
    )
    completion_model: str = Field(
        default="gpt-3.5-turbo",
        description="Chat model used to explain a highlighted passage.",
    )
    max_tokens: int = Field(
        default=8191,
        description="Hard per-input token limit enforced by the embedding model.",
    )
    token_margin: int = Field(
        default=191,
        description="Tokens kept free below max_tokens when chunking. "
        "Covers re-tokenization drift at chunk boundaries.",
    )
    request_timeout_sec: float = Field(
        default=60.0,
        description="Per-request timeout passed to the HTTP client.",
    )

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_tokens must be positive, got {v}")
        return v

    @model_validator(mode="after")
    def validate_margin(self) -> "EmbeddingConfig":
        if not 0 <= self.token_margin < self.max_tokens:
            raise ValueError(
                f"token_margin must be in [0, max_tokens), got {self.token_margin}"
            )
        return self

    @property
    def chunk_tokens(self) -> int:
        """Token bound used by the chunker."""
        return self.max_tokens - self.token_margin


class IndexConfig(BaseModel):
    """Index configuration.

    Env vars:
        NOTELENS__INDEX__INDEX_PATH: Override snapshot storage location
    """

    extensions: list[str] = Field(
        default_factory=lambda: [".md"],
        description="File extensions that are indexed. Everything else is ignored.",
    )
    index_path: str | None = Field(
        default=None,
        description="Directory holding the index snapshot. Default: <vault>/.notelens.",
    )

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [e.lower() if e.startswith(".") else f".{e.lower()}" for e in v]


class IndexerConfig(BaseModel):
    """Live-edit indexing configuration.

    Env vars:
        NOTELENS__INDEXER__DEBOUNCE_SEC: Quiet period before a modified note is re-embedded
    """

    debounce_sec: float = Field(
        default=20.0,
        description="Quiet period after the last save of a note before it is re-embedded. "
        "Lower values spend more embedding calls during active editing.",
    )


class ReindexConfig(BaseModel):
    """Bulk reindex configuration.

    Env vars:
        NOTELENS__REINDEX__BATCH_SIZE: Concurrent documents per batch
        NOTELENS__REINDEX__CHECKPOINT_INTERVAL: Documents between snapshot saves
    """

    batch_size: int = Field(
        default=3,
        description="Documents embedded concurrently per batch. "
        "RISK: Large values trip service rate limits.",
    )
    checkpoint_interval: int = Field(
        default=100,
        description="Processed documents between snapshot checkpoints. "
        "A crash loses at most this many minus one documents of progress.",
    )
    price_per_1k_tokens: float = Field(
        default=0.0001,
        description="USD per 1000 embedding tokens, used for the cost estimate only.",
    )

    @field_validator("batch_size", "checkpoint_interval")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class SearchConfig(BaseModel):
    """Query configuration.

    Env vars:
        NOTELENS__SEARCH__DEBOUNCE_SEC: Interactive query debounce
        NOTELENS__SEARCH__DEFAULT_LIMIT: Default number of results
    """

    debounce_sec: float = Field(
        default=1.0,
        description="Delay after the last keystroke before a query is embedded.",
    )
    default_limit: int = Field(
        default=20,
        description="Default number of results. Capped by SEARCH_MAX_LIMIT.",
    )


class NoteLensConfig(BaseModel):
    """Root configuration for notelens."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    reindex: ReindexConfig = Field(default_factory=ReindexConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
