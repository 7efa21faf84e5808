"""Config module exports."""

from notelens.config.loader import get_index_dir, load_config
from notelens.config.models import (
    EmbeddingConfig,
    IndexConfig,
    IndexerConfig,
    LoggingConfig,
    NoteLensConfig,
    ReindexConfig,
    SearchConfig,
)

__all__ = [
    "load_config",
    "get_index_dir",
    "NoteLensConfig",
    "EmbeddingConfig",
    "IndexConfig",
    "IndexerConfig",
    "LoggingConfig",
    "ReindexConfig",
    "SearchConfig",
]
