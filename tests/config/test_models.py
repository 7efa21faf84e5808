"""Tests for config models validation."""

import pytest
from pydantic import ValidationError

from notelens.config.models import (
    EmbeddingConfig,
    IndexConfig,
    LogOutputConfig,
    NoteLensConfig,
    ReindexConfig,
)


class TestEmbeddingConfig:
    """EmbeddingConfig validation."""

    def test_chunk_tokens_subtracts_margin(self) -> None:
        assert EmbeddingConfig().chunk_tokens == 8191 - 191
        assert EmbeddingConfig(max_tokens=100, token_margin=0).chunk_tokens == 100

    @pytest.mark.parametrize("max_tokens", [0, -5])
    def test_rejects_non_positive_max_tokens(self, max_tokens: int) -> None:
        with pytest.raises(ValidationError):
            EmbeddingConfig(max_tokens=max_tokens)

    @pytest.mark.parametrize("margin", [-1, 100, 150])
    def test_rejects_margin_outside_range(self, margin: int) -> None:
        with pytest.raises(ValidationError):
            EmbeddingConfig(max_tokens=100, token_margin=margin)


class TestIndexConfig:
    """IndexConfig extension normalization."""

    def test_extensions_normalized(self) -> None:
        config = IndexConfig(extensions=["MD", ".Markdown", ".txt"])

        assert config.extensions == [".md", ".markdown", ".txt"]


class TestReindexConfig:
    """ReindexConfig validation."""

    @pytest.mark.parametrize("field", ["batch_size", "checkpoint_interval"])
    def test_rejects_zero(self, field: str) -> None:
        with pytest.raises(ValidationError):
            ReindexConfig(**{field: 0})


class TestLogOutputConfig:
    """LogOutputConfig destination validation."""

    def test_accepts_streams(self) -> None:
        assert LogOutputConfig(destination="stdout").destination == "stdout"

    def test_rejects_relative_file(self) -> None:
        with pytest.raises(ValidationError):
            LogOutputConfig(destination="logs/notelens.log")


class TestNoteLensConfig:
    """Root config defaults."""

    def test_sections_present(self) -> None:
        config = NoteLensConfig()

        assert config.embedding.completion_model == "gpt-3.5-turbo"
        assert config.reindex.price_per_1k_tokens > 0
        assert config.index.index_path is None
