"""Tests for the query service."""

import asyncio
from typing import Any

import numpy as np
import pytest

from notelens.config.models import SearchConfig
from notelens.core.errors import EncodingError, InvalidResponseError, ServiceError
from notelens.index.cache import EmbeddingCache
from notelens.index.models import DocumentEmbedding
from notelens.search.query import QueryService


@pytest.fixture
def populated_cache() -> EmbeddingCache:
    return EmbeddingCache(
        {
            "note1.md": DocumentEmbedding("note1.md", np.array([[0.1, 0.2, 0.3]])),
            "note2.md": DocumentEmbedding("note2.md", np.array([[0.4, 0.5, 0.6], [0.7, 0.8, 0.9]])),
        }
    )


class StubClient:
    """Returns a fixed query vector."""

    def __init__(self, vector: list[float]) -> None:
        self.vector = np.array(vector, dtype=np.float32)
        self.calls: list[list[str]] = []
        self.error: Exception | None = None

    async def embed(self, texts: list[str]) -> list[np.ndarray]:
        self.calls.append(texts)
        if self.error is not None:
            raise self.error
        return [self.vector]


def _service(client: Any, cache: EmbeddingCache, **config: Any) -> QueryService:
    return QueryService(client, cache, SearchConfig(debounce_sec=0.05, **config))


class TestSearchNow:
    """Undebounced search."""

    @pytest.mark.asyncio
    async def test_given_query_then_ranked_by_best_chunk(
        self, populated_cache: EmbeddingCache
    ) -> None:
        client = StubClient([0.7, 0.8, 0.9])

        results = await _service(client, populated_cache).search_now("compilers", 2)

        assert [r.document_key for r in results] == ["note2.md", "note1.md"]
        assert results[1].similarity == pytest.approx(0.9594, abs=1e-4)
        assert client.calls == [["compilers"]]

    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    @pytest.mark.asyncio
    async def test_given_blank_query_then_empty_without_call(
        self, populated_cache: EmbeddingCache, query: str
    ) -> None:
        client = StubClient([1.0, 0.0, 0.0])

        assert await _service(client, populated_cache).search_now(query) == []
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_given_no_limit_then_default_limit(self) -> None:
        cache = EmbeddingCache(
            {
                f"n{i}.md": DocumentEmbedding(f"n{i}.md", np.array([[1.0, float(i)]]))
                for i in range(8)
            }
        )
        client = StubClient([1.0, 0.0])

        results = await _service(client, cache, default_limit=5).search_now("q")

        assert len(results) == 5

    @pytest.mark.asyncio
    async def test_given_huge_limit_then_capped(self) -> None:
        cache = EmbeddingCache(
            {
                f"n{i}.md": DocumentEmbedding(f"n{i}.md", np.array([[1.0, float(i)]]))
                for i in range(150)
            }
        )
        client = StubClient([1.0, 0.0])

        results = await _service(client, cache).search_now("q", 1000)

        assert len(results) == 100

    @pytest.mark.parametrize(
        "error",
        [
            ServiceError.unavailable("connection refused"),
            ServiceError.missing_credential(),
            InvalidResponseError.count_mismatch(1, 0),
            EncodingError.untokenizable("bad input"),
        ],
    )
    @pytest.mark.asyncio
    async def test_given_service_failure_then_empty_results(
        self, populated_cache: EmbeddingCache, error: Exception
    ) -> None:
        client = StubClient([1.0, 0.0, 0.0])
        client.error = error

        assert await _service(client, populated_cache).search_now("query") == []

    @pytest.mark.asyncio
    async def test_given_empty_cache_then_empty_results(self) -> None:
        client = StubClient([1.0, 0.0])

        assert await _service(client, EmbeddingCache()).search_now("query") == []


class TestDebouncedSearch:
    """Debounced search."""

    @pytest.mark.asyncio
    async def test_given_keystroke_burst_then_one_embedding_for_last_query(
        self, populated_cache: EmbeddingCache
    ) -> None:
        # Given
        client = StubClient([0.7, 0.8, 0.9])
        service = _service(client, populated_cache)

        # When
        tasks = []
        for query in ("c", "co", "com"):
            tasks.append(asyncio.create_task(service.search(query, 1)))
            await asyncio.sleep(0.01)
        results = await asyncio.gather(*tasks)

        # Then
        assert client.calls == [["com"]]
        assert all(r[0].document_key == "note2.md" for r in results)

    @pytest.mark.asyncio
    async def test_given_pending_search_when_cancelled_then_no_call(
        self, populated_cache: EmbeddingCache
    ) -> None:
        client = StubClient([0.7, 0.8, 0.9])
        service = _service(client, populated_cache)
        task = asyncio.create_task(service.search("query"))
        await asyncio.sleep(0)

        service.cancel_pending()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.08)
        assert client.calls == []
