"""Query embedding and ranking against the in-memory cache."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from notelens.config.constants import SEARCH_MAX_LIMIT
from notelens.config.models import SearchConfig
from notelens.core.errors import NoteLensError
from notelens.daemon.coalescer import Debouncer
from notelens.index.similarity import rank

if TYPE_CHECKING:
    from notelens.client.openai import OpenAIEmbeddingClient
    from notelens.index.cache import EmbeddingCache
    from notelens.index.models import QueryResult

log = structlog.get_logger()


class QueryService:
    """Embeds a query and ranks cached documents by their best chunk.

    ``search`` is debounced: a burst of keystrokes costs one embedding call
    and every caller of the burst receives the results of the last query.
    ``search_now`` bypasses the debounce for one-shot callers like the CLI.
    """

    def __init__(
        self,
        client: OpenAIEmbeddingClient,
        cache: EmbeddingCache,
        config: SearchConfig | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._config = config or SearchConfig()
        self._debounced = Debouncer(self.search_now, self._config.debounce_sec)

    async def search(self, query: str, limit: int | None = None) -> list[QueryResult]:
        return await self._debounced(query, limit)

    def cancel_pending(self) -> None:
        self._debounced.cancel()

    async def search_now(self, query: str, limit: int | None = None) -> list[QueryResult]:
        """Rank cached documents for ``query``.

        Service or tokenizer failures are logged and yield no results; an
        empty result list is what the user sees either way.
        """
        if not query.strip():
            return []

        if limit is None:
            limit = self._config.default_limit
        limit = min(limit, SEARCH_MAX_LIMIT)
        if limit <= 0:
            return []

        t0 = time.monotonic()
        try:
            vectors = await self._client.embed([query])
        except NoteLensError as e:
            log.error("search.failed", error=str(e), code=e.code.value)
            return []
        if not vectors:
            log.error("search.failed", error="empty embedding response")
            return []

        results = rank(self._cache.all(), vectors[0], limit)
        log.info(
            "search.completed",
            results=len(results),
            documents=len(self._cache),
            elapsed_ms=round((time.monotonic() - t0) * 1000),
        )
        return results
