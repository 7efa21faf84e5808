"""Embedding/completion service adapter (OpenAI-compatible).

One place for auth, model options and response normalization. This is the
only module that talks to the network. Requests are never retried here;
a failed document is retried by the next natural trigger (another edit or
the next bulk run).
"""

from __future__ import annotations

import numpy as np
import openai
import structlog
from openai import AsyncOpenAI

from notelens.config.constants import MASKED_KEY
from notelens.config.models import EmbeddingConfig
from notelens.core.errors import InvalidResponseError, ServiceError

log = structlog.get_logger()

EXPLAIN_SYSTEM_PROMPT = (
    "You explain passages of a user's notes. The passage to explain is wrapped "
    "in == markers inside the full note. Explain what the marked passage means "
    "in the context of the note, in a few sentences."
)


def _translate_error(e: openai.OpenAIError) -> ServiceError:
    if isinstance(e, openai.AuthenticationError | openai.PermissionDeniedError):
        return ServiceError.auth_failed(str(e))
    if isinstance(e, openai.RateLimitError):
        return ServiceError.rate_limited(str(e))
    return ServiceError.unavailable(str(e))


class OpenAIEmbeddingClient:
    """Async client for embeddings and the "explain in context" completion."""

    def __init__(self, config: EmbeddingConfig) -> None:
        self._config = config
        self._api_key = config.api_key
        self._client: AsyncOpenAI | None = None
        self._build_client()

    def _build_client(self) -> None:
        if not self._api_key:
            self._client = None
            return
        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._config.base_url,
            timeout=self._config.request_timeout_sec,
            max_retries=0,
        )

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def has_credentials(self) -> bool:
        return self._client is not None

    @property
    def masked_api_key(self) -> str:
        return MASKED_KEY if self._api_key else ""

    def reconfigure(self, api_key: str | None) -> None:
        """Swap the credential; every later call uses the new key."""
        self._api_key = api_key or None
        self._build_client()
        log.info("client.reconfigured", has_key=self.has_credentials)

    def _require_client(self) -> AsyncOpenAI:
        if self._client is None:
            raise ServiceError.missing_credential()
        return self._client

    async def embed(self, texts: list[str]) -> list[np.ndarray]:
        """One vector per input text, in input order.

        Raises:
            ServiceError: Network, auth or rate-limit failure, or no key.
            InvalidResponseError: Vector count differs from input count.
        """
        if not texts:
            return []
        client = self._require_client()

        try:
            response = await client.embeddings.create(model=self._config.model, input=texts)
        except openai.OpenAIError as e:
            log.warning("client.embed_failed", model=self._config.model, error=str(e))
            raise _translate_error(e) from e

        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise InvalidResponseError.count_mismatch(len(texts), len(data))

        vectors = [np.asarray(d.embedding, dtype=np.float32) for d in data]
        if any(v.ndim != 1 or v.size == 0 for v in vectors):
            raise InvalidResponseError.malformed("empty or non-flat embedding vector")

        log.debug("client.embedded", inputs=len(texts), dim=int(vectors[0].size))
        return vectors

    async def explain(self, context: str, highlighted: str) -> str:
        """Ask the completion model what ``highlighted`` means within ``context``."""
        client = self._require_client()
        messages = [
            {"role": "system", "content": EXPLAIN_SYSTEM_PROMPT},
            {"role": "user", "content": f"Note:\n{context}\n\nPassage: {highlighted}"},
        ]
        try:
            response = await client.chat.completions.create(
                model=self._config.completion_model,
                messages=messages,  # type: ignore[arg-type]
            )
        except openai.OpenAIError as e:
            log.warning("client.explain_failed", model=self._config.completion_model, error=str(e))
            raise _translate_error(e) from e

        if not response.choices:
            raise InvalidResponseError.malformed("completion returned no choices")
        return (response.choices[0].message.content or "").strip()
