"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides collaborators that never touch the network: a byte-level token
encoding and an in-memory embedding client.
"""

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local notelens package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of notelens modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("notelens"):
        del sys.modules[module_name]

from notelens.config.models import EmbeddingConfig, IndexConfig  # noqa: E402
from notelens.index.cache import EmbeddingCache  # noqa: E402
from notelens.index.chunker import Chunker  # noqa: E402
from notelens.index.indexer import Indexer  # noqa: E402


class ByteEncoding:
    """One token per UTF-8 byte. Multi-byte symbols span several tokens."""

    name = "bytes"

    def encode(self, text: str, *, disallowed_special: object = ()) -> list[int]:  # noqa: ARG002
        return list(text.encode("utf-8"))

    def decode_bytes(self, tokens: list[int]) -> bytes:
        return bytes(tokens)


class FakeEmbeddingClient:
    """Stands in for OpenAIEmbeddingClient.

    Vectors are derived from the text so identical inputs embed identically.
    ``fail_on`` makes ``embed`` raise for any batch containing one of the
    given substrings.
    """

    def __init__(self, *, dim: int = 4, model: str = "fake-embedding") -> None:
        self.dim = dim
        self.model = model
        self.calls: list[list[str]] = []
        self.explain_calls: list[tuple[str, str]] = []
        self.fail_on: dict[str, Exception] = {}
        self.answer = "an explanation"
        self.has_credentials = True
        self.masked_api_key = "<KEY_SAVED>"

    @staticmethod
    def vector_for(text: str, dim: int = 4) -> np.ndarray:
        data = text.encode("utf-8") or b"\x00"
        vec = np.zeros(dim, dtype=np.float32)
        for i, byte in enumerate(data):
            vec[i % dim] += byte
        vec[0] += 1.0
        return vec

    async def embed(self, texts: list[str]) -> list[np.ndarray]:
        self.calls.append(list(texts))
        for needle, exc in self.fail_on.items():
            if any(needle in t for t in texts):
                raise exc
        return [self.vector_for(t, self.dim) for t in texts]

    async def explain(self, context: str, highlighted: str) -> str:
        self.explain_calls.append((context, highlighted))
        return self.answer

    def reconfigure(self, api_key: str | None) -> None:
        self.has_credentials = bool(api_key)
        self.masked_api_key = "<KEY_SAVED>" if api_key else ""


@pytest.fixture
def byte_encoding() -> ByteEncoding:
    return ByteEncoding()


@pytest.fixture
def byte_chunker(byte_encoding: ByteEncoding) -> Chunker:
    return Chunker(encoding=byte_encoding)


@pytest.fixture
def fake_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def cache() -> EmbeddingCache:
    return EmbeddingCache()


@pytest.fixture
def indexer(
    fake_client: FakeEmbeddingClient, cache: EmbeddingCache, byte_chunker: Chunker
) -> Indexer:
    """Indexer over the fake client, chunking at 64 byte-tokens."""
    return Indexer(
        fake_client,  # type: ignore[arg-type]
        cache,
        byte_chunker,
        EmbeddingConfig(max_tokens=80, token_margin=16),
        IndexConfig(),
    )


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """A small vault with notes, a non-note file and host metadata."""
    root = tmp_path / "vault"
    (root / "projects").mkdir(parents=True)
    (root / ".obsidian").mkdir()
    (root / ".trash").mkdir()
    (root / "alpha.md").write_text("Alpha note about gardening.\n", encoding="utf-8")
    (root / "projects" / "beta.md").write_text("Beta note about compilers.\n", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG")
    (root / ".obsidian" / "workspace.md").write_text("host state", encoding="utf-8")
    (root / ".trash" / "old.md").write_text("deleted note", encoding="utf-8")
    return root


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the user's global config and environment out of config loading."""
    monkeypatch.setattr(
        "notelens.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "no-global-config.yaml"
    )
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    for name in list(os.environ):
        if name.startswith("NOTELENS__"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers configured by a test (CLI runs bind to captured streams)."""
    yield
    import logging

    logging.getLogger().handlers.clear()
