"""Token-bounded text chunking.

Text is encoded with the tiktoken encoding that matches the embedding
model, split into contiguous groups of at most ``max_tokens`` tokens, and
each group decoded back to text.

Token boundaries do not always fall on character boundaries: a multi-byte
UTF-8 symbol can be spread over two tokens. Decoding such a group on its own
would produce replacement characters, so the incomplete tail bytes of a group
are carried into the next chunk. The concatenation of all chunks is
therefore always the original text.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

import structlog
import tiktoken

from notelens.config.constants import DEFAULT_ENCODING
from notelens.core.errors import EncodingError
from notelens.index.models import Chunk

log = structlog.get_logger()


class TokenEncoding(Protocol):
    """The subset of ``tiktoken.Encoding`` the chunker relies on."""

    name: str

    def encode(self, text: str, *, disallowed_special: object = ...) -> list[int]: ...

    def decode_bytes(self, tokens: list[int]) -> bytes: ...


def encoding_for_model(model: str) -> tiktoken.Encoding:
    """Return the model's tiktoken encoding, or cl100k_base for unknown models."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        log.debug("chunker.unknown_model", model=model, fallback=DEFAULT_ENCODING)
        return tiktoken.get_encoding(DEFAULT_ENCODING)


def _utf8_cut(data: bytes) -> int:
    """Length of the longest prefix of ``data`` not ending mid-symbol."""
    size = len(data)
    for i in range(size - 1, max(-1, size - 5), -1):
        byte = data[i]
        if byte & 0xC0 == 0x80:
            continue  # continuation byte, keep walking back to the lead byte
        if byte < 0x80:
            needed = 1
        elif byte >> 5 == 0b110:
            needed = 2
        elif byte >> 4 == 0b1110:
            needed = 3
        elif byte >> 3 == 0b11110:
            needed = 4
        else:
            needed = 1
        return i if size - i < needed else size
    return size


class Chunker:
    """Splits text into chunks of at most ``max_tokens`` tokens.

    The encoding is resolved lazily from ``model`` unless one is passed in.
    """

    def __init__(
        self,
        model: str | None = None,
        *,
        encoding: TokenEncoding | None = None,
    ) -> None:
        if model is None and encoding is None:
            raise ValueError("Chunker needs a model name or an encoding")
        self._model = model
        self._encoding = encoding

    @property
    def encoding(self) -> TokenEncoding:
        if self._encoding is None:
            assert self._model is not None
            self._encoding = encoding_for_model(self._model)
        return self._encoding

    def encode(self, text: str) -> list[int]:
        """Encode text; special-token markup is treated as plain text."""
        try:
            return self.encoding.encode(text, disallowed_special=())
        except (ValueError, TypeError, UnicodeError) as e:
            raise EncodingError.untokenizable(str(e), encoding=self.encoding.name) from e

    def count_tokens(self, text: str) -> int:
        return len(self.encode(text))

    def iter_chunks(self, text: str, max_tokens: int) -> Iterator[Chunk]:
        """Yield chunks in order.

        ``token_count`` is the size of the token group a chunk was decoded
        from, plus any preceding groups whose bytes were carried into it.
        """
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")

        tokens = self.encode(text)
        carry = b""
        carried_tokens = 0
        for start in range(0, len(tokens), max_tokens):
            group = tokens[start : start + max_tokens]
            data = carry + self.encoding.decode_bytes(group)
            cut = _utf8_cut(data)
            carry = data[cut:]
            if cut == 0:
                carried_tokens += len(group)
                continue
            yield Chunk(text=data[:cut].decode("utf-8"), token_count=len(group) + carried_tokens)
            carried_tokens = 0

        if carry:
            yield Chunk(text=carry.decode("utf-8", errors="replace"), token_count=carried_tokens)

    def chunk(self, text: str, max_tokens: int) -> list[str]:
        """Split ``text`` into strings whose concatenation is ``text``.

        Raises:
            EncodingError: The text cannot be tokenized.
            ValueError: ``max_tokens`` is not positive.
        """
        return [c.text for c in self.iter_chunks(text, max_tokens)]
