"""Tests for token-bounded chunking."""

import pytest

from notelens.core.errors import EncodingError
from notelens.index.chunker import Chunker, encoding_for_model


class _BrokenEncoding:
    name = "broken"

    def encode(self, text: str, *, disallowed_special: object = ()) -> list[int]:  # noqa: ARG002
        raise ValueError("cannot encode surrogate")

    def decode_bytes(self, tokens: list[int]) -> bytes:
        return bytes(tokens)


class TestChunker:
    """Chunking with a one-token-per-byte encoding."""

    def test_given_ascii_text_when_chunked_then_groups_of_max_tokens(
        self, byte_chunker: Chunker
    ) -> None:
        chunks = byte_chunker.chunk("hello world", 4)

        assert chunks == ["hell", "o wo", "rld"]

    def test_given_short_text_when_chunked_then_single_chunk(self, byte_chunker: Chunker) -> None:
        assert byte_chunker.chunk("note", 100) == ["note"]

    def test_given_empty_text_when_chunked_then_no_chunks(self, byte_chunker: Chunker) -> None:
        assert byte_chunker.chunk("", 10) == []

    def test_given_split_multibyte_symbol_when_chunked_then_symbol_kept_whole(
        self, byte_chunker: Chunker
    ) -> None:
        """A symbol split across a token boundary moves into the next chunk."""
        # Given: "é" is two bytes; the first group ends on its lead byte
        text = "aé"

        # When
        chunks = list(byte_chunker.iter_chunks(text, 2))

        # Then
        assert [c.text for c in chunks] == ["a", "é"]
        assert "�" not in "".join(c.text for c in chunks)

    def test_given_symbol_wider_than_bound_when_chunked_then_groups_merge(
        self, byte_chunker: Chunker
    ) -> None:
        """Groups that hold only part of a symbol are folded into the next one."""
        chunks = list(byte_chunker.iter_chunks("€", 1))

        assert len(chunks) == 1
        assert chunks[0].text == "€"
        assert chunks[0].token_count == 3

    @pytest.mark.parametrize("max_tokens", [1, 2, 3, 5, 7, 64])
    def test_given_mixed_text_when_chunked_then_concatenation_is_original(
        self, byte_chunker: Chunker, max_tokens: int
    ) -> None:
        text = "Notes: café, naïve, 日本語, emoji 🙂 and <|endoftext|> markup.\n" * 3

        chunks = byte_chunker.chunk(text, max_tokens)

        assert "".join(chunks) == text
        assert all(chunk for chunk in chunks)

    def test_given_bound_when_chunked_then_each_ascii_chunk_within_bound(
        self, byte_chunker: Chunker
    ) -> None:
        text = "x" * 1000

        chunks = list(byte_chunker.iter_chunks(text, 64))

        assert len(chunks) == 16
        assert all(c.token_count <= 64 for c in chunks)

    @pytest.mark.parametrize("max_tokens", [0, -1])
    def test_given_non_positive_bound_then_value_error(
        self, byte_chunker: Chunker, max_tokens: int
    ) -> None:
        with pytest.raises(ValueError):
            byte_chunker.chunk("text", max_tokens)

    def test_given_encoder_failure_then_encoding_error(self) -> None:
        chunker = Chunker(encoding=_BrokenEncoding())

        with pytest.raises(EncodingError) as exc_info:
            chunker.chunk("text", 10)

        assert exc_info.value.details == {"encoding": "broken"}

    def test_count_tokens(self, byte_chunker: Chunker) -> None:
        assert byte_chunker.count_tokens("abc") == 3
        assert byte_chunker.count_tokens("é") == 2

    def test_given_no_model_or_encoding_then_value_error(self) -> None:
        with pytest.raises(ValueError):
            Chunker()


@pytest.mark.network
class TestTiktokenEncoding:
    """Chunking with the real model encoding (needs tiktoken's BPE files)."""

    @pytest.fixture
    def chunker(self) -> Chunker:
        try:
            encoding = encoding_for_model("text-embedding-ada-002")
        except Exception as e:
            pytest.skip(f"tiktoken encoding unavailable: {e}")
        return Chunker(encoding=encoding)

    def test_special_token_markup_is_plain_text(self, chunker: Chunker) -> None:
        text = "before <|endoftext|> after"

        assert "".join(chunker.chunk(text, 3)) == text

    def test_multibyte_text_round_trips_at_every_bound(self, chunker: Chunker) -> None:
        text = "日本語のノート。🙂🙂 Ünïcödé text with emoji 🧠."

        for bound in range(1, 8):
            chunks = chunker.chunk(text, bound)
            assert "".join(chunks) == text
            assert "�" not in "".join(chunks)

    def test_unknown_model_falls_back(self) -> None:
        try:
            encoding = encoding_for_model("some-private-model")
        except Exception as e:
            pytest.skip(f"tiktoken encoding unavailable: {e}")

        assert encoding.name == "cl100k_base"
