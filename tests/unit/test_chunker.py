"""Unit tests for the TextChunker and the shared text helpers."""

from __future__ import annotations

import pytest

from mindweave.models.ingestion import SourceType
from mindweave.services.ingestion.chunker import (
    TextChunker,
    build_summary,
    estimate_tokens,
    generate_content_hash,
    normalize_whitespace,
    remove_boilerplate,
)
from mindweave.utils.errors import ValidationError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SAMPLE_TEXT = " ".join(
    f"Sentence number {i} talks about a different part of the history of jazz music." for i in range(40)
)


def _make_chunker(max_chunk_size: int = 200, overlap: int = 40) -> TextChunker:
    return TextChunker(max_chunk_size=max_chunk_size, overlap=overlap)


def _new_text(chunks) -> str:  # noqa: ANN001
    return " ".join(chunk.text[chunk.metadata.overlap_chars :].strip() for chunk in chunks)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBasicChunking:
    def test_multiple_chunks_for_long_text(self) -> None:
        chunks = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        assert len(chunks) > 1
        for chunk in chunks:
            assert chunk.text.strip()

    def test_short_text_is_one_chunk(self) -> None:
        chunks = _make_chunker().chunk_text("Just one short sentence.", SourceType.TEXT)

        assert len(chunks) == 1
        assert chunks[0].text == "Just one short sentence."
        assert chunks[0].metadata.overlap_chars == 0

    def test_blank_text_returns_empty_list(self) -> None:
        assert _make_chunker().chunk_text("   \n  ", SourceType.TEXT) == []
        assert _make_chunker().chunk_text("", SourceType.TEXT) == []

    def test_chunk_count_decreases_with_larger_size(self) -> None:
        small = _make_chunker(max_chunk_size=100, overlap=20).chunk_text(_SAMPLE_TEXT, SourceType.TEXT)
        large = _make_chunker(max_chunk_size=1000, overlap=100).chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        assert len(small) > len(large)


class TestChunkBounds:
    def test_chunk_length_bounded_by_size_plus_overlap(self) -> None:
        chunks = _make_chunker(max_chunk_size=200, overlap=40).chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        for chunk in chunks:
            assert len(chunk.text) <= 200 + 40 + 1

    def test_no_content_is_lost(self) -> None:
        chunks = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        assert _new_text(chunks).split() == _SAMPLE_TEXT.split()

    def test_later_chunks_carry_overlap(self) -> None:
        chunks = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        assert chunks[0].metadata.overlap_chars == 0
        assert any(chunk.metadata.overlap_chars > 0 for chunk in chunks[1:])
        for previous, chunk in zip(chunks, chunks[1:]):
            carried = chunk.metadata.overlap_chars
            if carried:
                assert previous.text.endswith(chunk.text[: carried - 1])

    def test_zero_overlap(self) -> None:
        chunks = _make_chunker(overlap=0).chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        assert all(chunk.metadata.overlap_chars == 0 for chunk in chunks)
        assert _new_text(chunks).split() == _SAMPLE_TEXT.split()

    def test_oversized_sentence_split_on_words(self) -> None:
        sentence = " ".join(["word"] * 100) + "."
        chunks = _make_chunker(max_chunk_size=50, overlap=10).chunk_text(sentence, SourceType.TEXT)

        assert len(chunks) > 1
        assert all(len(chunk.text) <= 50 + 10 + 1 for chunk in chunks)
        assert _new_text(chunks).split() == sentence.split()

    def test_single_huge_word_is_sliced(self) -> None:
        chunks = _make_chunker(max_chunk_size=10, overlap=2).chunk_text("x" * 35, SourceType.TEXT)

        assert "".join(chunk.text for chunk in chunks) == "x" * 35
        assert all(len(chunk.text) <= 10 for chunk in chunks)


class TestChunkMetadata:
    def test_indexes_and_totals(self) -> None:
        chunks = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.WEB)

        assert [chunk.metadata.chunk_index for chunk in chunks] == list(range(len(chunks)))
        assert {chunk.metadata.total_chunks for chunk in chunks} == {len(chunks)}
        assert {chunk.metadata.source_type for chunk in chunks} == {SourceType.WEB}

    def test_source_metadata_copied(self) -> None:
        chunks = _make_chunker().chunk_text(
            _SAMPLE_TEXT,
            SourceType.WEB,
            metadata={"title": "Jazz", "url": "https://example.com", "ignored": "x"},
        )

        for chunk in chunks:
            assert chunk.metadata.title == "Jazz"
            assert chunk.metadata.url == "https://example.com"

    def test_ids_are_unique_and_stable(self) -> None:
        first = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.TEXT)
        second = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        assert len({chunk.id for chunk in first}) == len(first)
        assert [chunk.id for chunk in first] == [chunk.id for chunk in second]

    def test_tokens_estimate(self) -> None:
        chunks = _make_chunker().chunk_text(_SAMPLE_TEXT, SourceType.TEXT)

        for chunk in chunks:
            assert chunk.tokens_estimate == estimate_tokens(chunk.text)


class TestSizeValidation:
    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValidationError):
            TextChunker(max_chunk_size=100, overlap=100)

    def test_negative_overlap_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TextChunker(max_chunk_size=100, overlap=-1)

    def test_per_call_override_checked(self) -> None:
        with pytest.raises(ValidationError):
            _make_chunker().chunk_text("Some text.", SourceType.TEXT, max_chunk_size=10, overlap=20)


class TestTextHelpers:
    def test_normalize_whitespace(self) -> None:
        assert normalize_whitespace("  a\r\nb\t\tc   d\n\n\n\ne  ") == "a\nb c d\n\ne"

    def test_remove_boilerplate(self) -> None:
        cleaned = remove_boilerplate("Read this. Subscribe to our newsletter! Cookie Policy")
        assert "newsletter" not in cleaned.lower()
        assert "cookie policy" not in cleaned.lower()
        assert cleaned.startswith("Read this.")

    def test_estimate_tokens_rounds_up(self) -> None:
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcde") == 2

    def test_content_hash_is_sha256(self) -> None:
        digest = generate_content_hash("hello")
        assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"

    def test_build_summary_truncates(self) -> None:
        text = " ".join(f"w{i}" for i in range(150))
        summary = build_summary(text)
        assert summary.endswith("...")
        assert len(summary[:-3].split()) == 100

    def test_build_summary_short_text_unchanged(self) -> None:
        assert build_summary("only a few words") == "only a few words"
