"""Text chunking with sentence-aligned, overlapping windows.

Splits normalized text into :class:`~mindweave.models.ingestion.ContentChunk`
objects of at most ~1000 characters, carrying up to ~200 characters of the
previous chunk forward so that a thought spanning a boundary appears whole
in at least one chunk.

The algorithm:

1. Split the text into sentences (runs ending in ``.``, ``!`` or ``?``; a
   trailing fragment without a terminator is its own sentence).
2. Append sentences to the current chunk until the next one would exceed
   ``max_chunk_size``; then close the chunk and start the next one with the
   tail of the closed chunk, snapped forward to a sentence start (or, when
   the tail holds no sentence break, to a word start).
3. A sentence longer than ``max_chunk_size`` on its own is split at word
   boundaries instead; those pieces carry no overlap.

Every character of the input lands in some chunk, so concatenating each
chunk's ``text[metadata.overlap_chars:]`` reproduces the input up to
whitespace.  Token counts use the ``ceil(chars / 4)`` approximation rather
than a real tokenizer.

Also provides the pure text helpers the connectors and ingestion service
share: :func:`normalize_whitespace`, :func:`remove_boilerplate`,
:func:`generate_content_hash`, :func:`build_summary`.
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import Any

import structlog

from mindweave.models.ingestion import ChunkMetadata, ContentChunk, SourceType
from mindweave.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200

# Every character belongs to exactly one match: text up to and including a
# run of terminators, or a run of terminators with nothing before it.
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*|[.!?]+")
_SENTENCE_START_RE = re.compile(r"[.!?]\s+(\S.*)$", re.DOTALL)
_WORD_START_RE = re.compile(r"\s+(\S.*)$", re.DOTALL)

_BOILERPLATE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"cookie policy",
        r"privacy policy",
        r"terms of service",
        r"subscribe to our newsletter",
        r"follow us on",
        r"share this article",
    )
]

_METADATA_KEYS = ("title", "url", "author", "timestamp")


# ---------------------------------------------------------------------------
# Pure text helpers
# ---------------------------------------------------------------------------


def normalize_whitespace(text: str) -> str:
    """CRLF to LF, tabs to spaces, collapse space runs, at most one blank line, trim."""
    text = text.replace("\r\n", "\n").replace("\t", " ")
    text = re.sub(r" +", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def remove_boilerplate(text: str) -> str:
    """Remove common cookie/privacy/newsletter phrases (case-insensitive)."""
    for pattern in _BOILERPLATE_PATTERNS:
        text = pattern.sub("", text)
    return text


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def generate_content_hash(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 text, used for deduplication."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def count_words(text: str) -> int:
    return len(text.split())


def build_summary(text: str, max_words: int = 100) -> str:
    """First ``max_words`` words, with ``...`` appended when truncated."""
    words = text.split()
    summary = " ".join(words[:max_words])
    if len(words) > max_words:
        summary += "..."
    return summary


class TextChunker:
    """Splits text into overlapping, sentence-aligned chunks.

    Parameters
    ----------
    max_chunk_size:
        Target maximum characters per chunk (default 1000).  A chunk that
        starts with overlap may exceed it by at most ``overlap + 1``.
    overlap:
        Maximum characters carried over from the previous chunk (default 200).
    """

    def __init__(
        self,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> None:
        self._check_sizes(max_chunk_size, overlap)
        self._max_chunk_size = max_chunk_size
        self._overlap = overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk_text(
        self,
        text: str,
        source_type: SourceType,
        metadata: dict[str, Any] | None = None,
        max_chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> list[ContentChunk]:
        """Split *text* into :class:`ContentChunk` objects.

        Parameters
        ----------
        text:
            Normalized text to chunk.
        source_type:
            Copied into every chunk's metadata.
        metadata:
            Optional ``title``/``url``/``author``/``timestamp`` copied into
            every chunk.  Other keys are ignored.
        max_chunk_size, overlap:
            Per-call overrides of the constructor defaults.

        Returns
        -------
        list[ContentChunk]
            Ordered chunks with contiguous ``chunk_index`` values and
            ``total_chunks`` equal to the list length.  Blank input returns
            an empty list.

        Raises
        ------
        ValidationError
            If ``overlap`` is not smaller than ``max_chunk_size``.
        """
        max_size = max_chunk_size or self._max_chunk_size
        overlap_size = self._overlap if overlap is None else overlap
        self._check_sizes(max_size, overlap_size)

        if not text or not text.strip():
            return []

        pieces = self._accumulate(text, max_size, overlap_size)
        content_hash = generate_content_hash(text)
        shared = {key: metadata.get(key) for key in _METADATA_KEYS} if metadata else {}
        if shared.get("timestamp") is not None:
            shared["timestamp"] = str(shared["timestamp"])

        # total_chunks is only known once every piece exists.
        chunks = [
            ContentChunk(
                id=f"{content_hash[:12]}-{index}",
                text=piece,
                tokens_estimate=estimate_tokens(piece),
                metadata=ChunkMetadata(
                    chunk_index=index,
                    total_chunks=len(pieces),
                    source_type=source_type,
                    overlap_chars=carried,
                    **shared,
                ),
            )
            for index, (piece, carried) in enumerate(pieces)
        ]
        logger.debug(
            "text_chunked",
            source_type=source_type.value,
            chars=len(text),
            chunks=len(chunks),
        )
        return chunks

    # ------------------------------------------------------------------
    # Window accumulation
    # ------------------------------------------------------------------

    def _accumulate(self, text: str, max_size: int, overlap_size: int) -> list[tuple[str, int]]:
        """Return ``(chunk_text, overlap_chars)`` pairs in order."""
        pieces: list[tuple[str, int]] = []
        current = ""
        carried = 0

        for sentence in self._split_sentences(text):
            if len(sentence) > max_size:
                if current:
                    pieces.append((current, carried))
                word_pieces = self._split_words(sentence, max_size)
                pieces.extend((piece, 0) for piece in word_pieces[:-1])
                current, carried = word_pieces[-1], 0
                continue

            if not current:
                current = sentence
            elif len(current) + 1 + len(sentence) > max_size:
                pieces.append((current, carried))
                tail = self._overlap_tail(current, overlap_size)
                if tail:
                    current, carried = f"{tail} {sentence}", len(tail) + 1
                else:
                    current, carried = sentence, 0
            else:
                current = f"{current} {sentence}"

        if current:
            pieces.append((current, carried))
        return pieces

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        sentences = (match.group(0).strip() for match in _SENTENCE_RE.finditer(text))
        return [sentence for sentence in sentences if sentence]

    @staticmethod
    def _split_words(sentence: str, max_size: int) -> list[str]:
        """Pack words into pieces of at most ``max_size`` characters.

        A single word longer than ``max_size`` is cut into fixed slices.
        """
        pieces: list[str] = []
        current = ""
        for word in sentence.split():
            while len(word) > max_size:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.append(word[:max_size])
                word = word[max_size:]
            if not word:
                continue
            if not current:
                current = word
            elif len(current) + 1 + len(word) > max_size:
                pieces.append(current)
                current = word
            else:
                current = f"{current} {word}"
        if current:
            pieces.append(current)
        return pieces

    @staticmethod
    def _overlap_tail(text: str, overlap_size: int) -> str:
        """Last ``overlap_size`` chars of *text*, snapped to a sentence or word start."""
        if overlap_size <= 0:
            return ""
        if len(text) <= overlap_size:
            return text
        tail = text[-overlap_size:]
        match = _SENTENCE_START_RE.search(tail) or _WORD_START_RE.search(tail)
        return match.group(1) if match else tail

    @staticmethod
    def _check_sizes(max_chunk_size: int, overlap: int) -> None:
        if max_chunk_size <= 0:
            raise ValidationError(message="max_chunk_size must be positive")
        if overlap < 0 or overlap >= max_chunk_size:
            raise ValidationError(message="overlap must be between 0 and max_chunk_size - 1")
