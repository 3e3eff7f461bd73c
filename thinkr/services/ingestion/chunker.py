"""Paragraph-preserving text chunking.

Splits extracted document text into chunks no longer than ``max_chars``
while never cutting a paragraph.  Paragraphs are separated by a blank line
(a newline, optional whitespace, newline).  Paragraphs are accumulated
greedily; when the next one would push the current chunk past the limit,
the chunk is flushed and the paragraph starts a new one.  A single
paragraph longer than the limit becomes a chunk on its own.

The algorithm is deterministic, so re-ingesting the same text yields the
same chunks with the same stable ids.
"""

from __future__ import annotations

import re

import structlog

from thinkr.models.rag import DocumentChunk, make_chunk_id

logger = structlog.get_logger(logger_name=__name__)

PARAGRAPH_SEPARATOR = "\n\n"

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters."""
    return len(text) // 4


class TextChunker:
    """Splits text into paragraph-aligned chunks of bounded length.

    Parameters
    ----------
    max_chars:
        Upper bound on chunk length in characters (default 1000).  Only a
        single oversized paragraph may exceed it.
    """

    def __init__(self, max_chars: int = 1000) -> None:
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self._max_chars = max_chars

    @property
    def max_chars(self) -> int:
        return self._max_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str, max_chars: int | None = None) -> list[str]:
        """Split *text* into chunk strings.

        Parameters
        ----------
        text:
            The full text to chunk.
        max_chars:
            Overrides the instance limit for this call.

        Returns
        -------
        list[str]
            Trimmed, non-empty chunks in document order.  Empty or
            whitespace-only input returns ``[]``.
        """
        limit = max_chars if max_chars is not None else self._max_chars
        if not text or not text.strip():
            return []

        chunks: list[str] = []
        current: list[str] = []
        current_length = 0

        for paragraph in self._split_paragraphs(text):
            candidate_length = len(paragraph) + (len(PARAGRAPH_SEPARATOR) if current else 0)
            if current and current_length + candidate_length > limit:
                chunks.append(PARAGRAPH_SEPARATOR.join(current))
                current = [paragraph]
                current_length = len(paragraph)
            else:
                current.append(paragraph)
                current_length += candidate_length

        if current:
            chunks.append(PARAGRAPH_SEPARATOR.join(current))
        return chunks

    def chunk(self, owner_id: str, document_id: str, text: str) -> list[DocumentChunk]:
        """Split *text* and wrap each piece as a :class:`DocumentChunk`.

        Chunk ids are derived from ``(owner_id, document_id, index)``.
        """
        pieces = self.split(text)
        chunks = [
            DocumentChunk(
                chunk_id=make_chunk_id(owner_id, document_id, index),
                owner_id=owner_id,
                document_id=document_id,
                index=index,
                text=piece,
                token_count=estimate_tokens(piece),
            )
            for index, piece in enumerate(pieces)
        ]

        oversized = sum(1 for piece in pieces if len(piece) > self._max_chars)
        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=len(chunks),
            oversized_paragraphs=oversized,
        )
        return chunks

    # ------------------------------------------------------------------
    # Paragraph splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding blanks."""
        parts = _PARAGRAPH_BREAK_RE.split(text)
        return [p.strip() for p in parts if p.strip()]
