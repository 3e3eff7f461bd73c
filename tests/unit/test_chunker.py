"""Unit tests for the TextChunker - paragraph-preserving chunking."""

from __future__ import annotations

import pytest

from thinkr.models.rag import make_chunk_id
from thinkr.services.ingestion.chunker import TextChunker, estimate_tokens

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PARAGRAPHS = [
    "Photosynthesis converts light energy into chemical energy stored in glucose.",
    "The light-dependent reactions take place in the thylakoid membranes.",
    "The Calvin cycle fixes carbon dioxide in the stroma of the chloroplast.",
    "Chlorophyll a and chlorophyll b absorb mostly blue and red wavelengths.",
]


def _make_chunker(max_chars: int = 1000) -> TextChunker:
    return TextChunker(max_chars=max_chars)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestSplit:
    def test_empty_input_returns_no_chunks(self) -> None:
        chunker = _make_chunker()
        assert chunker.split("") == []
        assert chunker.split("   \n\n  \n") == []

    def test_single_paragraph_within_limit_is_one_trimmed_chunk(self) -> None:
        chunker = _make_chunker(max_chars=200)
        text = "  A single paragraph\nwith a soft line break.  "

        assert chunker.split(text) == ["A single paragraph\nwith a soft line break."]

    def test_overflow_splits_at_paragraph_boundary(self) -> None:
        a, b = "A" * 30, "B" * 20
        chunker = _make_chunker(max_chars=len(a) + len(b) - 1)

        assert chunker.split(f"{a}\n\n{b}") == [a, b]

    def test_separator_counts_towards_limit(self) -> None:
        a, b = "A" * 10, "B" * 10
        # 10 + 2 + 10 = 22 characters when joined
        assert _make_chunker(max_chars=22).split(f"{a}\n\n{b}") == [f"{a}\n\n{b}"]
        assert _make_chunker(max_chars=21).split(f"{a}\n\n{b}") == [a, b]

    def test_oversized_paragraph_is_emitted_whole(self) -> None:
        long_paragraph = "x" * 500
        chunker = _make_chunker(max_chars=100)

        chunks = chunker.split(f"short\n\n{long_paragraph}\n\ntail")

        assert chunks == ["short", long_paragraph, "tail"]

    def test_blank_lines_with_whitespace_count_as_breaks(self) -> None:
        chunker = _make_chunker(max_chars=5)
        assert chunker.split("one\n   \t\ntwo") == ["one", "two"]

    def test_chunks_never_cut_a_paragraph(self) -> None:
        text = "\n\n".join(_PARAGRAPHS)
        chunks = _make_chunker(max_chars=160).split(text)

        rebuilt = [p for chunk in chunks for p in chunk.split("\n\n")]
        assert rebuilt == _PARAGRAPHS
        assert all(len(c) <= 160 for c in chunks)

    def test_rechunking_a_fitting_chunk_is_a_no_op(self) -> None:
        chunker = _make_chunker(max_chars=160)
        for chunk in chunker.split("\n\n".join(_PARAGRAPHS)):
            assert chunker.split(chunk) == [chunk]

    def test_per_call_limit_overrides_instance_limit(self) -> None:
        chunker = _make_chunker(max_chars=10_000)
        text = "\n\n".join(_PARAGRAPHS)
        assert len(chunker.split(text)) == 1
        assert len(chunker.split(text, max_chars=80)) == len(_PARAGRAPHS)

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(max_chars=0)


class TestChunk:
    def test_assigns_indices_and_stable_ids(self) -> None:
        chunker = _make_chunker(max_chars=80)
        text = "\n\n".join(_PARAGRAPHS)

        first = chunker.chunk("alice", "doc-1", text)
        second = chunker.chunk("alice", "doc-1", text)

        assert [c.index for c in first] == list(range(len(first)))
        assert [c.chunk_id for c in first] == [c.chunk_id for c in second]
        assert first[2].chunk_id == make_chunk_id("alice", "doc-1", 2)
        assert all(c.owner_id == "alice" and c.document_id == "doc-1" for c in first)

    def test_chunk_ids_differ_between_owners(self) -> None:
        chunker = _make_chunker()
        alice = chunker.chunk("alice", "doc-1", "same text")
        bob = chunker.chunk("bob", "doc-1", "same text")
        assert alice[0].chunk_id != bob[0].chunk_id

    def test_token_estimate_is_quarter_of_length(self) -> None:
        chunks = _make_chunker().chunk("alice", "doc-1", "x" * 400)
        assert chunks[0].token_count == 100
        assert estimate_tokens("abc") == 0
