"""Unit tests for the ChromaDB vector store provider.

Runs against a real ``PersistentClient`` in a temporary directory with the
deterministic hash embeddings from conftest.  Covers idempotent upserts,
stale-chunk removal, owner isolation in both tenancy layouts, document
scoping, deletes, and degradation when the client fails.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tests.conftest import MockEmbeddingProvider, make_chunk
from thinkr.providers.vector_store.chromadb_provider import ChromaDBProvider
from thinkr.utils.errors import StoreUnavailableError


def _chunks(owner_id: str, document_id: str, *texts: str):
    return [make_chunk(owner_id, document_id, i, t) for i, t in enumerate(texts)]


@pytest.fixture(params=["shared", "per_owner"])
def provider(request, tmp_path) -> ChromaDBProvider:
    return ChromaDBProvider(
        embedding_provider=MockEmbeddingProvider(),
        persist_directory=str(tmp_path / f"chromadb-{request.param}"),
        tenancy=request.param,
    )


class TestUpsert:
    @pytest.mark.asyncio
    async def test_reupsert_is_idempotent(self, provider: ChromaDBProvider) -> None:
        chunks = _chunks("alice", "doc-1", "Mitochondria make ATP.", "Ribosomes make protein.")

        await provider.upsert("alice", "doc-1", chunks)
        await provider.upsert(
            "alice", "doc-1", _chunks("alice", "doc-1", "Mitochondria make ATP.", "Revised.")
        )

        stored = await provider.get_document_chunks("alice", "doc-1")
        assert [c.chunk_id for c in stored] == [c.chunk_id for c in chunks]
        assert stored[1].text == "Revised."

    @pytest.mark.asyncio
    async def test_shorter_reingest_drops_stale_chunks(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "one", "two", "three"))

        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "uno"))

        stored = await provider.get_document_chunks("alice", "doc-1")
        assert [(c.index, c.text) for c in stored] == [(0, "uno")]

    @pytest.mark.asyncio
    async def test_rejects_chunk_for_another_owner(self, provider: ChromaDBProvider) -> None:
        with pytest.raises(ValueError):
            await provider.upsert("alice", "doc-1", _chunks("bob", "doc-1", "not yours"))

    @pytest.mark.asyncio
    async def test_chunks_returned_in_index_order(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", *"abcdefghijkl"))

        stored = await provider.get_document_chunks("alice", "doc-1")

        assert [c.index for c in stored] == list(range(12))
        assert stored[0].owner_id == "alice"


class TestQuery:
    @pytest.mark.asyncio
    async def test_exact_text_ranks_first(self, provider: ChromaDBProvider) -> None:
        await provider.upsert(
            "alice",
            "doc-1",
            _chunks("alice", "doc-1", "photosynthesis in leaves", "the krebs cycle", "osmosis"),
        )

        results = await provider.query("alice", "the krebs cycle", top_k=3)

        assert results[0].chunk.text == "the krebs cycle"
        assert results[0].similarity_score == pytest.approx(1.0, abs=1e-4)
        scores = [r.similarity_score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_never_returns_other_owners_chunks(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "shared words"))
        await provider.upsert("bob", "doc-1", _chunks("bob", "doc-1", "shared words", "more"))

        results = await provider.query("alice", "shared words", top_k=10)

        assert len(results) == 1
        assert all(r.chunk.owner_id == "alice" for r in results)

    @pytest.mark.asyncio
    async def test_document_scope(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "cells", "tissues"))
        await provider.upsert("alice", "doc-2", _chunks("alice", "doc-2", "cells again"))

        results = await provider.query("alice", "cells", top_k=5, document_id="doc-2")

        assert [r.chunk.document_id for r in results] == ["doc-2"]

    @pytest.mark.asyncio
    async def test_top_k_larger_than_population(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "only one"))

        assert len(await provider.query("alice", "anything", top_k=50)) == 1

    @pytest.mark.asyncio
    async def test_unknown_owner_gets_empty_list(self, provider: ChromaDBProvider) -> None:
        assert await provider.query("nobody", "anything") == []

    @pytest.mark.asyncio
    async def test_non_positive_top_k(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "text"))
        assert await provider.query("alice", "text", top_k=0) == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_only_that_document(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("alice", "doc-1", _chunks("alice", "doc-1", "a", "b"))
        await provider.upsert("alice", "doc-2", _chunks("alice", "doc-2", "c"))
        await provider.upsert("bob", "doc-1", _chunks("bob", "doc-1", "d"))

        assert await provider.delete("alice", "doc-1") == 2

        assert await provider.get_document_chunks("alice", "doc-1") == []
        assert len(await provider.get_document_chunks("alice", "doc-2")) == 1
        assert len(await provider.get_document_chunks("bob", "doc-1")) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_document(self, provider: ChromaDBProvider) -> None:
        assert await provider.delete("alice", "ghost") == 0


class TestTenancy:
    def test_collection_names(self, tmp_path) -> None:
        client = MagicMock()
        shared = ChromaDBProvider(MockEmbeddingProvider(), client=client)
        per_owner = ChromaDBProvider(MockEmbeddingProvider(), tenancy="per_owner", client=client)

        assert shared.collection_name_for("alice") == "thinkr_chunks"
        assert per_owner.collection_name_for("alice") == "user_alice"
        hashed = per_owner.collection_name_for("alice@example.com")
        assert hashed.startswith("user_")
        assert "@" not in hashed

    def test_unknown_tenancy_rejected(self) -> None:
        with pytest.raises(ValueError):
            ChromaDBProvider(MockEmbeddingProvider(), tenancy="global", client=MagicMock())


class TestFailures:
    @pytest.fixture()
    def broken(self) -> ChromaDBProvider:
        client = MagicMock()
        client.get_or_create_collection.side_effect = RuntimeError("disk full")
        client.heartbeat.side_effect = RuntimeError("down")
        return ChromaDBProvider(MockEmbeddingProvider(), client=client)

    @pytest.mark.asyncio
    async def test_query_degrades_to_empty(self, broken: ChromaDBProvider) -> None:
        assert await broken.query("alice", "anything") == []

    @pytest.mark.asyncio
    async def test_get_document_chunks_degrades_to_empty(self, broken: ChromaDBProvider) -> None:
        assert await broken.get_document_chunks("alice", "doc-1") == []

    @pytest.mark.asyncio
    async def test_upsert_raises_store_unavailable(self, broken: ChromaDBProvider) -> None:
        with pytest.raises(StoreUnavailableError):
            await broken.upsert("alice", "doc-1", _chunks("alice", "doc-1", "text"))

    @pytest.mark.asyncio
    async def test_delete_raises_store_unavailable(self, broken: ChromaDBProvider) -> None:
        with pytest.raises(StoreUnavailableError):
            await broken.delete("alice", "doc-1")

    def test_is_available_false(self, broken: ChromaDBProvider) -> None:
        assert broken.is_available() is False
