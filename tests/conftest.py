"""Shared pytest fixtures for the Thinkr test suite."""

from __future__ import annotations

import hashlib
import json
import struct
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from thinkr.interfaces.embedding_provider import IEmbeddingProvider
from thinkr.interfaces.llm_provider import ILLMProvider
from thinkr.interfaces.vector_store_provider import IVectorStoreProvider
from thinkr.models.rag import DocumentChunk, RetrievedChunk, make_chunk_id
from thinkr.providers.metadata.sqlite_metadata_store import SQLiteMetadataStore
from thinkr.providers.storage.local_object_store import LocalObjectStore

# ---------------------------------------------------------------------------
# Canned LLM output
# ---------------------------------------------------------------------------

FLASHCARDS_JSON = json.dumps(
    {
        "items": [
            {"front": "Photosynthesis", "back": "Conversion of light into chemical energy."},
            {"front": "Chlorophyll", "back": "Green pigment that absorbs light."},
        ]
    }
)

QUIZ_JSON = json.dumps(
    {
        "items": [
            {
                "question": "Which pigment absorbs light in plants?",
                "answer": "B",
                "options": {"A": "Keratin", "B": "Chlorophyll", "C": "Melanin", "D": "Heme"},
            }
        ]
    }
)


def structured_response(schema_name: str) -> str:
    """Valid generator output for *schema_name*."""
    return FLASHCARDS_JSON if schema_name == "flashcards" else QUIZ_JSON


# ---------------------------------------------------------------------------
# Embedding / vector store fakes
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Same text always produces the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    values = [v if v == v and abs(v) < 1e30 else 0.0 for v in struct.unpack(f"<{dim}f", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class InMemoryVectorStore(IVectorStoreProvider):
    """Dict-backed vector store ranking by dot product of hash vectors."""

    def __init__(self, embedding_provider: IEmbeddingProvider | None = None) -> None:
        self._embedder = embedding_provider or MockEmbeddingProvider()
        self._store: dict[str, tuple[DocumentChunk, list[float]]] = {}

    async def upsert(self, owner_id: str, document_id: str, chunks: list[DocumentChunk]) -> int:
        vectors = await self._embedder.embed([c.text for c in chunks])
        for chunk, vector in zip(chunks, vectors, strict=True):
            self._store[chunk.chunk_id] = (chunk, vector)
        keep = {c.chunk_id for c in chunks}
        for chunk_id, (chunk, _) in list(self._store.items()):
            if (
                chunk.owner_id == owner_id
                and chunk.document_id == document_id
                and chunk_id not in keep
            ):
                del self._store[chunk_id]
        return len(chunks)

    async def query(
        self,
        owner_id: str,
        query_text: str,
        top_k: int = 5,
        document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        query_vec = await self._embedder.embed_single(query_text)
        scored = []
        for chunk, vector in self._store.values():
            if chunk.owner_id != owner_id:
                continue
            if document_id is not None and chunk.document_id != document_id:
                continue
            score = max(-1.0, min(1.0, sum(a * b for a, b in zip(query_vec, vector))))
            scored.append(RetrievedChunk(chunk=chunk, similarity_score=score))
        scored.sort(key=lambda r: r.similarity_score, reverse=True)
        return scored[:top_k]

    async def get_document_chunks(self, owner_id: str, document_id: str) -> list[DocumentChunk]:
        chunks = [
            c
            for c, _ in self._store.values()
            if c.owner_id == owner_id and c.document_id == document_id
        ]
        return sorted(chunks, key=lambda c: c.index)

    async def delete(self, owner_id: str, document_id: str) -> int:
        doomed = [
            cid
            for cid, (c, _) in self._store.items()
            if c.owner_id == owner_id and c.document_id == document_id
        ]
        for cid in doomed:
            del self._store[cid]
        return len(doomed)

    def get_provider_name(self) -> str:
        return "in-memory"

    def is_available(self) -> bool:
        return True


def make_chunk(
    owner_id: str = "alice",
    document_id: str = "doc-1",
    index: int = 0,
    text: str = "Plants convert light into chemical energy.",
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=make_chunk_id(owner_id, document_id, index),
        owner_id=owner_id,
        document_id=document_id,
        index=index,
        text=text,
        token_count=len(text) // 4,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider with valid study-material output.

    ``complete`` returns a fixed reply; ``structured_generate`` returns
    valid JSON for whichever ``schema_name`` it is asked for.  Override
    ``side_effect`` for failure tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.validate_credentials = AsyncMock(return_value=True)
    mock.complete = AsyncMock(return_value="Chlorophyll absorbs light.")

    async def _structured(system_prompt, user_prompt, schema_name, json_schema, temperature=0.3):
        return structured_response(schema_name)

    mock.structured_generate = AsyncMock(side_effect=_structured)
    return mock


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store(embedding_provider: MockEmbeddingProvider) -> InMemoryVectorStore:
    return InMemoryVectorStore(embedding_provider)


@pytest.fixture
def object_store(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(base_dir=tmp_path / "objects")


@pytest_asyncio.fixture
async def metadata_store(tmp_path: Path) -> SQLiteMetadataStore:
    """An initialised SQLite store in a temp directory."""
    store = SQLiteMetadataStore(db_path=tmp_path / "thinkr.db")
    await store.initialize()
    return store
