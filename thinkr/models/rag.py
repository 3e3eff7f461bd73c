"""Retrieval data models: chunks, search hits and ingestion results.

Chunks are produced only by :class:`~thinkr.services.ingestion.chunker.TextChunker`
and are keyed by ``(document_id, index)`` within an owner's scope.  The
``chunk_id`` is derived from that key, so re-ingesting a document upserts
the same records instead of duplicating them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

_CHUNK_NAMESPACE = uuid.UUID("6f1c7d1e-3c53-4bde-9a55-5d0d7f6b9c21")


def make_chunk_id(owner_id: str, document_id: str, index: int) -> str:
    """Return the stable storage id for chunk *index* of a document."""
    return str(uuid.uuid5(_CHUNK_NAMESPACE, f"{owner_id}\x1f{document_id}\x1f{index}"))


# ---------------------------------------------------------------------------
# DocumentChunk - the unit stored in the vector store.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded, paragraph-respecting slice of one document's text."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Stable id derived from owner, document and index.")
    owner_id: str = Field(description="Tenant the chunk belongs to.")
    document_id: str = Field(description="Parent document id.")
    index: int = Field(ge=0, description="Position of the chunk within its document.")
    text: str = Field(description="The chunk's textual content.")
    token_count: int = Field(default=0, ge=0, description="Approximate token count (chars / 4).")


# ---------------------------------------------------------------------------
# RetrievedChunk - a search hit from the vector store.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A chunk returned from a similarity query with its score."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk = Field(description="The retrieved chunk.")
    similarity_score: float = Field(
        default=0.0,
        ge=-1.0,
        le=1.0,
        description="Cosine similarity between the query and this chunk.",
    )


# ---------------------------------------------------------------------------
# IngestionResult - summary of one ingestion run.
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Statistics from ingesting one document."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    document_id: str
    chunks_created: int = Field(default=0, ge=0)
    flashcards_created: int = Field(default=0, ge=0)
    quiz_items_created: int = Field(default=0, ge=0)
    ready: bool = False
    errors: list[str] = Field(default_factory=list)
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")
    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
