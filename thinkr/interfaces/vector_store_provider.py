"""Abstract base class for vector-store service providers.

Defines the tenant-scoped contract for storing, querying and deleting
embedded document chunks.  Every operation takes the ``owner_id`` whose
scope it works in; no call ever sees another owner's chunks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from thinkr.models.rag import DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (thinkr/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the vector store gateway.

    Failure policy: read methods (:meth:`query`, :meth:`get_document_chunks`)
    log and return empty results when the backing store fails; write methods
    (:meth:`upsert`, :meth:`delete`) raise
    :class:`~thinkr.utils.errors.StoreUnavailableError`.
    """

    @abstractmethod
    async def upsert(
        self,
        owner_id: str,
        document_id: str,
        chunks: list[DocumentChunk],
    ) -> int:
        """Embed and store *chunks* of one document under their stable ids.

        Upserting the same ``(document_id, index)`` twice leaves exactly one
        record holding the latest text.

        Returns
        -------
        int
            Number of chunks written.
        """

    @abstractmethod
    async def query(
        self,
        owner_id: str,
        query_text: str,
        top_k: int = 5,
        document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        """Return up to *top_k* chunks nearest to *query_text*.

        Parameters
        ----------
        owner_id:
            Tenant whose chunks are searched.
        query_text:
            Natural-language query to embed and search for.
        top_k:
            Maximum number of results.
        document_id:
            Restrict the search to one document when given.

        Returns
        -------
        list[RetrievedChunk]
            Ranked by similarity, highest first.
        """

    @abstractmethod
    async def get_document_chunks(self, owner_id: str, document_id: str) -> list[DocumentChunk]:
        """Return every chunk of a document ordered by index."""

    @abstractmethod
    async def delete(self, owner_id: str, document_id: str) -> int:
        """Delete all chunks of a document.  Returns the number removed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing store is reachable."""
