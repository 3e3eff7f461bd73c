"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`
with cosine distance.  Two tenancy layouts are supported:

* ``shared`` (default): one collection; every chunk carries ``owner_id`` and
  every query filters on it.
* ``per_owner``: one ``user_<owner_id>`` collection per owner.

Collections are created lazily on first use.  ChromaDB accepts queries on
empty collections, so no placeholder record is ever seeded.
"""

from __future__ import annotations

import hashlib
import os
import re
from typing import Any, Literal

# Must be set before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from thinkr.interfaces.embedding_provider import IEmbeddingProvider
from thinkr.interfaces.vector_store_provider import IVectorStoreProvider
from thinkr.models.rag import DocumentChunk, RetrievedChunk
from thinkr.utils.errors import StoreUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_BATCH_SIZE = 500

# ChromaDB collection names: 3-63 chars, alphanumeric ends, [A-Za-z0-9_-] inside.
_SAFE_OWNER_RE = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9_-]{0,56}[A-Za-z0-9])?")


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that refuses to run.

    Every write and query passes vectors from the injected
    :class:`IEmbeddingProvider`, so ChromaDB never needs its default model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:  # noqa: A002
        raise NotImplementedError("thinkr passes pre-computed embeddings to ChromaDB")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Tenant-scoped vector store backed by ChromaDB with local persistence.

    Parameters
    ----------
    embedding_provider:
        Embeds chunk text on upsert and query text on search.
    persist_directory:
        On-disk location of the ChromaDB database.
    collection_name:
        Collection used in ``shared`` tenancy.
    tenancy:
        ``"shared"`` or ``"per_owner"``.
    client:
        Pre-built ChromaDB client; a ``PersistentClient`` is created when omitted.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "thinkr_chunks",
        tenancy: Literal["shared", "per_owner"] = "shared",
        client: Any | None = None,
    ) -> None:
        if tenancy not in ("shared", "per_owner"):
            raise ValueError(f"Unknown vector store tenancy: {tenancy!r}")
        self._embedding_provider = embedding_provider
        self._collection_name = collection_name
        self._tenancy = tenancy
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(
        self,
        owner_id: str,
        document_id: str,
        chunks: list[DocumentChunk],
    ) -> int:
        """Embed *chunks* and upsert them, then drop stale higher-index chunks.

        Re-ingesting a document that now yields fewer chunks would otherwise
        leave the old tail chunks searchable.
        """
        for chunk in chunks:
            if chunk.owner_id != owner_id or chunk.document_id != document_id:
                raise ValueError(
                    f"chunk {chunk.chunk_id} does not belong to {owner_id}/{document_id}"
                )

        embeddings = await self._embedding_provider.embed([c.text for c in chunks]) if chunks else []

        try:
            collection = self._get_collection(owner_id)
            for start in range(0, len(chunks), _UPSERT_BATCH_SIZE):
                batch = chunks[start : start + _UPSERT_BATCH_SIZE]
                collection.upsert(
                    ids=[c.chunk_id for c in batch],
                    embeddings=embeddings[start : start + _UPSERT_BATCH_SIZE],
                    documents=[c.text for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
            stale_where = self._and(
                self._where(owner_id, document_id),
                {"index": {"$gte": len(chunks)}},
            )
            stale = collection.get(where=stale_where, include=[])
            if stale["ids"]:
                collection.delete(ids=stale["ids"])
        except Exception as exc:
            raise StoreUnavailableError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_upsert",
            owner_id=owner_id,
            document_id=document_id,
            count=len(chunks),
            stale_removed=len(stale["ids"]),
        )
        return len(chunks)

    async def query(
        self,
        owner_id: str,
        query_text: str,
        top_k: int = 5,
        document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        """Search the owner's chunks; degrades to ``[]`` if the store fails."""
        if top_k <= 0:
            return []
        try:
            collection = self._get_collection(owner_id)
            where = self._where(owner_id, document_id)
            # n_results must not exceed the filtered population.
            matching = collection.get(where=where, include=[]) if where else None
            available = len(matching["ids"]) if matching is not None else collection.count()
            if available == 0:
                return []

            query_embedding = await self._embedding_provider.embed_single(query_text)
            kwargs: dict[str, Any] = {
                "query_embeddings": [query_embedding],
                "n_results": min(top_k, available),
                "include": ["documents", "metadatas", "distances"],
            }
            if where:
                kwargs["where"] = where
            results = collection.query(**kwargs)
        except Exception as exc:
            logger.warning(
                "chromadb_query_failed",
                owner_id=owner_id,
                document_id=document_id,
                error=str(exc),
            )
            return []

        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]

        retrieved = [
            RetrievedChunk(
                chunk=self._metadata_to_chunk(chunk_id, text, meta),
                similarity_score=max(-1.0, min(1.0, 1.0 - distance)),
            )
            for chunk_id, text, meta, distance in zip(
                results["ids"][0], documents, metadatas, distances, strict=True
            )
        ]
        retrieved.sort(key=lambda rc: rc.similarity_score, reverse=True)

        logger.info(
            "chromadb_query",
            owner_id=owner_id,
            document_id=document_id,
            results_count=len(retrieved),
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    async def get_document_chunks(self, owner_id: str, document_id: str) -> list[DocumentChunk]:
        """Return a document's chunks ordered by index; ``[]`` if the store fails."""
        try:
            collection = self._get_collection(owner_id)
            page = collection.get(
                where=self._where(owner_id, document_id),
                include=["documents", "metadatas"],
            )
        except Exception as exc:
            logger.warning(
                "chromadb_get_document_failed",
                owner_id=owner_id,
                document_id=document_id,
                error=str(exc),
            )
            return []

        chunks = [
            self._metadata_to_chunk(chunk_id, text, meta)
            for chunk_id, text, meta in zip(
                page["ids"], page["documents"] or [], page["metadatas"] or [], strict=True
            )
        ]
        chunks.sort(key=lambda c: c.index)
        return chunks

    async def delete(self, owner_id: str, document_id: str) -> int:
        """Delete every chunk of a document."""
        try:
            collection = self._get_collection(owner_id)
            where = self._where(owner_id, document_id)
            existing = collection.get(where=where, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                collection.delete(where=where)
        except Exception as exc:
            raise StoreUnavailableError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_document",
            owner_id=owner_id,
            document_id=document_id,
            deleted_count=count,
        )
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client answers a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Tenancy helpers
    # ------------------------------------------------------------------

    def collection_name_for(self, owner_id: str) -> str:
        """Return the collection that holds *owner_id*'s chunks."""
        if self._tenancy == "shared":
            return self._collection_name
        if _SAFE_OWNER_RE.fullmatch(owner_id):
            return f"user_{owner_id}"
        digest = hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:40]
        return f"user_{digest}"

    def _get_collection(self, owner_id: str) -> Any:
        name = self.collection_name_for(owner_id)
        collection = self._collections.get(name)
        if collection is not None:
            return collection
        try:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )
        self._collections[name] = collection
        logger.debug("chromadb_collection_ready", collection=name, tenancy=self._tenancy)
        return collection

    def _where(self, owner_id: str, document_id: str | None) -> dict[str, Any] | None:
        clauses: list[dict[str, Any]] = []
        if self._tenancy == "shared":
            clauses.append({"owner_id": owner_id})
        if document_id is not None:
            clauses.append({"document_id": document_id})
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _and(where: dict[str, Any] | None, clause: dict[str, Any]) -> dict[str, Any]:
        if where is None:
            return clause
        if "$and" in where:
            return {"$and": [*where["$and"], clause]}
        return {"$and": [where, clause]}

    # ------------------------------------------------------------------
    # Metadata conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        return {
            "owner_id": chunk.owner_id,
            "document_id": chunk.document_id,
            "index": chunk.index,
            "token_count": chunk.token_count,
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, text: str, meta: dict[str, Any]) -> DocumentChunk:
        return DocumentChunk(
            chunk_id=chunk_id,
            owner_id=str(meta.get("owner_id", "")),
            document_id=str(meta.get("document_id", "")),
            index=int(meta.get("index", 0)),
            text=text,
            token_count=int(meta.get("token_count", 0)),
        )
