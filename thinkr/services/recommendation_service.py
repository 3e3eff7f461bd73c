"""Cross-user study-material suggestions by document similarity.

For a requesting owner, every ready document belonging to *other* owners is
scored by cosine similarity against the requester's own documents, and the
stored flashcards and quizzes of the best matches are offered as
suggestions.

Architecture overview
---------------------
  1. FETCH    -- the full text of each owner document and each candidate
                 (chunks joined with a space), through a semaphore-bounded
                 pool so a large candidate pool cannot flood the store.
  2. EMBED    -- every distinct text is embedded once per call in one batch.
                 If the batch call fails, texts are embedded one by one and
                 any text that still fails gets a zero vector.
  3. SCORE    -- rows are L2-normalised and multiplied into a similarity
                 matrix with NumPy.  A candidate's score is its best match
                 against any owner document.  Zero vectors score 0.
  4. RANK     -- candidates are deduplicated, sorted by score descending
                 and cut to ``limit``.

Nothing is cached between calls.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import numpy as np

from thinkr.models.recommendation import SimilarityCandidate, SuggestedMaterials
from thinkr.utils.concurrency import log_failures, throttled_gather
from thinkr.utils.logging import get_logger

if TYPE_CHECKING:
    from thinkr.interfaces.embedding_provider import IEmbeddingProvider
    from thinkr.interfaces.metadata_store import IMetadataStore
    from thinkr.interfaces.vector_store_provider import IVectorStoreProvider
    from thinkr.models.document import Document


def cosine_similarity_matrix(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarity between the rows of *left* and *right*.

    Rows with zero norm produce similarity 0 against everything.
    """
    left_norm = _normalise_rows(left)
    right_norm = _normalise_rows(right)
    return np.clip(left_norm @ right_norm.T, -1.0, 1.0)


def _normalise_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0.0, 1.0, norms)
    return np.where(norms == 0.0, 0.0, matrix / safe)


class RecommendationService:
    """Scores other users' documents against an owner's corpus.

    Parameters
    ----------
    metadata_store:
        Lists documents and reads stored study sets.
    vector_store:
        Supplies document chunks for text reconstruction.
    embedding_provider:
        Embeds document texts.
    concurrency:
        Maximum simultaneous store reads during fetches.
    public_only:
        When true, only ``PUBLIC`` documents of other owners are candidates.
    default_limit:
        Number of suggestions returned when the caller does not specify one.
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider,
        concurrency: int = 4,
        public_only: bool = False,
        default_limit: int = 5,
    ) -> None:
        self._store = metadata_store
        self._vector_store = vector_store
        self._embedder = embedding_provider
        self._concurrency = max(1, concurrency)
        self._public_only = public_only
        self._default_limit = default_limit
        self._logger = get_logger(__name__)

    @property
    def default_limit(self) -> int:
        return self._default_limit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def suggest(
        self,
        owner_id: str,
        owner_document_ids: list[str],
        limit: int | None = None,
    ) -> list[SimilarityCandidate]:
        """Return the other-owner documents most similar to *owner_document_ids*."""
        limit = self._default_limit if limit is None else limit
        if limit <= 0 or not owner_document_ids:
            return []

        candidates = self._dedupe(
            await self._store.list_other_documents(
                owner_id, public_only=self._public_only, ready_only=True
            )
        )
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self._concurrency)
        owner_texts = await self._fetch_texts(
            [(owner_id, doc_id) for doc_id in dict.fromkeys(owner_document_ids)], semaphore
        )
        owner_texts = [t for t in owner_texts if t]
        if not owner_texts:
            self._logger.info("suggestions_skipped", owner_id=owner_id, reason="no_owner_text")
            return []

        candidate_texts = await self._fetch_texts(
            [(doc.owner_id, doc.document_id) for doc in candidates], semaphore
        )
        scored_docs = [
            (doc, text) for doc, text in zip(candidates, candidate_texts, strict=True) if text
        ]
        if not scored_docs:
            return []

        distinct = list(dict.fromkeys(owner_texts + [text for _, text in scored_docs]))
        index = {text: i for i, text in enumerate(distinct)}
        vectors = await self._embed_all(distinct)

        owner_matrix = vectors[[index[t] for t in owner_texts]]
        candidate_matrix = vectors[[index[text] for _, text in scored_docs]]
        best = cosine_similarity_matrix(candidate_matrix, owner_matrix).max(axis=1)

        ranked = sorted(
            (
                SimilarityCandidate(
                    document_id=doc.document_id,
                    owner_id=doc.owner_id,
                    score=float(score),
                )
                for (doc, _), score in zip(scored_docs, best, strict=True)
            ),
            key=lambda c: c.score,
            reverse=True,
        )
        self._logger.info(
            "suggestions_scored",
            owner_id=owner_id,
            owner_documents=len(owner_texts),
            candidates=len(scored_docs),
            returned=min(limit, len(ranked)),
        )
        return ranked[:limit]

    async def get_suggested_materials(
        self,
        owner_id: str,
        document_ids: list[str] | None = None,
        limit: int | None = None,
    ) -> SuggestedMaterials:
        """Return the stored study sets of the best-matching documents.

        When *document_ids* is omitted, all of the owner's documents are used.
        """
        if document_ids is None:
            document_ids = [doc.document_id for doc in await self._store.list_documents(owner_id)]

        candidates = await self.suggest(owner_id, document_ids, limit)
        if not candidates:
            return SuggestedMaterials()

        semaphore = asyncio.Semaphore(self._concurrency)
        labels = [f"{c.owner_id}/{c.document_id}" for c in candidates]
        flashcard_results = log_failures(
            await throttled_gather(
                [
                    self._store.get_flashcards(c.owner_id, c.document_id, ready_only=True)
                    for c in candidates
                ],
                semaphore=semaphore,
            ),
            labels,
            "suggested_flashcards_fetch_failed",
            logger=self._logger,
        )
        quiz_results = log_failures(
            await throttled_gather(
                [
                    self._store.get_quizzes(c.owner_id, c.document_id, ready_only=True)
                    for c in candidates
                ],
                semaphore=semaphore,
            ),
            labels,
            "suggested_quiz_fetch_failed",
            logger=self._logger,
        )
        return SuggestedMaterials(
            candidates=candidates,
            flashcards=[s for sets in flashcard_results if sets for s in sets],
            quizzes=[s for sets in quiz_results if sets for s in sets],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _dedupe(documents: list[Document]) -> list[Document]:
        seen: dict[tuple[str, str], Document] = {}
        for doc in documents:
            seen.setdefault((doc.owner_id, doc.document_id), doc)
        return list(seen.values())

    async def _fetch_texts(
        self,
        keys: list[tuple[str, str]],
        semaphore: asyncio.Semaphore,
    ) -> list[str]:
        """Rebuild each document's text; unreadable documents yield ``""``."""
        results = await throttled_gather(
            [self._document_text(owner, doc_id) for owner, doc_id in keys],
            semaphore=semaphore,
        )
        texts = log_failures(
            results,
            [f"{owner}/{doc_id}" for owner, doc_id in keys],
            "document_text_fetch_failed",
            logger=self._logger,
        )
        return [t or "" for t in texts]

    async def _document_text(self, owner_id: str, document_id: str) -> str:
        chunks = await self._vector_store.get_document_chunks(owner_id, document_id)
        return " ".join(chunk.text for chunk in chunks).strip()

    async def _embed_all(self, texts: list[str]) -> np.ndarray:
        """Embed *texts* into a ``(len(texts), dim)`` matrix.

        Texts whose embedding fails get an all-zero row.
        """
        vectors: list[list[float] | None]
        try:
            vectors = list(await self._embedder.embed(texts))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.warning(
                "batch_embedding_failed",
                texts=len(texts),
                error=str(exc),
            )
            results = await throttled_gather(
                [self._embedder.embed_single(text) for text in texts],
                semaphore=asyncio.Semaphore(self._concurrency),
            )
            vectors = log_failures(
                results,
                [str(i) for i in range(len(texts))],
                "text_embedding_failed",
                logger=self._logger,
            )

        dimension = next((len(v) for v in vectors if v), 0) or self._embedder.get_dimension()
        matrix = np.zeros((len(texts), dimension), dtype=np.float64)
        for row, vector in enumerate(vectors):
            if vector and len(vector) == dimension:
                matrix[row] = vector
        return matrix
