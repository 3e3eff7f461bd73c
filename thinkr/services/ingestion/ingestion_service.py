"""Orchestrator for the per-document ingestion pipeline.

Pipeline stages: **extract -> chunk -> embed/store -> generate -> mark ready**.

The :class:`IngestionService` coordinates five collaborators without any of
them knowing about each other:

    1. ExtractionJobPoller -- turns the stored object into text
    2. TextChunker -- paragraph-aligned chunks with stable ids
    3. IVectorStoreProvider -- embeds and upserts the chunks
    4. StudyMaterialService -- flashcards and quiz, each kind independent
    5. IMetadataStore -- ``ready`` once both sets exist, else the error

Ingestion normally runs detached via :meth:`IngestionService.schedule`; the
upload request returns before extraction starts.  Any failure is recorded
on the document and the document stays not-ready.  There is no automatic
retry; re-running is safe because every store write is an upsert.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from thinkr.models.rag import IngestionResult
from thinkr.utils.errors import ExtractionError, NotFoundError, ThinkrError

if TYPE_CHECKING:
    from thinkr.interfaces.metadata_store import IMetadataStore
    from thinkr.interfaces.vector_store_provider import IVectorStoreProvider
    from thinkr.services.ingestion.chunker import TextChunker
    from thinkr.services.ingestion.extraction_poller import ExtractionJobPoller
    from thinkr.services.study_material_service import StudyMaterialService

logger = structlog.get_logger(logger_name=__name__)

_TaskKey = tuple[str, str]


class IngestionService:
    """Runs and tracks ingestion for uploaded documents.

    Parameters
    ----------
    metadata_store:
        Document records; receives ready/error status.
    poller:
        Extraction job driver.
    chunker:
        Splits extracted text.
    vector_store:
        Chunk persistence and embedding.
    study_service:
        Generates and stores both study-material kinds.
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        poller: ExtractionJobPoller,
        chunker: TextChunker,
        vector_store: IVectorStoreProvider,
        study_service: StudyMaterialService,
    ) -> None:
        self._store = metadata_store
        self._poller = poller
        self._chunker = chunker
        self._vector_store = vector_store
        self._study = study_service
        self._tasks: dict[_TaskKey, asyncio.Task[IngestionResult | None]] = {}

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def ingest(self, owner_id: str, document_id: str) -> IngestionResult:
        """Run the full pipeline for one document.

        Pipeline failures (:class:`ThinkrError`) are recorded on the document
        and reported in the result rather than raised.

        Raises
        ------
        NotFoundError
            If the document record does not exist.
        """
        document = await self._store.get_document(owner_id, document_id)
        if document is None:
            raise NotFoundError(message=f"Document {document_id!r} not found for {owner_id!r}")

        start = time.monotonic()
        chunks_created = 0
        try:
            text = await self._poller.extract(document.object_ref)
            chunks = self._chunker.chunk(owner_id, document_id, text)
            if not chunks:
                raise ExtractionError(message="Extracted text produced no chunks")
            chunks_created = await self._vector_store.upsert(owner_id, document_id, chunks)

            material = await self._study.generate_and_store(
                owner_id,
                document_id,
                "\n\n".join(chunk.text for chunk in chunks),
            )
        except ThinkrError as exc:
            await self._store.record_ingestion_error(owner_id, document_id, str(exc))
            elapsed = time.monotonic() - start
            logger.warning(
                "ingestion_failed",
                owner_id=owner_id,
                document_id=document_id,
                error=str(exc),
                elapsed_s=round(elapsed, 2),
            )
            return IngestionResult(
                owner_id=owner_id,
                document_id=document_id,
                chunks_created=chunks_created,
                errors=[str(exc)],
                ingestion_time=elapsed,
            )

        errors = [f"{kind}: {message}" for kind, message in sorted(material.errors.items())]
        if material.complete:
            await self._store.mark_ready(owner_id, document_id)
        else:
            await self._store.record_ingestion_error(owner_id, document_id, "; ".join(errors))

        elapsed = time.monotonic() - start
        result = IngestionResult(
            owner_id=owner_id,
            document_id=document_id,
            chunks_created=chunks_created,
            flashcards_created=len(material.flashcards.flashcards) if material.flashcards else 0,
            quiz_items_created=len(material.quiz.quiz) if material.quiz else 0,
            ready=material.complete,
            errors=errors,
            ingestion_time=elapsed,
        )
        logger.info(
            "ingestion_complete",
            owner_id=owner_id,
            document_id=document_id,
            chunks=result.chunks_created,
            flashcards=result.flashcards_created,
            quiz_items=result.quiz_items_created,
            ready=result.ready,
            elapsed_s=round(elapsed, 2),
        )
        return result

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def schedule(self, owner_id: str, document_id: str) -> asyncio.Task[IngestionResult | None]:
        """Start :meth:`ingest` as a detached task and track it.

        A run already in progress for the same document is cancelled first.
        """
        key = (owner_id, document_id)
        previous = self._tasks.get(key)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.create_task(
            self._run(owner_id, document_id),
            name=f"ingest:{owner_id}/{document_id}",
        )
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        logger.debug("ingestion_scheduled", owner_id=owner_id, document_id=document_id)
        return task

    async def cancel(self, owner_id: str, document_id: str) -> bool:
        """Cancel a running ingestion and wait for it to unwind.

        Returns ``True`` if a running task was cancelled.
        """
        task = self._tasks.pop((owner_id, document_id), None)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.wait([task])
        logger.info("ingestion_cancelled", owner_id=owner_id, document_id=document_id)
        return True

    async def shutdown(self) -> None:
        """Cancel every tracked ingestion."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

    def is_running(self, owner_id: str, document_id: str) -> bool:
        task = self._tasks.get((owner_id, document_id))
        return task is not None and not task.done()

    async def _run(self, owner_id: str, document_id: str) -> IngestionResult | None:
        try:
            return await self.ingest(owner_id, document_id)
        except NotFoundError:
            logger.warning("ingestion_document_missing", owner_id=owner_id, document_id=document_id)
            return None
        except Exception as exc:
            logger.exception(
                "ingestion_crashed",
                owner_id=owner_id,
                document_id=document_id,
                error=str(exc),
            )
            await self._store.record_ingestion_error(owner_id, document_id, str(exc))
            return None

    def _forget(self, key: _TaskKey, task: asyncio.Task[IngestionResult | None]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
