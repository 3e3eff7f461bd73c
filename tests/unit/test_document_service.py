"""Unit tests for DocumentService - upload, lookup and cascading delete."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import make_chunk
from thinkr.models.document import Visibility
from thinkr.models.study import FlashcardSet, QuizSet
from thinkr.services.document_service import DocumentService, object_ref_for
from thinkr.services.ingestion.ingestion_service import IngestionService
from thinkr.utils.errors import NotFoundError


@pytest.fixture()
def ingestion() -> MagicMock:
    service = MagicMock(spec=IngestionService)
    service.cancel = AsyncMock(return_value=False)
    return service


@pytest.fixture()
def document_service(metadata_store, object_store, vector_store, ingestion) -> DocumentService:
    return DocumentService(
        metadata_store=metadata_store,
        object_store=object_store,
        vector_store=vector_store,
        ingestion_service=ingestion,
    )


class TestUpload:
    @pytest.mark.asyncio
    async def test_stores_bytes_and_schedules_ingestion(
        self, document_service, object_store, ingestion
    ) -> None:
        document = await document_service.upload("alice", "notes.txt", b"Some notes.")

        assert document.name == "notes.txt"
        assert document.ready is False
        assert document.object_ref == object_ref_for("alice", document.document_id)
        assert await object_store.get(document.object_ref) == b"Some notes."
        ingestion.schedule.assert_called_once_with("alice", document.document_id)

    @pytest.mark.asyncio
    async def test_name_and_visibility(self, document_service) -> None:
        document = await document_service.upload(
            "alice", "scan.pdf", b"%PDF-", name="Chapter 3", visibility=Visibility.PUBLIC
        )

        assert document.name == "Chapter 3"
        assert document.visibility is Visibility.PUBLIC

    @pytest.mark.asyncio
    async def test_empty_upload_rejected(self, document_service, ingestion) -> None:
        with pytest.raises(ValueError):
            await document_service.upload("alice", "empty.txt", b"")
        ingestion.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_reupload_keeps_document_id(self, document_service, metadata_store) -> None:
        first = await document_service.upload("alice", "v1.txt", b"one")
        await metadata_store.mark_ready("alice", first.document_id)

        second = await document_service.upload(
            "alice", "v2.txt", b"two", document_id=first.document_id
        )

        assert second.document_id == first.document_id
        assert second.ready is True
        assert len(await document_service.list_documents("alice")) == 1


class TestGetDocument:
    @pytest.mark.asyncio
    async def test_other_owner_cannot_see_document(self, document_service) -> None:
        document = await document_service.upload("alice", "notes.txt", b"text")

        with pytest.raises(NotFoundError):
            await document_service.get_document("bob", document.document_id)


class TestDelete:
    @pytest.mark.asyncio
    async def test_cascades_to_everything_derived(
        self, document_service, metadata_store, object_store, vector_store, ingestion
    ) -> None:
        document = await document_service.upload("alice", "notes.txt", b"text")
        doc_id = document.document_id
        await vector_store.upsert("alice", doc_id, [make_chunk("alice", doc_id, 0, "text")])
        await metadata_store.upsert_flashcards(FlashcardSet(owner_id="alice", document_id=doc_id))
        await metadata_store.upsert_quiz(QuizSet(owner_id="alice", document_id=doc_id))

        await document_service.delete("alice", doc_id)

        ingestion.cancel.assert_awaited_once_with("alice", doc_id)
        assert await metadata_store.get_document("alice", doc_id) is None
        assert await vector_store.get_document_chunks("alice", doc_id) == []
        assert await metadata_store.get_flashcards("alice", doc_id) == []
        assert await metadata_store.get_quizzes("alice", doc_id) == []
        with pytest.raises(NotFoundError):
            await object_store.get(document.object_ref)

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, document_service) -> None:
        with pytest.raises(NotFoundError):
            await document_service.delete("alice", "ghost")
