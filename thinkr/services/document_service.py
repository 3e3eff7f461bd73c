"""Upload, listing and cascading deletion of user documents."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from thinkr.models.document import Document, Visibility
from thinkr.utils.errors import NotFoundError
from thinkr.utils.logging import get_logger

if TYPE_CHECKING:
    from thinkr.interfaces.metadata_store import IMetadataStore
    from thinkr.interfaces.object_store import IObjectStore
    from thinkr.interfaces.vector_store_provider import IVectorStoreProvider
    from thinkr.services.ingestion.ingestion_service import IngestionService


def object_ref_for(owner_id: str, document_id: str) -> str:
    """Object-store key of a document's bytes."""
    return f"{owner_id}/{document_id}"


class DocumentService:
    """Entry point for document lifecycle operations.

    Uploads return as soon as the bytes and the record are stored;
    ingestion continues in the background.
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        object_store: IObjectStore,
        vector_store: IVectorStoreProvider,
        ingestion_service: IngestionService,
    ) -> None:
        self._store = metadata_store
        self._objects = object_store
        self._vector_store = vector_store
        self._ingestion = ingestion_service
        self._logger = get_logger(__name__)

    async def upload(
        self,
        owner_id: str,
        filename: str,
        data: bytes,
        name: str | None = None,
        visibility: Visibility = Visibility.PRIVATE,
        document_id: str | None = None,
    ) -> Document:
        """Store *data* as a new document and schedule its ingestion.

        Passing an existing *document_id* re-uploads that document.
        """
        if not data:
            raise ValueError("uploaded file is empty")

        document_id = document_id or uuid.uuid4().hex
        ref = object_ref_for(owner_id, document_id)
        await self._objects.put(ref, data)

        document = await self._store.upsert_document(
            Document(
                document_id=document_id,
                owner_id=owner_id,
                name=name or filename,
                object_ref=ref,
                visibility=visibility,
            )
        )
        self._ingestion.schedule(owner_id, document_id)
        self._logger.info(
            "document_uploaded",
            owner_id=owner_id,
            document_id=document_id,
            filename=filename,
            size_bytes=len(data),
        )
        return document

    async def list_documents(self, owner_id: str) -> list[Document]:
        return await self._store.list_documents(owner_id)

    async def get_document(self, owner_id: str, document_id: str) -> Document:
        document = await self._store.get_document(owner_id, document_id)
        if document is None:
            raise NotFoundError(message=f"Document {document_id!r} not found")
        return document

    async def delete(self, owner_id: str, document_id: str) -> None:
        """Delete a document and everything derived from it.

        Raises
        ------
        NotFoundError
            If the document does not exist.
        """
        document = await self.get_document(owner_id, document_id)

        await self._ingestion.cancel(owner_id, document_id)
        chunks_removed = await self._vector_store.delete(owner_id, document_id)
        sets_removed = await self._store.delete_study_sets(owner_id, document_id)
        await self._store.delete_document(owner_id, document_id)
        await self._objects.delete(document.object_ref)

        self._logger.info(
            "document_deleted",
            owner_id=owner_id,
            document_id=document_id,
            chunks_removed=chunks_removed,
            study_sets_removed=sets_removed,
        )
