"""Abstract base class for document, chat and study-set persistence.

Three record families share one store:

* documents, keyed by ``(owner_id, document_id)``
* chat sessions, keyed by ``owner_id``
* study-activity sets, keyed by ``(owner_id, document_id)``
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from thinkr.models.chat import ChatMessage, ChatSession
from thinkr.models.document import Document
from thinkr.models.study import FlashcardSet, QuizSet


# Concrete implementation: SQLiteMetadataStore (thinkr/providers/metadata/)
class IMetadataStore(ABC):
    """Contract for the metadata store backing documents, chat and study sets."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables or collections if they do not exist."""

    # -- Documents ---------------------------------------------------------

    @abstractmethod
    async def upsert_document(self, document: Document) -> Document:
        """Insert or update a document record.

        An existing record keeps its ``ready`` flag; re-uploading never
        makes a ready document not-ready.
        """

    @abstractmethod
    async def get_document(self, owner_id: str, document_id: str) -> Document | None:
        """Return a document, or ``None`` when absent."""

    @abstractmethod
    async def list_documents(self, owner_id: str) -> list[Document]:
        """Return the owner's documents, newest upload first."""

    @abstractmethod
    async def list_other_documents(
        self,
        owner_id: str,
        public_only: bool = False,
        ready_only: bool = False,
    ) -> list[Document]:
        """Return documents belonging to every owner except *owner_id*.

        With *ready_only*, documents whose ingestion has not completed are
        left out.
        """

    @abstractmethod
    async def mark_ready(self, owner_id: str, document_id: str) -> None:
        """Set ``ready`` to true and clear any recorded ingestion error."""

    @abstractmethod
    async def record_ingestion_error(self, owner_id: str, document_id: str, error: str) -> None:
        """Store the failure message of the last ingestion run."""

    @abstractmethod
    async def delete_document(self, owner_id: str, document_id: str) -> bool:
        """Delete a document record.  Returns ``False`` if it did not exist."""

    # -- Chat sessions -----------------------------------------------------

    @abstractmethod
    async def get_session(self, owner_id: str) -> ChatSession | None:
        """Return the owner's chat session, or ``None`` when absent."""

    @abstractmethod
    async def create_session(self, session: ChatSession) -> ChatSession:
        """Create a session if absent; return whichever session is stored."""

    @abstractmethod
    async def append_messages(self, owner_id: str, messages: list[ChatMessage]) -> None:
        """Atomically append *messages* and bump ``updated_at``."""

    @abstractmethod
    async def replace_messages(self, session: ChatSession) -> ChatSession:
        """Upsert *session*, replacing its whole message list."""

    # -- Study sets --------------------------------------------------------

    @abstractmethod
    async def upsert_flashcards(self, flashcard_set: FlashcardSet) -> None:
        """Replace the flashcard set for its ``(owner_id, document_id)``."""

    @abstractmethod
    async def upsert_quiz(self, quiz_set: QuizSet) -> None:
        """Replace the quiz set for its ``(owner_id, document_id)``."""

    @abstractmethod
    async def get_flashcards(
        self,
        owner_id: str,
        document_id: str | None = None,
        ready_only: bool = False,
    ) -> list[FlashcardSet]:
        """Return the owner's flashcard sets, optionally for one document.

        With *ready_only*, sets of not-ready documents are left out.
        """

    @abstractmethod
    async def get_quizzes(
        self,
        owner_id: str,
        document_id: str | None = None,
        ready_only: bool = False,
    ) -> list[QuizSet]:
        """Return the owner's quiz sets, optionally for one document.

        With *ready_only*, sets of not-ready documents are left out.
        """

    @abstractmethod
    async def delete_study_sets(self, owner_id: str, document_id: str) -> int:
        """Delete both study sets of a document.  Returns rows removed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
