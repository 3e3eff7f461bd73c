"""SQLite-backed metadata store.

Persists documents, chat sessions and study-activity sets to a local SQLite
database (default ``data/thinkr.db``) using ``aiosqlite``.  Chat messages and
study items are stored as JSON arrays; appending to a session is a single
``UPDATE ... json_insert`` statement, so concurrent appends never lose
messages.

Listing reads (documents and study sets) log and return ``[]`` when the
database fails.  Writes and single-record lookups raise
``StoreUnavailableError``, since a lookup's ``None`` means "absent".
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, TypeVar

import aiosqlite
import structlog
from pydantic import TypeAdapter

from thinkr.interfaces.metadata_store import IMetadataStore
from thinkr.models.chat import ChatMessage, ChatSession
from thinkr.models.document import Document, Visibility
from thinkr.models.study import Flashcard, FlashcardSet, QuizItem, QuizSet, StudyMaterialKind
from thinkr.utils.errors import NotFoundError, StoreUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/thinkr.db")

_RecordT = TypeVar("_RecordT", Document, ChatSession)

_MESSAGES = TypeAdapter(list[ChatMessage])
_FLASHCARDS = TypeAdapter(list[Flashcard])
_QUIZ_ITEMS = TypeAdapter(list[QuizItem])

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    owner_id        TEXT    NOT NULL,
    document_id     TEXT    NOT NULL,
    name            TEXT    NOT NULL,
    object_ref      TEXT    NOT NULL,
    uploaded_at     TEXT    NOT NULL,
    ready           INTEGER NOT NULL DEFAULT 0,
    visibility      TEXT    NOT NULL DEFAULT 'PRIVATE',
    ingestion_error TEXT,
    PRIMARY KEY (owner_id, document_id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS chat_sessions (
    owner_id    TEXT PRIMARY KEY,
    messages    TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS study_sets (
    owner_id    TEXT NOT NULL,
    document_id TEXT NOT NULL,
    kind        TEXT NOT NULL,
    items       TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    PRIMARY KEY (owner_id, document_id, kind)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_visibility ON documents(visibility);",
    "CREATE INDEX IF NOT EXISTS idx_study_sets_owner_kind ON study_sets(owner_id, kind);",
]

# ready only ever moves 0 -> 1.
_UPSERT_DOCUMENT_SQL = """\
INSERT INTO documents (owner_id, document_id, name, object_ref, uploaded_at, ready, visibility)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(owner_id, document_id)
DO UPDATE SET name        = excluded.name,
              object_ref  = excluded.object_ref,
              uploaded_at = excluded.uploaded_at,
              visibility  = excluded.visibility,
              ready       = MAX(documents.ready, excluded.ready);
"""

_SELECT_DOCUMENT_COLUMNS = (
    "SELECT owner_id, document_id, name, object_ref, uploaded_at, ready, visibility, "
    "ingestion_error FROM documents"
)

_UPSERT_STUDY_SET_SQL = """\
INSERT INTO study_sets (owner_id, document_id, kind, items, updated_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(owner_id, document_id, kind)
DO UPDATE SET items      = excluded.items,
              updated_at = excluded.updated_at;
"""

_UPSERT_SESSION_SQL = """\
INSERT INTO chat_sessions (owner_id, messages, metadata, created_at, updated_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(owner_id)
DO UPDATE SET messages   = excluded.messages,
              metadata   = excluded.metadata,
              updated_at = excluded.updated_at;
"""

_INSERT_SESSION_IF_ABSENT_SQL = """\
INSERT INTO chat_sessions (owner_id, messages, metadata, created_at, updated_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(owner_id) DO NOTHING;
"""


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017


class SQLiteMetadataStore(IMetadataStore):
    """SQLite persistence for documents, chat sessions and study sets."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("metadata_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_metadata"

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def upsert_document(self, document: Document) -> Document:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_DOCUMENT_SQL,
                (
                    document.owner_id,
                    document.document_id,
                    document.name,
                    document.object_ref,
                    document.uploaded_at.isoformat(),
                    int(document.ready),
                    document.visibility.value,
                ),
            )
            await db.commit()
            stored = await self._fetch_document(db, document.owner_id, document.document_id)
        logger.info(
            "document_upserted",
            owner_id=document.owner_id,
            document_id=document.document_id,
        )
        return self._require(stored, document.document_id)

    async def get_document(self, owner_id: str, document_id: str) -> Document | None:
        async with self._connect() as db:
            return await self._fetch_document(db, owner_id, document_id)

    async def list_documents(self, owner_id: str) -> list[Document]:
        """Return the owner's documents; degrades to ``[]`` if the store fails."""
        try:
            async with self._connect() as db:
                cursor = await db.execute(
                    f"{_SELECT_DOCUMENT_COLUMNS} WHERE owner_id = ? ORDER BY uploaded_at DESC",
                    (owner_id,),
                )
                rows = await cursor.fetchall()
        except StoreUnavailableError as exc:
            logger.warning("list_documents_failed", owner_id=owner_id, error=str(exc))
            return []
        return [self._row_to_document(r) for r in rows]

    async def list_other_documents(
        self,
        owner_id: str,
        public_only: bool = False,
        ready_only: bool = False,
    ) -> list[Document]:
        """Return other owners' documents; degrades to ``[]`` if the store fails."""
        sql = f"{_SELECT_DOCUMENT_COLUMNS} WHERE owner_id != ?"
        params: tuple[str, ...] = (owner_id,)
        if public_only:
            sql += " AND visibility = ?"
            params = (*params, Visibility.PUBLIC.value)
        if ready_only:
            sql += " AND ready = 1"
        try:
            async with self._connect() as db:
                cursor = await db.execute(f"{sql} ORDER BY owner_id, document_id", params)
                rows = await cursor.fetchall()
        except StoreUnavailableError as exc:
            logger.warning("list_other_documents_failed", owner_id=owner_id, error=str(exc))
            return []
        return [self._row_to_document(r) for r in rows]

    async def mark_ready(self, owner_id: str, document_id: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE documents SET ready = 1, ingestion_error = NULL "
                "WHERE owner_id = ? AND document_id = ?",
                (owner_id, document_id),
            )
            await db.commit()
        logger.info("document_ready", owner_id=owner_id, document_id=document_id)

    async def record_ingestion_error(self, owner_id: str, document_id: str, error: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE documents SET ingestion_error = ? WHERE owner_id = ? AND document_id = ?",
                (error, owner_id, document_id),
            )
            await db.commit()

    async def delete_document(self, owner_id: str, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM documents WHERE owner_id = ? AND document_id = ?",
                (owner_id, document_id),
            )
            await db.commit()
            deleted = cursor.rowcount > 0
        logger.info(
            "document_deleted",
            owner_id=owner_id,
            document_id=document_id,
            existed=deleted,
        )
        return deleted

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    async def get_session(self, owner_id: str) -> ChatSession | None:
        async with self._connect() as db:
            return await self._fetch_session(db, owner_id)

    async def create_session(self, session: ChatSession) -> ChatSession:
        async with self._connect() as db:
            await db.execute(_INSERT_SESSION_IF_ABSENT_SQL, self._session_params(session))
            await db.commit()
            stored = await self._fetch_session(db, session.owner_id)
        return self._require(stored, session.owner_id)

    async def append_messages(self, owner_id: str, messages: list[ChatMessage]) -> None:
        """Append *messages* in one statement; edits apply left to right."""
        if not messages:
            return
        paths = ", ".join("'$[#]', json(?)" for _ in messages)
        sql = (
            f"UPDATE chat_sessions SET messages = json_insert(messages, {paths}), "
            "updated_at = ? WHERE owner_id = ?"
        )
        params = [m.model_dump_json() for m in messages]
        async with self._connect() as db:
            cursor = await db.execute(sql, (*params, _now_iso(), owner_id))
            await db.commit()
            updated = cursor.rowcount
        if updated == 0:
            raise NotFoundError(
                message=f"No chat session for owner {owner_id}",
                provider_name=self.get_provider_name(),
            )

    async def replace_messages(self, session: ChatSession) -> ChatSession:
        async with self._connect() as db:
            await db.execute(_UPSERT_SESSION_SQL, self._session_params(session))
            await db.commit()
            stored = await self._fetch_session(db, session.owner_id)
        return self._require(stored, session.owner_id)

    # ------------------------------------------------------------------
    # Study sets
    # ------------------------------------------------------------------

    async def upsert_flashcards(self, flashcard_set: FlashcardSet) -> None:
        await self._upsert_study_set(
            flashcard_set.owner_id,
            flashcard_set.document_id,
            StudyMaterialKind.FLASHCARDS,
            _FLASHCARDS.dump_json(flashcard_set.flashcards).decode("utf-8"),
            flashcard_set.updated_at,
        )

    async def upsert_quiz(self, quiz_set: QuizSet) -> None:
        await self._upsert_study_set(
            quiz_set.owner_id,
            quiz_set.document_id,
            StudyMaterialKind.QUIZ,
            _QUIZ_ITEMS.dump_json(quiz_set.quiz).decode("utf-8"),
            quiz_set.updated_at,
        )

    async def get_flashcards(
        self,
        owner_id: str,
        document_id: str | None = None,
        ready_only: bool = False,
    ) -> list[FlashcardSet]:
        rows = await self._select_study_sets(
            owner_id, document_id, StudyMaterialKind.FLASHCARDS, ready_only
        )
        return [
            FlashcardSet(
                owner_id=r["owner_id"],
                document_id=r["document_id"],
                flashcards=_FLASHCARDS.validate_json(r["items"]),
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    async def get_quizzes(
        self,
        owner_id: str,
        document_id: str | None = None,
        ready_only: bool = False,
    ) -> list[QuizSet]:
        rows = await self._select_study_sets(
            owner_id, document_id, StudyMaterialKind.QUIZ, ready_only
        )
        return [
            QuizSet(
                owner_id=r["owner_id"],
                document_id=r["document_id"],
                quiz=_QUIZ_ITEMS.validate_json(r["items"]),
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    async def delete_study_sets(self, owner_id: str, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM study_sets WHERE owner_id = ? AND document_id = ?",
                (owner_id, document_id),
            )
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            raise StoreUnavailableError(
                message=f"SQLite metadata store error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def _upsert_study_set(
        self,
        owner_id: str,
        document_id: str,
        kind: StudyMaterialKind,
        items_json: str,
        updated_at: datetime,
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_STUDY_SET_SQL,
                (owner_id, document_id, kind.value, items_json, updated_at.isoformat()),
            )
            await db.commit()
        logger.info(
            "study_set_upserted",
            owner_id=owner_id,
            document_id=document_id,
            kind=kind.value,
        )

    async def _select_study_sets(
        self,
        owner_id: str,
        document_id: str | None,
        kind: StudyMaterialKind,
        ready_only: bool,
    ) -> list[aiosqlite.Row]:
        sql = "SELECT s.owner_id, s.document_id, s.items, s.updated_at FROM study_sets s"
        if ready_only:
            sql += (
                " JOIN documents d ON d.owner_id = s.owner_id"
                " AND d.document_id = s.document_id AND d.ready = 1"
            )
        sql += " WHERE s.owner_id = ? AND s.kind = ?"
        params: tuple[str, ...] = (owner_id, kind.value)
        if document_id is not None:
            sql += " AND s.document_id = ?"
            params = (*params, document_id)
        try:
            async with self._connect() as db:
                cursor = await db.execute(f"{sql} ORDER BY s.updated_at DESC", params)
                return list(await cursor.fetchall())
        except StoreUnavailableError as exc:
            logger.warning(
                "study_sets_read_failed",
                owner_id=owner_id,
                document_id=document_id,
                kind=kind.value,
                error=str(exc),
            )
            return []

    async def _fetch_document(
        self,
        db: aiosqlite.Connection,
        owner_id: str,
        document_id: str,
    ) -> Document | None:
        cursor = await db.execute(
            f"{_SELECT_DOCUMENT_COLUMNS} WHERE owner_id = ? AND document_id = ?",
            (owner_id, document_id),
        )
        row = await cursor.fetchone()
        return self._row_to_document(row) if row else None

    async def _fetch_session(self, db: aiosqlite.Connection, owner_id: str) -> ChatSession | None:
        cursor = await db.execute(
            "SELECT owner_id, messages, metadata, created_at, updated_at "
            "FROM chat_sessions WHERE owner_id = ?",
            (owner_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return ChatSession(
            owner_id=row["owner_id"],
            messages=_MESSAGES.validate_json(row["messages"]),
            metadata=json.loads(row["metadata"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _require(self, record: _RecordT | None, key: str) -> _RecordT:
        """Return a record just written in the same connection."""
        if record is None:
            raise StoreUnavailableError(
                message=f"Record {key!r} missing immediately after write",
                provider_name=self.get_provider_name(),
            )
        return record

    @staticmethod
    def _session_params(session: ChatSession) -> tuple[str, str, str, str, str]:
        return (
            session.owner_id,
            _MESSAGES.dump_json(session.messages).decode("utf-8"),
            json.dumps(session.metadata),
            session.created_at.isoformat(),
            session.updated_at.isoformat(),
        )

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(
            owner_id=row["owner_id"],
            document_id=row["document_id"],
            name=row["name"],
            object_ref=row["object_ref"],
            uploaded_at=row["uploaded_at"],
            ready=bool(row["ready"]),
            visibility=Visibility(row["visibility"]),
            ingestion_error=row["ingestion_error"],
        )
