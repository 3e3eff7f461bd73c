"""Integration tests for FastAPI API endpoints using TestClient.

The app is assembled from real services over a temporary SQLite store,
the in-memory vector store and a mocked LLM.  Background ingestion is
mocked so uploads return without running the pipeline.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.conftest import InMemoryVectorStore, MockEmbeddingProvider, make_chunk
from thinkr.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from thinkr.api.routes import router as api_router
from thinkr.models.study import Flashcard, FlashcardSet
from thinkr.providers.metadata.sqlite_metadata_store import SQLiteMetadataStore
from thinkr.providers.storage.local_object_store import LocalObjectStore
from thinkr.services.chat_service import ChatService
from thinkr.services.context_assembler import ContextAssembler
from thinkr.services.document_service import DocumentService
from thinkr.services.ingestion.ingestion_service import IngestionService
from thinkr.services.recommendation_service import RecommendationService
from thinkr.services.study_material_service import StudyMaterialService
from thinkr.utils.errors import LLMError

_ALICE = {"X-Owner-Id": "alice"}
_BOB = {"X-Owner-Id": "bob"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(tmp_path, llm) -> FastAPI:
    """Create a FastAPI app with real services and mocked ingestion."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    metadata_store = SQLiteMetadataStore(db_path=tmp_path / "thinkr.db")
    asyncio.run(metadata_store.initialize())
    object_store = LocalObjectStore(base_dir=tmp_path / "objects")
    embedding = MockEmbeddingProvider()
    vector_store = InMemoryVectorStore(embedding)

    ingestion = MagicMock(spec=IngestionService)
    ingestion.cancel = AsyncMock(return_value=False)

    assembler = ContextAssembler(vector_store, top_k=5, token_budget=4000)
    study = StudyMaterialService(llm, metadata_store, vector_store)

    app.state.metadata_store = metadata_store
    app.state.vector_store = vector_store
    app.state.ingestion_service = ingestion
    app.state.document_service = DocumentService(
        metadata_store, object_store, vector_store, ingestion
    )
    app.state.context_assembler = assembler
    app.state.chat_service = ChatService(llm, metadata_store, assembler)
    app.state.study_service = study
    app.state.recommendation_service = RecommendationService(
        metadata_store, vector_store, embedding
    )
    app.state.provider_registry = {
        "llm": True,
        "llm_name": "mock-llm",
        "embedding": True,
        "embedding_name": "mock-embedding",
        "extraction": True,
    }
    return app


def _upload(client: TestClient, headers=_ALICE, content: bytes = b"Cells.\n\nATP.", **form):
    return client.post(
        "/api/v1/documents",
        headers=headers,
        files={"file": ("notes.txt", content, "text/plain")},
        data=form,
    )


@pytest.fixture
def test_app(tmp_path, mock_llm_provider) -> FastAPI:
    return _create_test_app(tmp_path, mock_llm_provider)


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    return TestClient(test_app)


# ---------------------------------------------------------------------------
# Owner header
# ---------------------------------------------------------------------------


class TestOwnerHeader:
    def test_missing_header_is_401(self, client: TestClient) -> None:
        assert client.get("/api/v1/documents").status_code == 401

    def test_blank_header_is_401(self, client: TestClient) -> None:
        assert client.get("/api/v1/chat", headers={"X-Owner-Id": "  "}).status_code == 401


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_upload_returns_202_and_schedules(self, client: TestClient, test_app) -> None:
        response = _upload(client, name="Cell biology", visibility="PUBLIC")

        assert response.status_code == 202
        body = response.json()
        assert body["name"] == "Cell biology"
        assert body["visibility"] == "PUBLIC"
        assert body["ready"] is False
        test_app.state.ingestion_service.schedule.assert_called_once_with(
            "alice", body["document_id"]
        )

    def test_unsupported_type_is_415(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/documents",
            headers=_ALICE,
            files={"file": ("song.mp3", b"ID3", "audio/mpeg")},
        )
        assert response.status_code == 415

    def test_empty_file_is_400(self, client: TestClient) -> None:
        assert _upload(client, content=b"").status_code == 400

    def test_list_is_scoped_to_owner(self, client: TestClient) -> None:
        _upload(client)
        _upload(client)
        _upload(client, headers=_BOB)

        body = client.get("/api/v1/documents", headers=_ALICE).json()

        assert body["total"] == 2
        assert {d["owner_id"] for d in body["documents"]} == {"alice"}

    def test_other_owner_gets_404(self, client: TestClient) -> None:
        doc_id = _upload(client).json()["document_id"]

        response = client.get(f"/api/v1/documents/{doc_id}", headers=_BOB)

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_delete(self, client: TestClient) -> None:
        doc_id = _upload(client).json()["document_id"]

        assert client.delete(f"/api/v1/documents/{doc_id}", headers=_ALICE).status_code == 204
        assert client.get(f"/api/v1/documents/{doc_id}", headers=_ALICE).status_code == 404
        assert client.delete(f"/api/v1/documents/{doc_id}", headers=_ALICE).status_code == 404


# ---------------------------------------------------------------------------
# Context & chat
# ---------------------------------------------------------------------------


class TestContextAndChat:
    def test_context_empty_without_chunks(self, client: TestClient) -> None:
        body = client.get("/api/v1/context", params={"query": "osmosis"}, headers=_ALICE).json()

        assert body["context"] == ""
        assert body["empty"] is True

    def test_context_from_owner_chunks(self, client: TestClient, test_app) -> None:
        asyncio.run(
            test_app.state.vector_store.upsert(
                "alice", "doc-1", [make_chunk(text="Osmosis moves water.")]
            )
        )

        body = client.get("/api/v1/context", params={"query": "osmosis"}, headers=_ALICE).json()

        assert body["context"] == "Osmosis moves water."
        assert body["empty"] is False

    def test_chat_round_trip(self, client: TestClient) -> None:
        seeded = client.get("/api/v1/chat", headers=_ALICE).json()
        assert [m["role"] for m in seeded["messages"]] == ["system"]

        reply = client.post(
            "/api/v1/chat/messages", headers=_ALICE, json={"message": "What absorbs light?"}
        )
        assert reply.status_code == 200
        assert reply.json()["reply"]["content"] == "Chlorophyll absorbs light."

        session = client.get("/api/v1/chat", headers=_ALICE).json()
        assert [m["role"] for m in session["messages"]] == ["system", "user", "assistant"]

        cleared = client.delete("/api/v1/chat", headers=_ALICE).json()
        assert len(cleared["messages"]) == 1

    def test_empty_message_is_422(self, client: TestClient) -> None:
        response = client.post("/api/v1/chat/messages", headers=_ALICE, json={"message": ""})
        assert response.status_code == 422

    def test_llm_failure_is_structured_500(self, client: TestClient, mock_llm_provider) -> None:
        mock_llm_provider.complete = AsyncMock(side_effect=LLMError("down", "mock-llm"))

        response = client.post("/api/v1/chat/messages", headers=_ALICE, json={"message": "hi"})

        assert response.status_code == 500
        assert response.json() == {"error": "LLMError", "detail": "down"}


# ---------------------------------------------------------------------------
# Study material
# ---------------------------------------------------------------------------


class TestStudy:
    def test_generate_requires_ready_document(self, client: TestClient) -> None:
        doc_id = _upload(client).json()["document_id"]

        response = client.post(f"/api/v1/study/{doc_id}/generate", headers=_ALICE)

        assert response.status_code == 409

    def test_generate_and_list(self, client: TestClient, test_app) -> None:
        doc_id = _upload(client).json()["document_id"]
        asyncio.run(test_app.state.metadata_store.mark_ready("alice", doc_id))
        asyncio.run(
            test_app.state.vector_store.upsert(
                "alice", doc_id, [make_chunk("alice", doc_id, 0, "Plants and light.")]
            )
        )

        generated = client.post(f"/api/v1/study/{doc_id}/generate", headers=_ALICE).json()

        assert generated["complete"] is True
        assert len(generated["flashcards"]["flashcards"]) == 2
        cards = client.get(
            "/api/v1/study/flashcards", params={"document_id": doc_id}, headers=_ALICE
        ).json()
        assert len(cards["sets"]) == 1
        quizzes = client.get("/api/v1/study/quizzes", headers=_ALICE).json()
        assert quizzes["sets"][0]["quiz"][0]["answer"] == "B"

    @staticmethod
    def _seed_partial_bob_document(client: TestClient, state) -> str:
        """Upload a bob document with chunks and flashcards but no quiz."""
        asyncio.run(
            state.vector_store.upsert("alice", "a1", [make_chunk("alice", "a1", 0, "enzymes")])
        )
        bob_doc = _upload(client, headers=_BOB).json()["document_id"]
        asyncio.run(
            state.vector_store.upsert(
                "bob", bob_doc, [make_chunk("bob", bob_doc, 0, "enzymes")]
            )
        )
        asyncio.run(
            state.metadata_store.upsert_flashcards(
                FlashcardSet(
                    owner_id="bob",
                    document_id=bob_doc,
                    flashcards=[Flashcard(front="Enzyme", back="Biological catalyst.")],
                )
            )
        )
        return bob_doc

    def test_suggestions_from_other_owner(self, client: TestClient, test_app) -> None:
        state = test_app.state
        bob_doc = self._seed_partial_bob_document(client, state)
        asyncio.run(state.metadata_store.mark_ready("bob", bob_doc))

        body = client.get(
            "/api/v1/study/suggestions",
            params={"document_ids": ["a1"], "limit": 3},
            headers=_ALICE,
        ).json()

        assert [c["document_id"] for c in body["candidates"]] == [bob_doc]
        assert body["candidates"][0]["score"] == pytest.approx(1.0, abs=1e-6)
        assert body["flashcards"][0]["flashcards"][0]["front"] == "Enzyme"

    def test_not_ready_document_is_never_suggested(self, client: TestClient, test_app) -> None:
        self._seed_partial_bob_document(client, test_app.state)

        body = client.get(
            "/api/v1/study/suggestions",
            params={"document_ids": ["a1"], "limit": 3},
            headers=_ALICE,
        ).json()

        assert body["candidates"] == []
        assert body["flashcards"] == []

    def test_partial_sets_hidden_until_ready(self, client: TestClient, test_app) -> None:
        state = test_app.state
        bob_doc = self._seed_partial_bob_document(client, state)
        params = {"document_id": bob_doc}

        hidden = client.get("/api/v1/study/flashcards", params=params, headers=_BOB).json()
        asyncio.run(state.metadata_store.mark_ready("bob", bob_doc))
        shown = client.get("/api/v1/study/flashcards", params=params, headers=_BOB).json()

        assert hidden["sets"] == []
        assert len(shown["sets"]) == 1

    def test_suggestion_limit_validated(self, client: TestClient) -> None:
        response = client.get(
            "/api/v1/study/suggestions", params={"limit": 0}, headers=_ALICE
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["providers"]["vector_store"] is True
        assert body["providers"]["llm_name"] == "mock-llm"

    def test_degraded_without_llm(self, client: TestClient, test_app) -> None:
        test_app.state.provider_registry = {**test_app.state.provider_registry, "llm": False}

        assert client.get("/api/v1/health").json()["status"] == "degraded"
