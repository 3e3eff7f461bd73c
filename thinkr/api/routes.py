"""FastAPI routes for the Thinkr API.

Every route except ``/health`` acts on behalf of the owner named in the
``X-Owner-Id`` header.  Services are resolved from ``app.state`` via
``Depends`` using the ``Annotated`` pattern; ``main._build_all`` populates
the state at startup.

# Endpoint                                 Method  Description
# ----------------------------------------------------------------------
# /api/v1/documents                        POST    Upload a document (202)
# /api/v1/documents                        GET     List the owner's documents
# /api/v1/documents/{document_id}          GET     One document
# /api/v1/documents/{document_id}          DELETE  Delete a document and derived data
# /api/v1/context                          GET     Assemble context for a query
# /api/v1/chat                             GET     The owner's chat session
# /api/v1/chat/messages                    POST    Send a chat message
# /api/v1/chat                             DELETE  Clear chat history
# /api/v1/study/{document_id}/generate     POST    Regenerate study material
# /api/v1/study/flashcards                 GET     Stored flashcard sets
# /api/v1/study/quizzes                    GET     Stored quiz sets
# /api/v1/study/suggestions                GET     Other users' similar material
# /api/v1/health                           GET     Health check + provider status
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Form, Header, HTTPException, Query, Request, UploadFile

from thinkr import __version__
from thinkr.api.schemas import (
    ChatMessageRequest,
    ChatReplyResponse,
    ContextResponse,
    DocumentListResponse,
    ErrorResponse,
    FlashcardSetsResponse,
    HealthResponse,
    QuizSetsResponse,
    StudyGenerationResponse,
)
from thinkr.models.chat import ChatSession
from thinkr.models.document import Document, Visibility
from thinkr.models.recommendation import SuggestedMaterials
from thinkr.services.chat_service import ChatService
from thinkr.services.context_assembler import EMPTY_CONTEXT, ContextAssembler
from thinkr.services.document_service import DocumentService
from thinkr.services.recommendation_service import RecommendationService
from thinkr.services.study_material_service import StudyMaterialService
from thinkr.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_ALLOWED_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/tiff",
        "text/plain",
        "text/markdown",
    }
)
_MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_owner_id(
    x_owner_id: Annotated[str | None, Header(max_length=128)] = None,
) -> str:
    """Return the caller's owner id from the ``X-Owner-Id`` header."""
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_context_assembler(request: Request) -> ContextAssembler:
    return request.app.state.context_assembler


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_study_service(request: Request) -> StudyMaterialService:
    return request.app.state.study_service


def _get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


OwnerDep = Annotated[str, Depends(_get_owner_id)]
DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
ContextAssemblerDep = Annotated[ContextAssembler, Depends(_get_context_assembler)]
ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]
StudyServiceDep = Annotated[StudyMaterialService, Depends(_get_study_service)]
RecommendationDep = Annotated[RecommendationService, Depends(_get_recommendation_service)]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    status_code=202,
    response_model=Document,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Upload a document; ingestion continues in the background",
)
async def upload_document(
    file: UploadFile,
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
    name: Annotated[str | None, Form(max_length=255)] = None,
    visibility: Annotated[Visibility, Form()] = Visibility.PRIVATE,
) -> Document:
    content_type = (file.content_type or "").split(";")[0].strip()
    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415,
            detail=(
                f"Unsupported file type: {content_type or 'unknown'}. "
                f"Allowed: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
            ),
        )

    # Stream in chunks so oversized files are rejected early.
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > _MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {_MAX_FILE_SIZE // (1024 * 1024)} MB",
            )
        chunks.append(chunk)
    data = b"".join(chunks)
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    return await documents.upload(
        owner_id=owner_id,
        filename=file.filename or "untitled",
        data=data,
        name=name,
        visibility=visibility,
    )


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(owner_id: OwnerDep, documents: DocumentServiceDep) -> DocumentListResponse:
    items = await documents.list_documents(owner_id)
    return DocumentListResponse(documents=items, total=len(items))


@router.get(
    "/documents/{document_id}",
    response_model=Document,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document",
)
async def get_document(
    document_id: str, owner_id: OwnerDep, documents: DocumentServiceDep
) -> Document:
    return await documents.get_document(owner_id, document_id)


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document with its chunks and study material",
)
async def delete_document(
    document_id: str, owner_id: OwnerDep, documents: DocumentServiceDep
) -> None:
    await documents.delete(owner_id, document_id)


# ---------------------------------------------------------------------------
# Context & chat
# ---------------------------------------------------------------------------


@router.get("/context", response_model=ContextResponse, summary="Assemble context for a query")
async def get_context(
    owner_id: OwnerDep,
    assembler: ContextAssemblerDep,
    query: Annotated[str, Query(min_length=1, max_length=2000)],
    document_id: str | None = None,
) -> ContextResponse:
    context = await assembler.assemble(owner_id, query, document_id=document_id)
    return ContextResponse(query=query, context=context, empty=context == EMPTY_CONTEXT)


@router.get("/chat", response_model=ChatSession, summary="Get the chat session")
async def get_chat(owner_id: OwnerDep, chat: ChatServiceDep) -> ChatSession:
    return await chat.get_session(owner_id)


@router.post("/chat/messages", response_model=ChatReplyResponse, summary="Send a chat message")
async def send_chat_message(
    body: ChatMessageRequest, owner_id: OwnerDep, chat: ChatServiceDep
) -> ChatReplyResponse:
    try:
        reply = await chat.send_message(owner_id, body.message)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ChatReplyResponse(reply=reply)


@router.delete("/chat", response_model=ChatSession, summary="Clear chat history")
async def clear_chat(owner_id: OwnerDep, chat: ChatServiceDep) -> ChatSession:
    return await chat.clear_history(owner_id)


# ---------------------------------------------------------------------------
# Study material
# ---------------------------------------------------------------------------


@router.post(
    "/study/{document_id}/generate",
    response_model=StudyGenerationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Regenerate flashcards and quiz for a ready document",
)
async def generate_study_material(
    document_id: str,
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
    study: StudyServiceDep,
) -> StudyGenerationResponse:
    document = await documents.get_document(owner_id, document_id)
    if not document.ready:
        raise HTTPException(
            status_code=409,
            detail=f"Document {document_id} is still being processed",
        )
    material = await study.generate_study_material(owner_id, document_id)
    return StudyGenerationResponse(
        document_id=document_id,
        flashcards=material.flashcards,
        quiz=material.quiz,
        errors=material.errors,
        complete=material.complete,
    )


@router.get("/study/flashcards", response_model=FlashcardSetsResponse, summary="Flashcard sets")
async def get_flashcards(
    owner_id: OwnerDep,
    study: StudyServiceDep,
    document_id: str | None = None,
) -> FlashcardSetsResponse:
    return FlashcardSetsResponse(sets=await study.get_flashcards(owner_id, document_id))


@router.get("/study/quizzes", response_model=QuizSetsResponse, summary="Quiz sets")
async def get_quizzes(
    owner_id: OwnerDep,
    study: StudyServiceDep,
    document_id: str | None = None,
) -> QuizSetsResponse:
    return QuizSetsResponse(sets=await study.get_quizzes(owner_id, document_id))


@router.get(
    "/study/suggestions",
    response_model=SuggestedMaterials,
    summary="Study material from other users' similar documents",
)
async def get_suggestions(
    owner_id: OwnerDep,
    recommendations: RecommendationDep,
    document_ids: Annotated[list[str] | None, Query()] = None,
    limit: Annotated[int | None, Query(ge=1, le=50)] = None,
) -> SuggestedMaterials:
    return await recommendations.get_suggested_materials(owner_id, document_ids, limit)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        providers["vector_store"] = await asyncio.to_thread(vector_store.is_available)

    critical = ("llm", "embedding", "vector_store")
    if all(providers.get(name, False) for name in critical):
        status = "healthy"
    elif providers.get("vector_store", False):
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=__version__, providers=providers)
