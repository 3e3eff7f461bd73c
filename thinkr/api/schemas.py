"""Pydantic request/response schemas for the Thinkr API.

Domain models (``Document``, ``ChatSession``, ``StudyMaterial`` ...) are
returned as-is where their shape is already the public contract; the
classes here wrap lists and carry request bodies.

Convention: request schemas end with "Request", response schemas end with
"Response".
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from thinkr.models.chat import ChatMessage
from thinkr.models.document import Document
from thinkr.models.study import FlashcardSet, QuizSet


class DocumentListResponse(BaseModel):
    """The caller's documents, newest first."""

    documents: list[Document] = Field(default_factory=list)
    total: int = 0


class ContextResponse(BaseModel):
    """Context assembled for a query from the caller's documents."""

    query: str
    context: str
    empty: bool = Field(description="True when no chunk fit the token budget.")


class ChatMessageRequest(BaseModel):
    """A user message for the chat assistant."""

    message: str = Field(..., min_length=1, max_length=4000)


class ChatReplyResponse(BaseModel):
    """The assistant's reply to one message."""

    reply: ChatMessage


class FlashcardSetsResponse(BaseModel):
    sets: list[FlashcardSet] = Field(default_factory=list)


class QuizSetsResponse(BaseModel):
    sets: list[QuizSet] = Field(default_factory=list)


class StudyGenerationResponse(BaseModel):
    """Outcome of regenerating study material for one document."""

    document_id: str
    flashcards: FlashcardSet | None = None
    quiz: QuizSet | None = None
    errors: dict[str, str] = Field(default_factory=dict)
    complete: bool = False


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
