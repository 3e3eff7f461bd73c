"""Thinkr domain models - re-exports all public model classes.

Submodules by concern:
    - document.py       - uploaded documents and visibility
    - rag.py            - chunks, retrieval hits, ingestion results
    - chat.py           - chat sessions and messages
    - study.py          - flashcards, quiz items and their sets
    - extraction.py     - extraction job state machine
    - recommendation.py - similarity candidates and suggested materials
"""

from __future__ import annotations

from thinkr.models.chat import ChatMessage, ChatSession, MessageRole
from thinkr.models.document import Document, Visibility
from thinkr.models.extraction import ExtractionJob, ExtractionStatus
from thinkr.models.rag import DocumentChunk, IngestionResult, RetrievedChunk, make_chunk_id
from thinkr.models.recommendation import SimilarityCandidate, SuggestedMaterials
from thinkr.models.study import (
    Flashcard,
    FlashcardSet,
    QuizItem,
    QuizSet,
    StudyMaterial,
    StudyMaterialKind,
)

__all__ = [
    "ChatMessage",
    "ChatSession",
    "Document",
    "DocumentChunk",
    "ExtractionJob",
    "ExtractionStatus",
    "Flashcard",
    "FlashcardSet",
    "IngestionResult",
    "MessageRole",
    "QuizItem",
    "QuizSet",
    "RetrievedChunk",
    "SimilarityCandidate",
    "StudyMaterial",
    "StudyMaterialKind",
    "SuggestedMaterials",
    "Visibility",
    "make_chunk_id",
]
