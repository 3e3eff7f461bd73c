"""Recommendation models for cross-user study-material suggestions."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from thinkr.models.study import FlashcardSet, QuizSet


class SimilarityCandidate(BaseModel):
    """Another user's document scored against the requester's corpus."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    owner_id: str
    score: float = Field(ge=-1.0, le=1.0, description="Best cosine similarity to any owner document.")


class SuggestedMaterials(BaseModel):
    """Stored study sets of the highest-scoring candidate documents."""

    model_config = ConfigDict(frozen=True)

    candidates: list[SimilarityCandidate] = Field(default_factory=list)
    flashcards: list[FlashcardSet] = Field(default_factory=list)
    quizzes: list[QuizSet] = Field(default_factory=list)
