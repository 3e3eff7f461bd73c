"""Study-material models: flashcards, quiz items and their per-document sets.

The item models double as the validation schema for LLM output, so any
field the generator asks for is required here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StudyMaterialKind(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    FLASHCARDS = "flashcards"
    QUIZ = "quiz"


class Flashcard(BaseModel):
    """A term on the front, a concise definition on the back."""

    model_config = ConfigDict(frozen=True)

    front: str = Field(min_length=1, description="Short term or concept.")
    back: str = Field(min_length=1, description="Concise definition or explanation.")


class QuizItem(BaseModel):
    """A multiple-choice question keyed by option letter."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1, description="Letter of the correct option.")
    options: dict[str, str] = Field(
        min_length=2,
        description='Option letter to text, e.g. {"A": "...", "B": "..."}.',
    )

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> QuizItem:
        if self.answer not in self.options:
            raise ValueError(f"answer {self.answer!r} is not one of {sorted(self.options)}")
        return self


class FlashcardSet(BaseModel):
    """All flashcards for one ``(owner_id, document_id)``."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    document_id: str
    flashcards: list[Flashcard] = Field(default_factory=list)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class QuizSet(BaseModel):
    """All quiz items for one ``(owner_id, document_id)``."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    document_id: str
    quiz: list[QuizItem] = Field(default_factory=list)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class StudyMaterial(BaseModel):
    """Outcome of generating both kinds for a document.

    A kind that failed is ``None`` and its error message is in ``errors``
    under the kind's value.
    """

    model_config = ConfigDict(frozen=True)

    owner_id: str
    document_id: str
    flashcards: FlashcardSet | None = None
    quiz: QuizSet | None = None
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.flashcards is not None and self.quiz is not None
