"""LLM-backed generation of flashcards and quizzes.

Each kind is requested with an explicit JSON schema of the form
``{"items": [...]}``.  Whatever the model returns is stripped of markdown
fences and validated against the Pydantic item models; anything that does
not validate raises :class:`GenerationSchemaError` for that kind only.

Generated sets replace any previously stored set for the same document.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from thinkr.models.study import (
    Flashcard,
    FlashcardSet,
    QuizItem,
    QuizSet,
    StudyMaterial,
    StudyMaterialKind,
)
from thinkr.utils.errors import GenerationSchemaError, LLMError
from thinkr.utils.logging import get_logger

if TYPE_CHECKING:
    from thinkr.interfaces.llm_provider import ILLMProvider
    from thinkr.interfaces.metadata_store import IMetadataStore
    from thinkr.interfaces.vector_store_provider import IVectorStoreProvider

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class _FlashcardEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[Flashcard]


class _QuizEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[QuizItem]


_ENVELOPES: dict[StudyMaterialKind, TypeAdapter[Any]] = {
    StudyMaterialKind.FLASHCARDS: TypeAdapter(_FlashcardEnvelope),
    StudyMaterialKind.QUIZ: TypeAdapter(_QuizEnvelope),
}

# ---------------------------------------------------------------------------
# JSON schemas sent to the model
# ---------------------------------------------------------------------------

FLASHCARD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "front": {"type": "string"},
                    "back": {"type": "string"},
                },
                "required": ["front", "back"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["items"],
    "additionalProperties": False,
}

QUIZ_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "answer": {"type": "string", "enum": ["A", "B", "C", "D"]},
                    "options": {
                        "type": "object",
                        "properties": {
                            "A": {"type": "string"},
                            "B": {"type": "string"},
                            "C": {"type": "string"},
                            "D": {"type": "string"},
                        },
                        "required": ["A", "B", "C", "D"],
                        "additionalProperties": False,
                    },
                },
                "required": ["question", "answer", "options"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["items"],
    "additionalProperties": False,
}

_SCHEMAS: dict[StudyMaterialKind, dict[str, Any]] = {
    StudyMaterialKind.FLASHCARDS: FLASHCARD_SCHEMA,
    StudyMaterialKind.QUIZ: QUIZ_SCHEMA,
}

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_FLASHCARD_SYSTEM_PROMPT = (
    "You are an expert study assistant. Create flashcards from the material the "
    "user provides. Each flashcard has a 'front' holding a short term or concept "
    "taken from the material and a 'back' holding a concise definition or "
    "explanation of it. Cover the key ideas of the material without repeating "
    'terms. Respond only with JSON of the form {"items": [{"front": "...", '
    '"back": "..."}]}.'
)

_QUIZ_SYSTEM_PROMPT = (
    "You are an expert study assistant. Create multiple-choice quiz questions "
    "from the material the user provides. Each item has a 'question', an "
    "'options' object with the keys A, B, C and D holding one correct answer and "
    "three plausible distractors, and an 'answer' holding the letter of the "
    'correct option. Respond only with JSON of the form {"items": [{"question": '
    '"...", "answer": "A", "options": {"A": "...", "B": "...", "C": "...", '
    '"D": "..."}}]}.'
)

_SYSTEM_PROMPTS: dict[StudyMaterialKind, str] = {
    StudyMaterialKind.FLASHCARDS: _FLASHCARD_SYSTEM_PROMPT,
    StudyMaterialKind.QUIZ: _QUIZ_SYSTEM_PROMPT,
}


def strip_code_fences(raw: str) -> str:
    """Return the JSON payload of *raw*, unwrapping a markdown fence if present."""
    text = raw.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()
    return text


class StudyMaterialService:
    """Generates, stores and reads flashcard and quiz sets.

    Parameters
    ----------
    llm_provider:
        Backend used for schema-constrained generation.
    metadata_store:
        Where generated sets are persisted.
    vector_store:
        Source of a document's chunks when regenerating from storage.
    temperature:
        Sampling temperature for generation requests.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        metadata_store: IMetadataStore,
        vector_store: IVectorStoreProvider,
        temperature: float = 0.3,
    ) -> None:
        self._llm = llm_provider
        self._store = metadata_store
        self._vector_store = vector_store
        self._temperature = temperature
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        kind: StudyMaterialKind,
        document_text: str,
    ) -> list[Flashcard] | list[QuizItem]:
        """Ask the model for one kind of study material and validate it.

        Raises
        ------
        GenerationSchemaError
            If the output is not JSON or does not match the item schema.
        LLMError
            If the provider call itself fails.
        """
        raw = await self._llm.structured_generate(
            system_prompt=_SYSTEM_PROMPTS[kind],
            user_prompt=f"Material:\n\n{document_text}",
            schema_name=kind.value,
            json_schema=_SCHEMAS[kind],
            temperature=self._temperature,
        )
        return self._parse(kind, raw)

    def _parse(self, kind: StudyMaterialKind, raw: str) -> list[Flashcard] | list[QuizItem]:
        payload = strip_code_fences(raw)
        try:
            envelope = _ENVELOPES[kind].validate_json(payload)
        except ValidationError as exc:
            self._logger.warning(
                "study_material_schema_mismatch",
                kind=kind.value,
                errors=exc.error_count(),
                response_preview=raw[:200],
            )
            raise GenerationSchemaError(
                message=f"{kind.value} output did not match the expected schema: {exc}",
                provider_name=self._llm.get_provider_name(),
                kind=kind.value,
            ) from exc
        return envelope.items

    async def generate_and_store(
        self,
        owner_id: str,
        document_id: str,
        document_text: str,
    ) -> StudyMaterial:
        """Generate both kinds independently and upsert each one that succeeds.

        A failure in one kind is recorded in ``StudyMaterial.errors`` and
        does not prevent the other kind from being generated and stored.
        """
        flashcard_set: FlashcardSet | None = None
        quiz_set: QuizSet | None = None
        errors: dict[str, str] = {}

        try:
            flashcards = await self.generate(StudyMaterialKind.FLASHCARDS, document_text)
            flashcard_set = FlashcardSet(
                owner_id=owner_id, document_id=document_id, flashcards=flashcards
            )
            await self._store.upsert_flashcards(flashcard_set)
        except (GenerationSchemaError, LLMError) as exc:
            errors[StudyMaterialKind.FLASHCARDS.value] = str(exc)

        try:
            quiz = await self.generate(StudyMaterialKind.QUIZ, document_text)
            quiz_set = QuizSet(owner_id=owner_id, document_id=document_id, quiz=quiz)
            await self._store.upsert_quiz(quiz_set)
        except (GenerationSchemaError, LLMError) as exc:
            errors[StudyMaterialKind.QUIZ.value] = str(exc)

        self._logger.info(
            "study_material_generated",
            owner_id=owner_id,
            document_id=document_id,
            flashcards=len(flashcard_set.flashcards) if flashcard_set else None,
            quiz_items=len(quiz_set.quiz) if quiz_set else None,
            failed_kinds=sorted(errors),
        )
        return StudyMaterial(
            owner_id=owner_id,
            document_id=document_id,
            flashcards=flashcard_set,
            quiz=quiz_set,
            errors=errors,
        )

    async def generate_study_material(self, owner_id: str, document_id: str) -> StudyMaterial:
        """Regenerate both sets for a stored document from its chunks."""
        chunks = await self._vector_store.get_document_chunks(owner_id, document_id)
        if not chunks:
            message = "document has no stored chunks"
            return StudyMaterial(
                owner_id=owner_id,
                document_id=document_id,
                errors={
                    StudyMaterialKind.FLASHCARDS.value: message,
                    StudyMaterialKind.QUIZ.value: message,
                },
            )
        text = "\n\n".join(chunk.text for chunk in chunks)
        return await self.generate_and_store(owner_id, document_id, text)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    # Sets of a not-ready document stay hidden until ingestion completes.

    async def get_flashcards(
        self, owner_id: str, document_id: str | None = None
    ) -> list[FlashcardSet]:
        return await self._store.get_flashcards(owner_id, document_id, ready_only=True)

    async def get_quizzes(self, owner_id: str, document_id: str | None = None) -> list[QuizSet]:
        return await self._store.get_quizzes(owner_id, document_id, ready_only=True)

