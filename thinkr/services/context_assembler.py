"""Token-budgeted context assembly from retrieved chunks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from thinkr.services.ingestion.chunker import PARAGRAPH_SEPARATOR
from thinkr.utils.logging import get_logger

if TYPE_CHECKING:
    from thinkr.interfaces.vector_store_provider import IVectorStoreProvider

EMPTY_CONTEXT = ""

_CHARS_PER_TOKEN = 4


class ContextAssembler:
    """Builds an LLM context string from the owner's most relevant chunks.

    Chunks are taken in rank order and never truncated.  Assembly stops at
    the first chunk that would push the estimated token count past
    ``token_budget``.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        top_k: int = 5,
        token_budget: int = 4000,
    ) -> None:
        self._vector_store = vector_store
        self._top_k = top_k
        self._token_budget = token_budget
        self._logger = get_logger(__name__)

    async def assemble(
        self,
        owner_id: str,
        query: str,
        document_id: str | None = None,
    ) -> str:
        """Return the context for *query*, or :data:`EMPTY_CONTEXT`.

        Parameters
        ----------
        owner_id:
            Only this owner's chunks are searched.
        query:
            Free text to retrieve against.
        document_id:
            Restricts retrieval to one document when given.
        """
        retrieved = await self._vector_store.query(
            owner_id=owner_id,
            query_text=query,
            top_k=self._top_k,
            document_id=document_id,
        )
        if not retrieved:
            self._logger.debug("context_empty", owner_id=owner_id, reason="no_results")
            return EMPTY_CONTEXT

        parts: list[str] = []
        used_tokens = 0.0
        for item in retrieved:
            cost = len(item.chunk.text) / _CHARS_PER_TOKEN
            if used_tokens + cost > self._token_budget:
                break
            parts.append(item.chunk.text)
            used_tokens += cost

        self._logger.debug(
            "context_assembled",
            owner_id=owner_id,
            retrieved=len(retrieved),
            used=len(parts),
            estimated_tokens=int(used_tokens),
        )
        if not parts:
            return EMPTY_CONTEXT
        return PARAGRAPH_SEPARATOR.join(parts)
