"""Retrieval-augmented chat over a user's own documents.

Every owner has exactly one chat session.  It is created on first touch
with a seed system message and afterwards only grows: each
:meth:`ChatService.send_message` appends the user's message and the
assistant's reply in a single atomic store call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from thinkr.models.chat import ChatMessage, ChatSession, MessageRole
from thinkr.services.context_assembler import EMPTY_CONTEXT
from thinkr.utils.logging import get_logger

if TYPE_CHECKING:
    from thinkr.interfaces.llm_provider import ILLMProvider
    from thinkr.interfaces.metadata_store import IMetadataStore
    from thinkr.services.context_assembler import ContextAssembler

DEFAULT_SEED_MESSAGE = (
    "You are a helpful assistant that provides accurate information "
    "based on the context provided."
)

NO_CONTEXT_NOTE = "(No relevant material was found in the user's documents.)"

_SESSION_METADATA = {"type": "general"}


class ChatService:
    """Answers user messages using context from their documents.

    Parameters
    ----------
    llm_provider:
        Backend producing the assistant reply.
    metadata_store:
        Persists chat sessions.
    context_assembler:
        Supplies retrieved context for each message.
    seed_message:
        Content of the system message every new or cleared session starts with.
    history_window:
        Number of most recent user/assistant messages included in the prompt.
    temperature, max_tokens:
        Passed through to the provider.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        metadata_store: IMetadataStore,
        context_assembler: ContextAssembler,
        seed_message: str = DEFAULT_SEED_MESSAGE,
        history_window: int = 5,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> None:
        self._llm = llm_provider
        self._store = metadata_store
        self._assembler = context_assembler
        self._seed_message = seed_message
        self._history_window = history_window
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._logger = get_logger(__name__)

    @property
    def seed_message(self) -> str:
        return self._seed_message

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_session(self, owner_id: str) -> ChatSession:
        """Return the owner's session, creating a seeded one if absent."""
        session = await self._store.get_session(owner_id)
        if session is not None:
            return session
        session = await self._store.create_session(self._new_session(owner_id))
        self._logger.info("chat_session_created", owner_id=owner_id)
        return session

    async def send_message(self, owner_id: str, text: str) -> ChatMessage:
        """Answer *text* and record the exchange.

        Raises
        ------
        ValueError
            If *text* is blank.
        thinkr.utils.errors.LLMError
            If the provider fails; nothing is appended in that case.
        """
        if not text or not text.strip():
            raise ValueError("message text must not be empty")

        session = await self.get_session(owner_id)
        context = await self._assembler.assemble(owner_id, text)

        system_prompt = session.messages[0].content
        user_prompt = self.build_prompt(text, context, self._recent_history(session))

        reply_text = await self._llm.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        user_message = ChatMessage(role=MessageRole.USER, content=text)
        reply = ChatMessage(role=MessageRole.ASSISTANT, content=reply_text)
        await self._store.append_messages(owner_id, [user_message, reply])

        self._logger.info(
            "chat_message_answered",
            owner_id=owner_id,
            context_chars=len(context),
            reply_chars=len(reply_text),
        )
        return reply

    async def clear_history(self, owner_id: str) -> ChatSession:
        """Reset the session to a single fresh seed message."""
        session = await self._store.replace_messages(self._new_session(owner_id))
        self._logger.info("chat_history_cleared", owner_id=owner_id)
        return session

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    @staticmethod
    def build_prompt(message: str, context: str, history: list[ChatMessage]) -> str:
        """Combine retrieved context, recent history and the new message."""
        sections: list[str] = []
        if history:
            lines = [f"{m.role.value}: {m.content}" for m in history]
            sections.append("Conversation so far:\n" + "\n".join(lines))

        material = context if context != EMPTY_CONTEXT else NO_CONTEXT_NOTE
        sections.append(
            f"Based on the following information:\n\n{material}\n\n"
            f"And considering our conversation so far, please respond to: {message}"
        )
        return "\n\n".join(sections)

    def _recent_history(self, session: ChatSession) -> list[ChatMessage]:
        if self._history_window <= 0:
            return []
        turns = [m for m in session.messages if m.role is not MessageRole.SYSTEM]
        return turns[-self._history_window :]

    def _new_session(self, owner_id: str) -> ChatSession:
        return ChatSession(
            owner_id=owner_id,
            messages=[ChatMessage(role=MessageRole.SYSTEM, content=self._seed_message)],
            metadata=dict(_SESSION_METADATA),
        )
