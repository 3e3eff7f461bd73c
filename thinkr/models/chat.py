"""Chat session models.

A session is keyed by owner, lazily created with one seed system message,
and only ever grows by appending user/assistant pairs.  Clearing replaces
the message list with a fresh seed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class MessageRole(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One message in a chat session."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ChatSession(BaseModel):
    """A user's chat history.  Always holds at least the seed message."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    messages: list[ChatMessage] = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
