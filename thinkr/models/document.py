"""Document records owned by a user.

A :class:`Document` is created on upload, enriched by ingestion, and
removed by an explicit delete (which cascades to chunks, study sets and
the stored object).  ``ready`` only ever moves from ``False`` to ``True``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Visibility(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Whether other users may receive this document in suggestions."""

    PRIVATE = "PRIVATE"
    PUBLIC = "PUBLIC"


class Document(BaseModel):
    """A user-uploaded document and its ingestion status."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Identifier unique within the owner's documents.")
    owner_id: str = Field(description="Identifier of the user who uploaded the document.")
    name: str = Field(description="Human-readable document name.")
    object_ref: str = Field(description="Key of the stored bytes in the object store.")
    uploaded_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc),  # noqa: UP017
        description="Upload timestamp (UTC).",
    )
    ready: bool = Field(
        default=False,
        description="True once both flashcards and a quiz exist for the document.",
    )
    visibility: Visibility = Field(default=Visibility.PRIVATE)
    ingestion_error: str | None = Field(
        default=None,
        description="Failure recorded by the last ingestion run, if any.",
    )
