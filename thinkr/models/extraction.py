"""Extraction job state machine.

    SUBMITTED -> IN_PROGRESS -> SUCCEEDED
                             -> FAILED
                             -> CANCELLED
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ExtractionStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExtractionStatus.SUCCEEDED,
            ExtractionStatus.FAILED,
            ExtractionStatus.CANCELLED,
        )


class ExtractionJob(BaseModel):
    """Snapshot of an extraction job as reported by the provider."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    object_ref: str = ""
    status: ExtractionStatus = ExtractionStatus.SUBMITTED
    lines: list[str] = Field(
        default_factory=list,
        description="Extracted line blocks in reading order; set on SUCCEEDED.",
    )
    error: str | None = None
