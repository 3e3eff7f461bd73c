"""Abstract base class for asynchronous text-extraction services.

Extraction is modelled as a submitted job that is polled until it reaches a
terminal state, the way hosted OCR services work.  The poller in
:mod:`thinkr.services.ingestion.extraction_poller` drives this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from thinkr.models.extraction import ExtractionJob


# Concrete implementation: LocalExtractionProvider (thinkr/providers/extraction/)
class IExtractionProvider(ABC):
    """Contract for job-based text extraction from stored objects."""

    @abstractmethod
    async def submit(self, object_ref: str) -> str:
        """Start extracting text from the object at *object_ref*.

        Returns
        -------
        str
            Job id to pass to :meth:`poll`.

        Raises
        ------
        thinkr.utils.errors.ExtractionError
            If the job cannot be started.
        """

    @abstractmethod
    async def poll(self, job_id: str) -> ExtractionJob:
        """Return the current state of a job.

        Raises
        ------
        thinkr.utils.errors.ExtractionError
            If *job_id* is unknown.
        """

    @abstractmethod
    async def cancel(self, job_id: str) -> bool:
        """Stop a job that has not reached a terminal state.

        Returns ``True`` if a running job was cancelled, ``False`` if the
        job is unknown or already finished.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extraction backend."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the extraction backend can accept jobs."""
