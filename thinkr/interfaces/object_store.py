"""Abstract base class for raw document storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: LocalObjectStore (thinkr/providers/storage/)
class IObjectStore(ABC):
    """Key/bytes storage for uploaded files."""

    @abstractmethod
    async def put(self, ref: str, data: bytes) -> None:
        """Store *data* under *ref*, replacing any existing object."""

    @abstractmethod
    async def get(self, ref: str) -> bytes:
        """Return the bytes stored under *ref*.

        Raises
        ------
        thinkr.utils.errors.NotFoundError
            If no object exists under *ref*.
        """

    @abstractmethod
    async def delete(self, ref: str) -> bool:
        """Remove *ref*.  Returns ``False`` if it did not exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
