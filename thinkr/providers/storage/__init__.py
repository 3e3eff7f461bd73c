"""Object storage adapters."""

from thinkr.providers.storage.local_object_store import LocalObjectStore

__all__ = ["LocalObjectStore"]
