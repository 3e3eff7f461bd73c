"""Filesystem-backed object store.

Each object is one file under ``base_dir``.  Refs are percent-encoded into a
single flat filename, so ``owner/doc.pdf`` and ``..`` can never escape the
base directory.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import quote

import structlog

from thinkr.interfaces.object_store import IObjectStore
from thinkr.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)


class LocalObjectStore(IObjectStore):
    """Stores uploaded bytes on local disk."""

    def __init__(self, base_dir: str | Path = "data/objects") -> None:
        self._base_dir = Path(base_dir)

    def path_for(self, ref: str) -> Path:
        return self._base_dir / f"{quote(ref, safe='')}.obj"

    async def put(self, ref: str, data: bytes) -> None:
        path = self.path_for(ref)
        await asyncio.to_thread(self._write, path, data)
        logger.info("object_stored", ref=ref, size=len(data))

    async def get(self, ref: str) -> bytes:
        path = self.path_for(ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise NotFoundError(
                message=f"No stored object for {ref!r}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, ref: str) -> bool:
        path = self.path_for(ref)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        logger.info("object_deleted", ref=ref)
        return True

    def get_provider_name(self) -> str:
        return "local_object_store"

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)
