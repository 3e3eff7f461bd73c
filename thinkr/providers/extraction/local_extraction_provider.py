"""In-process, job-based text extraction.

Implements :class:`IExtractionProvider` with the same submit/poll shape as a
hosted OCR service, so the ingestion poller works against either.  Each job
runs as an asyncio task that reads the stored object and extracts line
blocks in a worker thread:

* PDF   -- PyMuPDF text blocks, page by page
* image -- Tesseract via ``pytesseract`` on a Pillow image
* other -- decoded as UTF-8 text

Blank blocks are kept between paragraphs so the chunker still sees
paragraph boundaries after the poller joins lines.
"""

from __future__ import annotations

import asyncio
import io
import uuid

import fitz  # PyMuPDF
import pytesseract
import structlog
from cachetools import TTLCache
from PIL import Image

from thinkr.interfaces.extraction_provider import IExtractionProvider
from thinkr.interfaces.object_store import IObjectStore
from thinkr.models.extraction import ExtractionJob, ExtractionStatus
from thinkr.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_IMAGE_MAGIC: tuple[bytes, ...] = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8",
    b"GIF8",
    b"II*\x00",
    b"MM\x00*",
)


def detect_media_kind(data: bytes) -> str:
    """Return ``"pdf"``, ``"image"`` or ``"text"`` from the leading magic bytes."""
    if data[:5] == b"%PDF-":
        return "pdf"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image"
    if any(data.startswith(magic) for magic in _IMAGE_MAGIC):
        return "image"
    return "text"


def extract_lines(data: bytes) -> list[str]:
    """Extract line blocks from *data*; blank strings mark paragraph breaks."""
    kind = detect_media_kind(data)
    if kind == "pdf":
        return _pdf_lines(data)
    if kind == "image":
        return _image_lines(data)
    return data.decode("utf-8", errors="replace").splitlines()


def _pdf_lines(data: bytes) -> list[str]:
    lines: list[str] = []
    with fitz.open(stream=data, filetype="pdf") as doc:
        for page in doc:
            # Block tuples: (x0, y0, x1, y1, text, block_no, block_type); type 0 is text.
            for block in page.get_text("blocks"):
                if block[6] != 0:
                    continue
                lines.extend(block[4].splitlines())
                lines.append("")
    return lines


def _image_lines(data: bytes) -> list[str]:
    with Image.open(io.BytesIO(data)) as image:
        text = pytesseract.image_to_string(image.convert("RGB"))
    return text.splitlines()


class LocalExtractionProvider(IExtractionProvider):
    """Runs extraction jobs as background tasks and keeps their state in a TTL cache.

    Parameters
    ----------
    object_store:
        Source of the bytes named by each job's ``object_ref``.
    job_ttl_seconds:
        How long a job's state stays pollable after its last update.
    max_jobs:
        Upper bound on remembered jobs.
    """

    def __init__(
        self,
        object_store: IObjectStore,
        job_ttl_seconds: int = 3600,
        max_jobs: int = 1024,
    ) -> None:
        self._object_store = object_store
        self._jobs: TTLCache[str, ExtractionJob] = TTLCache(maxsize=max_jobs, ttl=job_ttl_seconds)
        self._tasks: dict[str, asyncio.Task[None]] = {}

    async def submit(self, object_ref: str) -> str:
        job_id = uuid.uuid4().hex
        self._jobs[job_id] = ExtractionJob(job_id=job_id, object_ref=object_ref)
        task = asyncio.create_task(self._run(job_id, object_ref))
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(job_id, None))
        logger.info("extraction_job_submitted", job_id=job_id, object_ref=object_ref)
        return job_id

    async def poll(self, job_id: str) -> ExtractionJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise ExtractionError(
                message=f"Unknown or expired extraction job {job_id}",
                provider_name=self.get_provider_name(),
            )
        return job

    async def cancel(self, job_id: str) -> bool:
        task = self._tasks.pop(job_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        self._update(job_id, status=ExtractionStatus.CANCELLED)
        logger.info("extraction_job_cancelled", job_id=job_id)
        return True

    def get_provider_name(self) -> str:
        return "local_extraction"

    def is_available(self) -> bool:
        return True

    async def shutdown(self) -> None:
        """Cancel extraction jobs still running."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

    async def _run(self, job_id: str, object_ref: str) -> None:
        self._update(job_id, status=ExtractionStatus.IN_PROGRESS)
        try:
            data = await self._object_store.get(object_ref)
            lines = await asyncio.to_thread(extract_lines, data)
        except Exception as exc:
            logger.warning(
                "extraction_job_failed",
                job_id=job_id,
                object_ref=object_ref,
                error=str(exc),
            )
            self._update(job_id, status=ExtractionStatus.FAILED, error=str(exc))
            return

        self._update(job_id, status=ExtractionStatus.SUCCEEDED, lines=lines)
        logger.info("extraction_job_succeeded", job_id=job_id, lines=len(lines))

    def _update(self, job_id: str, **changes: object) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        self._jobs[job_id] = job.model_copy(update=changes)
