"""Bounded polling of asynchronous extraction jobs.

:class:`ExtractionJobPoller` submits a job to an :class:`IExtractionProvider`
and polls it until a terminal state:

    SUBMITTED -> IN_PROGRESS -> SUCCEEDED   returns the joined text
                             -> FAILED      raises ExtractionError
                             -> CANCELLED   raises ExtractionError

The interval between polls grows by ``backoff_factor`` up to
``max_poll_interval``, and the whole wait is bounded by ``max_wait_seconds``
(``ExtractionTimeoutError`` past that).  ``sleep`` and ``clock`` are
injectable so tests can drive the loop without real time passing.
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from thinkr.models.extraction import ExtractionStatus
from thinkr.utils.errors import ExtractionError, ExtractionTimeoutError

if TYPE_CHECKING:
    from thinkr.interfaces.extraction_provider import IExtractionProvider

logger = structlog.get_logger(logger_name=__name__)

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def join_lines(lines: list[str]) -> str:
    """Join extracted line blocks with newlines.

    Each block is trimmed; blank blocks survive as a single paragraph break.
    """
    text = "\n".join(line.strip() for line in lines)
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


class ExtractionJobPoller:
    """Drives one extraction job from submission to extracted text.

    Parameters
    ----------
    provider:
        Extraction backend implementing submit/poll.
    poll_interval:
        Delay before the first status check, in seconds.
    backoff_factor:
        Multiplier applied to the delay after every non-terminal poll.
    max_poll_interval:
        Ceiling for the delay between polls.
    max_wait_seconds:
        Total wall-clock budget for the job.
    sleep, clock:
        Injectable ``asyncio.sleep`` and monotonic clock.
    """

    def __init__(
        self,
        provider: IExtractionProvider,
        poll_interval: float = 1.0,
        backoff_factor: float = 1.5,
        max_poll_interval: float = 10.0,
        max_wait_seconds: float = 300.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if poll_interval <= 0 or max_wait_seconds <= 0:
            raise ValueError("poll_interval and max_wait_seconds must be positive")
        if backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        self._provider = provider
        self._poll_interval = poll_interval
        self._backoff_factor = backoff_factor
        self._max_poll_interval = max(max_poll_interval, poll_interval)
        self._max_wait_seconds = max_wait_seconds
        self._sleep = sleep
        self._clock = clock

    async def extract(self, object_ref: str) -> str:
        """Submit *object_ref* for extraction and wait for its text.

        If the caller is cancelled or the wait times out, the job is
        cancelled at the provider before the error propagates.

        Raises
        ------
        ExtractionError
            If the job fails or yields no text.
        ExtractionTimeoutError
            If the job is still running after ``max_wait_seconds``.
        """
        job_id = await self._provider.submit(object_ref)
        try:
            return await self._wait(job_id, object_ref)
        except (asyncio.CancelledError, ExtractionTimeoutError):
            if await self._provider.cancel(job_id):
                logger.info("extraction_job_abandoned", job_id=job_id, object_ref=object_ref)
            raise

    async def _wait(self, job_id: str, object_ref: str) -> str:
        started = self._clock()
        deadline = started + self._max_wait_seconds
        interval = self._poll_interval
        polls = 0

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "extraction_timeout",
                    job_id=job_id,
                    object_ref=object_ref,
                    polls=polls,
                    waited_seconds=round(self._clock() - started, 2),
                )
                raise ExtractionTimeoutError(
                    message=(
                        f"Extraction job {job_id} for {object_ref!r} did not finish "
                        f"within {self._max_wait_seconds:.0f}s"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )

            await self._sleep(min(interval, remaining))
            job = await self._provider.poll(job_id)
            polls += 1

            if job.status is ExtractionStatus.SUCCEEDED:
                text = join_lines(job.lines)
                if not text:
                    raise ExtractionError(
                        message=f"Extraction job {job_id} produced no text",
                        provider_name=self._provider.get_provider_name(),
                    )
                logger.info(
                    "extraction_succeeded",
                    job_id=job_id,
                    object_ref=object_ref,
                    polls=polls,
                    chars=len(text),
                )
                return text

            if job.status is ExtractionStatus.FAILED:
                raise ExtractionError(
                    message=f"Extraction job {job_id} failed: {job.error or 'unknown error'}",
                    provider_name=self._provider.get_provider_name(),
                )

            if job.status is ExtractionStatus.CANCELLED:
                raise ExtractionError(
                    message=f"Extraction job {job_id} was cancelled",
                    provider_name=self._provider.get_provider_name(),
                )

            interval = min(interval * self._backoff_factor, self._max_poll_interval)
