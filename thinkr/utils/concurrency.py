"""Bounded-concurrency helpers for fan-out reads.

The similarity engine and the suggestion lookup both fetch many documents
(chunk text, stored study sets) at once.  :func:`throttled_gather` runs those
awaitables through a semaphore so a large candidate pool cannot open an
unbounded number of concurrent store calls.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog

from thinkr.utils.logging import get_logger

_T = TypeVar("_T")

_DEFAULT_CONCURRENCY = 4

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables run at once.  A fresh
        semaphore of ``_DEFAULT_CONCURRENCY`` slots is used when omitted.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input awaitables.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(_DEFAULT_CONCURRENCY)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


def log_failures(
    results: list[_T | BaseException],
    labels: list[str],
    event: str,
    logger: structlog.BoundLogger | None = None,
) -> list[_T | None]:
    """Replace exception entries with ``None`` and log each one.

    ``asyncio.CancelledError`` is re-raised rather than logged.

    Parameters
    ----------
    results:
        Output of :func:`throttled_gather` with ``return_exceptions=True``.
    labels:
        One label per result (e.g. a document id), used in the log line.
    event:
        Structured log event name for failures.
    logger:
        Logger to write to; defaults to this module's logger.
    """
    log = logger or _logger
    cleaned: list[_T | None] = []
    for label, result in zip(labels, results, strict=True):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            log.warning(event, item=label, error=str(result))
            cleaned.append(None)
        else:
            cleaned.append(result)
    return cleaned
