"""
Bounded job queue for calls against the generation API.

The queue enforces three limits on every external call, across all jobs:

- a concurrency cap (FIFO admission into ``max_concurrent`` slots),
- a rolling-window dispatch cap (``max_per_window`` attempts per
  ``window_seconds``),
- a per-attempt wall-clock timeout.

Rate-limited attempts are retried with exponential backoff while the job keeps
its slot; every other error propagates to the caller of ``submit``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from strategic_analysis.core.errors import (
    RateLimitExhausted,
    TaskTimeout,
    is_rate_limited,
)

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[str]]
RetryPredicate = Callable[[BaseException], bool]
Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class QueueConfig:
    """Process-wide limits for the generation API.

    Attributes:
        max_concurrent: Jobs allowed to run their external call at once.
        window_seconds: Length of the rolling dispatch window.
        max_per_window: Attempts allowed to start within one window.
        job_timeout_seconds: Wall-clock budget for a single attempt.
        max_attempts: Total attempts per job when rate limited.
        initial_backoff_seconds: First retry delay; doubles per attempt.
    """

    max_concurrent: int = 1
    window_seconds: float = 60.0
    max_per_window: int = 3
    job_timeout_seconds: float = 180.0
    max_attempts: int = 3
    initial_backoff_seconds: float = 15.0

    def backoff_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        return self.initial_backoff_seconds * (2 ** (attempt - 1))


class JobState(str, enum.Enum):
    QUEUED = "queued"
    DISPATCHED = "dispatched"
    RETRY_WAITING = "retry_waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class Job:
    """One submitted unit of work and its retry bookkeeping."""

    id: str
    task: TaskFactory
    attempts_remaining: int
    state: JobState = JobState.QUEUED
    attempts: int = 0
    last_error: Optional[BaseException] = None
    backoff_history: list[float] = field(default_factory=list)


class JobQueue:
    """Serialize generation calls under concurrency, window and retry limits."""

    def __init__(
        self,
        config: QueueConfig | None = None,
        *,
        is_retryable: RetryPredicate = is_rate_limited,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._config = config or QueueConfig()
        self._is_retryable = is_retryable
        self._clock = clock
        self._sleep = sleep

        self._slots: asyncio.Semaphore | None = None
        self._window_lock: asyncio.Lock | None = None
        self._dispatches: deque[float] = deque()
        self._queued = 0
        self._in_flight = 0

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def queued(self) -> int:
        """Jobs waiting for a concurrency slot."""
        return self._queued

    @property
    def in_flight(self) -> int:
        """Jobs holding a concurrency slot (dispatched or waiting to retry)."""
        return self._in_flight

    def _get_slots(self) -> asyncio.Semaphore:
        if self._slots is None:
            self._slots = asyncio.Semaphore(self._config.max_concurrent)
        return self._slots

    def _get_window_lock(self) -> asyncio.Lock:
        if self._window_lock is None:
            self._window_lock = asyncio.Lock()
        return self._window_lock

    async def submit(self, task: TaskFactory, job_id: str) -> str:
        """Run ``task`` under the queue limits and return its raw result.

        Args:
            task: Zero-argument callable returning a fresh awaitable per attempt.
            job_id: Identifier used to correlate log lines and results.

        Raises:
            RateLimitExhausted: Every attempt was rate limited.
            TaskTimeout: An attempt exceeded ``job_timeout_seconds``.
            Exception: Any non-retryable error raised by ``task``.
        """
        job = Job(id=job_id, task=task, attempts_remaining=self._config.max_attempts)
        self._queued += 1
        logger.info(
            "[job %s] Queued (waiting=%d, in_flight=%d).",
            job.id,
            self._queued,
            self._in_flight,
        )
        try:
            await self._get_slots().acquire()
        finally:
            self._queued -= 1

        self._in_flight += 1
        try:
            return await self._run(job)
        finally:
            self._in_flight -= 1
            self._get_slots().release()

    async def _run(self, job: Job) -> str:
        while True:
            await self._reserve_dispatch(job)
            job.attempts += 1
            job.attempts_remaining -= 1
            job.state = JobState.DISPATCHED
            logger.info(
                "[job %s] Dispatching attempt %d/%d.",
                job.id,
                job.attempts,
                self._config.max_attempts,
            )
            try:
                result = await asyncio.wait_for(
                    job.task(), timeout=self._config.job_timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                job.state = JobState.FAILED
                job.last_error = exc
                logger.error(
                    "[job %s] Timed out after %.0fs.",
                    job.id,
                    self._config.job_timeout_seconds,
                )
                raise TaskTimeout(
                    "The analysis request took too long to complete.",
                    details={
                        "job_id": job.id,
                        "timeout_seconds": self._config.job_timeout_seconds,
                    },
                ) from exc
            except Exception as exc:
                job.last_error = exc
                if not self._is_retryable(exc):
                    job.state = JobState.FAILED
                    logger.error("[job %s] Failed without retry: %s", job.id, exc)
                    raise
                if job.attempts_remaining <= 0:
                    job.state = JobState.FAILED
                    logger.error(
                        "[job %s] Rate limited on all %d attempts.",
                        job.id,
                        job.attempts,
                    )
                    raise RateLimitExhausted(
                        "Max retries reached due to persistent rate limiting.",
                        details={"job_id": job.id, "attempts": job.attempts},
                    ) from exc

                delay = self._config.backoff_for(job.attempts)
                job.state = JobState.RETRY_WAITING
                job.backoff_history.append(delay)
                logger.warning(
                    "[job %s] Rate limited; retrying in %.0fs (attempt %d/%d next).",
                    job.id,
                    delay,
                    job.attempts + 1,
                    self._config.max_attempts,
                )
                await self._sleep(delay)
                continue

            job.state = JobState.SUCCEEDED
            logger.info("[job %s] Completed on attempt %d.", job.id, job.attempts)
            return result

    async def _reserve_dispatch(self, job: Job) -> None:
        """Wait until the rolling window admits another external call."""
        async with self._get_window_lock():
            while True:
                now = self._clock()
                window = self._config.window_seconds
                while self._dispatches and now - self._dispatches[0] >= window:
                    self._dispatches.popleft()
                if len(self._dispatches) < self._config.max_per_window:
                    self._dispatches.append(now)
                    return
                wait = self._dispatches[0] + window - now
                logger.info(
                    "[job %s] Dispatch window full; waiting %.1fs.", job.id, wait
                )
                await self._sleep(wait)


__all__ = ["Job", "JobQueue", "JobState", "QueueConfig"]
