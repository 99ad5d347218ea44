try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from strategic_analysis.core.errors import (
    RateLimitExhausted,
    TaskTimeout,
    UpstreamError,
    UpstreamRateLimited,
)
from strategic_analysis.services.job_queue import JobQueue, QueueConfig


class FakeClock:
    """Monotonic clock that only moves when the queue sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class Status429(Exception):
    status_code = 429


def _queue(clock: FakeClock, **overrides) -> JobQueue:
    return JobQueue(QueueConfig(**overrides), clock=clock, sleep=clock.sleep)


@pytest.mark.asyncio
async def test_window_caps_dispatches_across_jobs():
    clock = FakeClock()
    queue = _queue(clock)
    dispatched_at: list[float] = []

    def make_task(index: int):
        async def task() -> str:
            dispatched_at.append(clock.now)
            return f"result-{index}"

        return task

    results = await asyncio.gather(
        *(queue.submit(make_task(index), f"job-{index}") for index in range(5))
    )

    assert results == [f"result-{index}" for index in range(5)]
    assert dispatched_at == [0.0, 0.0, 0.0, 60.0, 60.0]
    assert clock.sleeps == [60.0]
    for start in dispatched_at:
        in_window = [t for t in dispatched_at if start <= t < start + 60]
        assert len(in_window) <= 3


@pytest.mark.asyncio
async def test_rate_limited_attempts_back_off_then_succeed():
    clock = FakeClock()
    queue = _queue(clock)
    outcomes = [UpstreamRateLimited("slow down"), UpstreamRateLimited("slow down"), "ok"]
    calls = 0

    async def task() -> str:
        nonlocal calls
        calls += 1
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert await queue.submit(task, "fundamentals-1") == "ok"
    assert calls == 3
    assert clock.sleeps == [15.0, 30.0]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_rate_limit_exhausted():
    clock = FakeClock()
    queue = _queue(clock)
    calls = 0

    async def task() -> str:
        nonlocal calls
        calls += 1
        raise Status429("quota")

    with pytest.raises(RateLimitExhausted) as excinfo:
        await queue.submit(task, "strategy-1")

    assert calls == 3
    assert clock.sleeps == [15.0, 30.0]
    assert isinstance(excinfo.value.__cause__, Status429)
    assert excinfo.value.details["attempts"] == 3
    assert queue.in_flight == 0


@pytest.mark.asyncio
async def test_retries_count_against_the_window():
    clock = FakeClock()
    queue = _queue(clock, max_per_window=2, initial_backoff_seconds=1)
    dispatched_at: list[float] = []

    async def task() -> str:
        dispatched_at.append(clock.now)
        raise UpstreamRateLimited("slow down")

    with pytest.raises(RateLimitExhausted):
        await queue.submit(task, "insights-1")

    # Third attempt waits for the first dispatch to leave the window.
    assert dispatched_at == [0.0, 1.0, 60.0]


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_unchanged():
    clock = FakeClock()
    queue = _queue(clock)
    calls = 0

    async def task() -> str:
        nonlocal calls
        calls += 1
        raise UpstreamError("bad gateway")

    with pytest.raises(UpstreamError) as excinfo:
        await queue.submit(task, "insights-2")

    assert type(excinfo.value) is UpstreamError
    assert calls == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_custom_retry_predicate_is_used():
    clock = FakeClock()
    queue = JobQueue(
        QueueConfig(max_attempts=2),
        is_retryable=lambda exc: isinstance(exc, ConnectionError),
        clock=clock,
        sleep=clock.sleep,
    )
    outcomes: list = [ConnectionError("reset"), "done"]

    async def task() -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert await queue.submit(task, "custom-1") == "done"
    assert clock.sleeps == [15.0]


@pytest.mark.asyncio
async def test_timeout_fails_job_and_releases_slot():
    queue = JobQueue(QueueConfig(job_timeout_seconds=0.05))

    async def slow() -> str:
        await asyncio.sleep(1)
        return "late"

    async def fast() -> str:
        return "quick"

    with pytest.raises(TaskTimeout):
        await queue.submit(slow, "challenge-analysis-1")

    assert queue.in_flight == 0
    assert await queue.submit(fast, "challenge-analysis-2") == "quick"


def test_backoff_doubles_per_attempt():
    config = QueueConfig()

    assert [config.backoff_for(attempt) for attempt in (1, 2, 3)] == [15.0, 30.0, 60.0]
