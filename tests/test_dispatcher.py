from __future__ import annotations

import asyncio
from collections import Counter
from datetime import timedelta

import pytest

from tests.fakes import make_repositories
from webhook_service.dispatcher import JobDispatcher
from webhook_service.domain.enums import JobStatus, JobType
from webhook_service.services.jobs import JobService


def _job_service(repos) -> JobService:
    return JobService(repos.jobs, repos.events, max_attempts=3, backoff_max_seconds=0)


@pytest.mark.asyncio
async def test_each_job_is_processed_by_exactly_one_worker():
    repos = make_repositories()
    service = _job_service(repos)
    for n in range(25):
        await service.enqueue(JobType.TRACKING_SYNC, {"awb": f"AWB{n}"})

    seen: Counter = Counter()

    async def handler(job):
        seen[job.id] += 1
        await asyncio.sleep(0.001)

    dispatcher = JobDispatcher(
        service,
        {JobType.TRACKING_SYNC: handler},
        workers=5,
        poll_interval_seconds=0.01,
    )
    dispatcher.start()
    try:
        for _ in range(200):
            if all(j.status == JobStatus.COMPLETED for j in repos.jobs.jobs.values()):
                break
            await asyncio.sleep(0.01)
    finally:
        await dispatcher.stop()

    assert len(seen) == 25
    assert set(seen.values()) == {1}
    assert all(j.status == JobStatus.COMPLETED for j in repos.jobs.jobs.values())
    assert all(j.attempts == 1 for j in repos.jobs.jobs.values())


@pytest.mark.asyncio
async def test_handler_error_is_recorded_and_retried():
    repos = make_repositories()
    service = _job_service(repos)
    created = await service.enqueue(JobType.TRACKING_SYNC, {"awb": "AWB1"})
    calls = 0

    async def flaky(job):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("carrier API 502")

    dispatcher = JobDispatcher(service, {JobType.TRACKING_SYNC: flaky})

    await dispatcher.run_once()
    stored = await repos.jobs.get(created.id)
    assert stored.status == JobStatus.PENDING
    assert stored.error == "carrier API 502"

    await dispatcher.run_once()
    stored = await repos.jobs.get(created.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.attempts == 2
    assert stored.error is None


@pytest.mark.asyncio
async def test_timeout_counts_as_failed_attempt():
    repos = make_repositories()
    service = _job_service(repos)
    created = await service.enqueue(JobType.TRACKING_SYNC, {"awb": "AWB1"}, max_attempts=1)

    async def slow(job):
        await asyncio.sleep(5)

    dispatcher = JobDispatcher(service, {JobType.TRACKING_SYNC: slow}, handler_timeout_seconds=0.05)
    job = await service.claim()
    assert await dispatcher.process(job) == JobStatus.FAILED

    stored = await repos.jobs.get(created.id)
    assert stored.status == JobStatus.FAILED
    assert stored.error == "Handler timed out after 0.05s"


@pytest.mark.asyncio
async def test_job_without_handler_fails_its_attempt():
    repos = make_repositories()
    service = _job_service(repos)
    created = await service.enqueue(JobType.EMAIL_SEND, {"to": "a@b.in", "subject": "Hi", "html": "<p>Hi</p>"})

    dispatcher = JobDispatcher(service, {})
    await dispatcher.run_once()

    stored = await repos.jobs.get(created.id)
    assert stored.status == JobStatus.PENDING
    assert stored.attempts == 1
    assert "email.send" in stored.error


@pytest.mark.asyncio
async def test_run_once_on_empty_queue_returns_none():
    repos = make_repositories()
    dispatcher = JobDispatcher(_job_service(repos), {})
    assert await dispatcher.run_once() is None


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    repos = make_repositories()
    dispatcher = JobDispatcher(_job_service(repos), {})
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_job_reclaimed_during_handler_is_left_to_new_owner():
    repos = make_repositories()
    service = _job_service(repos)
    created = await service.enqueue(JobType.TRACKING_SYNC, {"awb": "AWB1"})

    async def slow_then_fail(job):
        # the reaper and another worker take the job while this attempt runs
        await repos.jobs.reclaim_stuck(job.locked_at + timedelta(seconds=1), error="lost")
        await service.claim()
        raise RuntimeError("too late")

    dispatcher = JobDispatcher(service, {JobType.TRACKING_SYNC: slow_then_fail})
    job = await service.claim()
    assert await dispatcher.process(job) is None

    stored = await repos.jobs.get(created.id)
    assert stored.status == JobStatus.PROCESSING
    assert stored.attempts == 2
