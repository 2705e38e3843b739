"""Job dispatcher: a pool of worker loops draining the job store."""
from __future__ import annotations

import asyncio
from typing import Mapping

import structlog
from aiohttp import ClientSession, ClientTimeout, web

from webhook_service.clients import CommerceApiClient, MailApiClient
from webhook_service.core.exceptions import UnknownJobTypeError
from webhook_service.domain.enums import JobStatus, JobType
from webhook_service.domain.models import Job
from webhook_service.handlers import JobHandler, build_handlers
from webhook_service.services.dependencies import (
    Repositories,
    build_job_service,
    get_app_repositories,
)
from webhook_service.services.jobs import JobService
from webhook_service.settings import settings

logger = structlog.get_logger(__name__)

_HTTP_SESSION_KEY = "jobs_http_session"
_DISPATCHER_KEY = "job_dispatcher"


class JobDispatcher:
    """N independent loops: claim one job, run its handler, record the outcome.

    Loops share nothing but the job service, so several dispatchers in
    separate processes can drain the same store.
    """

    def __init__(
        self,
        job_service: JobService,
        handlers: Mapping[JobType, JobHandler],
        *,
        workers: int = 4,
        poll_interval_seconds: float = 1.0,
        handler_timeout_seconds: float = 30.0,
    ):
        self._jobs = job_service
        self._handlers = dict(handlers)
        self._workers = workers
        self._poll_interval = poll_interval_seconds
        self._handler_timeout = handler_timeout_seconds
        self._tasks: list[asyncio.Task] = []

    async def process(self, job: Job) -> JobStatus | None:
        log = logger.bind(job_id=str(job.id), job_type=job.type.value, attempt=job.attempts)
        try:
            handler = self._handlers.get(job.type)
            if handler is None:
                raise UnknownJobTypeError(f"No handler registered for {job.type.value}")
            await asyncio.wait_for(handler(job), timeout=self._handler_timeout)
            completed = await self._jobs.complete(job)
        except asyncio.TimeoutError:
            error = f"Handler timed out after {self._handler_timeout:g}s"
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            log.warning("job attempt failed", error=error, exc_info=True)
        else:
            if not completed:
                return None
            log.info("job completed")
            return JobStatus.COMPLETED

        status = await self._jobs.record_failure(job, error)
        if status is None:
            return None
        if status == JobStatus.FAILED:
            log.error("job failed permanently", error=error, max_attempts=job.max_attempts)
        else:
            log.info("job scheduled for retry", error=error)
        return status

    async def run_once(self) -> Job | None:
        """Claim and process at most one job. Returns the claimed job, if any."""
        job = await self._jobs.claim()
        if job is not None:
            await self.process(job)
        return job

    async def _worker_loop(self, name: str) -> None:
        logger.info("job worker started", worker=name)
        while True:
            try:
                job = await self.run_once()
            except Exception:
                logger.exception("job worker iteration failed", worker=name)
                job = None
            if job is None:
                await asyncio.sleep(self._poll_interval)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker_loop(f"worker-{n}")) for n in range(self._workers)
        ]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        # an interrupted job stays in processing until the reaper releases it
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("job workers stopped", workers=len(tasks))


def create_dispatcher(
    repositories: Repositories, session: ClientSession, *, workers: int | None = None
) -> JobDispatcher:
    timeout = settings.collaborator_timeout_seconds
    handlers = build_handlers(
        repositories.events,
        CommerceApiClient(session, str(settings.commerce_api_url), timeout_s=timeout),
        MailApiClient(session, str(settings.mail_api_url), timeout_s=timeout),
    )
    return JobDispatcher(
        build_job_service(repositories),
        handlers,
        workers=workers or settings.job_workers,
        poll_interval_seconds=settings.job_poll_interval_seconds,
        handler_timeout_seconds=settings.job_handler_timeout_seconds,
    )


async def start_job_dispatcher(app: web.Application) -> None:
    session = ClientSession(timeout=ClientTimeout(total=settings.collaborator_timeout_seconds))
    app[_HTTP_SESSION_KEY] = session
    dispatcher = create_dispatcher(get_app_repositories(app), session)
    app[_DISPATCHER_KEY] = dispatcher
    dispatcher.start()


async def stop_job_dispatcher(app: web.Application) -> None:
    dispatcher = app.get(_DISPATCHER_KEY)
    if dispatcher is not None:
        await dispatcher.stop()
    session = app.get(_HTTP_SESSION_KEY)
    if session is not None:
        await session.close()
