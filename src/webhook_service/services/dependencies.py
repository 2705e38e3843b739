"""Shared dependency providers for aiohttp handlers and workers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, MutableMapping, TypeVar

from aiohttp import web

from webhook_service.db.pool import get_pool
from webhook_service.repositories import (
    JobRepository,
    PlatformSettingsRepository,
    WebhookEventRepository,
)
from webhook_service.services.admin import WebhookAdminService
from webhook_service.services.ingestion import WebhookIngestionService
from webhook_service.services.jobs import JobService
from webhook_service.settings import settings

TService = TypeVar("TService")

REPOSITORIES_KEY = "repositories"
_INGESTION_SERVICE_KEY = "ingestion_service"
_ADMIN_SERVICE_KEY = "webhook_admin_service"
_JOB_SERVICE_KEY = "job_service"


@dataclass
class Repositories:
    events: WebhookEventRepository
    jobs: JobRepository
    platform_settings: PlatformSettingsRepository


async def create_repositories() -> Repositories:
    pool = await get_pool()
    return Repositories(
        events=WebhookEventRepository(pool),
        jobs=JobRepository(pool),
        platform_settings=PlatformSettingsRepository(pool),
    )


async def init_repositories(app: web.Application) -> None:
    """Startup hook; runs after the pool is initialised."""
    app[REPOSITORIES_KEY] = await create_repositories()


def get_app_repositories(app: MutableMapping[str, Any]) -> Repositories:
    repositories = app.get(REPOSITORIES_KEY)
    if repositories is None:
        raise RuntimeError("Repositories not initialised. Call init_repositories() first.")
    return repositories


def build_job_service(repositories: Repositories) -> JobService:
    return JobService(
        repositories.jobs,
        repositories.events,
        max_attempts=settings.job_max_attempts,
        backoff_max_seconds=settings.job_backoff_max_seconds,
    )


def _get_or_create_service(
    request: web.Request,
    cache_key: str,
    builder: Callable[[Repositories], TService],
) -> TService:
    service = request.get(cache_key)
    if service is None:
        service = builder(get_app_repositories(request.app))
        request[cache_key] = service
    return service


async def get_job_service(request: web.Request) -> JobService:
    return _get_or_create_service(request, _JOB_SERVICE_KEY, build_job_service)


async def get_ingestion_service(request: web.Request) -> WebhookIngestionService:
    job_service = await get_job_service(request)

    def builder(repos: Repositories) -> WebhookIngestionService:
        return WebhookIngestionService(repos.events, repos.platform_settings, job_service)

    return _get_or_create_service(request, _INGESTION_SERVICE_KEY, builder)


async def get_webhook_admin_service(request: web.Request) -> WebhookAdminService:
    job_service = await get_job_service(request)

    def builder(repos: Repositories) -> WebhookAdminService:
        return WebhookAdminService(repos.events, repos.jobs, job_service)

    return _get_or_create_service(request, _ADMIN_SERVICE_KEY, builder)
