"""aiohttp application entrypoint."""
from __future__ import annotations

from aiohttp import web
from aiohttp_cors import ResourceOptions, setup as cors_setup

from webhook_service.api.router import setup_routes
from webhook_service.db.migrations import apply_migrations_on_startup
from webhook_service.db.pool import close_pool, init_pool
from webhook_service.dispatcher import start_job_dispatcher, stop_job_dispatcher
from webhook_service.logging_config import configure_logging
from webhook_service.middleware.trace import create_trace_middleware
from webhook_service.services.dependencies import REPOSITORIES_KEY, Repositories, init_repositories
from webhook_service.settings import settings
from webhook_service.workers import create_maintenance_worker

# Configure structured logging
configure_logging()


async def healthcheck(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "service": settings.app_name, "env": settings.env})


def create_app(repositories: Repositories | None = None) -> web.Application:
    """Build the application.

    Passing ``repositories`` skips the database lifecycle hooks entirely;
    tests use this with in-memory repositories.
    """
    app = web.Application()

    # Add trace middleware first (before other middleware)
    app.middlewares.append(create_trace_middleware(settings.app_name))

    # Configure CORS first, before adding routes
    cors = cors_setup(
        app,
        defaults={
            origin: ResourceOptions(
                allow_credentials=True,
                expose_headers="*",
                allow_headers="*",
                allow_methods="*",
            )
            for origin in settings.cors_allowed_origins
        },
    )

    app.router.add_get("/health", healthcheck)
    setup_routes(app)

    if repositories is not None:
        app[REPOSITORIES_KEY] = repositories
    else:
        app.on_startup.append(init_pool)
        app.on_startup.append(apply_migrations_on_startup)
        app.on_startup.append(init_repositories)
        if settings.run_dispatcher_in_app:
            maintenance = create_maintenance_worker()
            app.on_startup.append(start_job_dispatcher)
            app.on_startup.append(maintenance.start)
            app.on_cleanup.append(stop_job_dispatcher)
            app.on_cleanup.append(maintenance.stop)
        app.on_cleanup.append(close_pool)

    # Add CORS to all routes
    for route in list(app.router.routes()):
        cors.add(route)

    return app


def main() -> None:
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
