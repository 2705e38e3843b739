"""``webhook-jobs-worker``: standalone job dispatcher and tracking-sync enqueuer.

Usage::

    webhook-jobs-worker run --workers 8
    webhook-jobs-worker enqueue-tracking --awb 1234567890 --awb 9876543210
    webhook-jobs-worker enqueue-tracking --all
"""
from __future__ import annotations

import argparse
import asyncio
import signal

import structlog
from aiohttp import ClientSession, ClientTimeout

from webhook_service.clients import CommerceApiClient
from webhook_service.db.pool import close_pool, init_pool
from webhook_service.dispatcher import create_dispatcher
from webhook_service.domain.enums import JobType
from webhook_service.domain.models import Job
from webhook_service.logging_config import configure_logging
from webhook_service.services.dependencies import build_job_service, create_repositories
from webhook_service.settings import settings
from webhook_service.workers import create_maintenance_worker

logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Webhook service background jobs.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the job dispatcher and the stuck-job reaper.")
    run.add_argument(
        "--workers",
        "-w",
        type=int,
        default=settings.job_workers,
        help="Number of concurrent worker loops (default: JOB_WORKERS).",
    )

    tracking = sub.add_parser("enqueue-tracking", help="Queue tracking.sync jobs for shipments.")
    target = tracking.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--awb",
        action="append",
        help="Air waybill number; repeat for several shipments.",
    )
    target.add_argument(
        "--all",
        action="store_true",
        dest="all_open",
        help="Every shipment the storefront reports as still open.",
    )
    return parser.parse_args(argv)


async def run_workers(workers: int) -> None:
    await init_pool()
    repositories = await create_repositories()
    session = ClientSession(timeout=ClientTimeout(total=settings.collaborator_timeout_seconds))
    dispatcher = create_dispatcher(repositories, session, workers=workers)
    maintenance = create_maintenance_worker()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    dispatcher.start()
    await maintenance.start()
    logger.info("jobs worker running", workers=workers)
    try:
        await stop_event.wait()
        logger.info("shutdown requested, stopping workers")
    finally:
        await dispatcher.stop()
        await maintenance.stop()
        await session.close()
        await close_pool()


async def open_shipment_awbs() -> list[str]:
    async with ClientSession() as session:
        commerce = CommerceApiClient(
            session,
            str(settings.commerce_api_url),
            timeout_s=settings.collaborator_timeout_seconds,
        )
        return await commerce.list_open_shipment_awbs()


async def enqueue_tracking(awbs: list[str] | None, *, all_open: bool = False) -> list[Job]:
    if all_open:
        awbs = await open_shipment_awbs()
        logger.info("open shipments found", count=len(awbs))
    await init_pool()
    try:
        job_service = build_job_service(await create_repositories())
        jobs = []
        for awb in awbs or []:
            job = await job_service.enqueue(JobType.TRACKING_SYNC, {"awb": awb})
            print(f"Queued tracking sync for AWB {awb}: job {job.id}")
            jobs.append(job)
        return jobs
    finally:
        await close_pool()


def main(argv: list[str] | None = None) -> None:
    configure_logging()
    args = parse_args(argv)
    if args.command == "run":
        asyncio.run(run_workers(args.workers))
    else:
        asyncio.run(enqueue_tracking(args.awb, all_open=args.all_open))


if __name__ == "__main__":
    main()
