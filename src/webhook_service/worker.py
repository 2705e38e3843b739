"""Periodic background worker running named maintenance tasks.

Usage::

    async def reclaim(now: datetime) -> str | None:
        reclaimed = await repo.reclaim_stuck(now - timedelta(minutes=10))
        return f"reclaimed={reclaimed}" if reclaimed else None

    worker = BackgroundWorker(interval_seconds=60.0, tasks=[WorkerTask("reclaim", reclaim)])

    app.on_startup.append(worker.start)   # inside the HTTP app
    app.on_cleanup.append(worker.stop)

    worker.start()                        # or standalone, inside a running loop
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Sequence

import structlog

logger = structlog.get_logger(__name__)

# Receives the current UTC time, returns an optional summary (logged when non-empty).
TaskFn = Callable[[datetime], Awaitable[str | None]]


@dataclass
class WorkerTask:
    """A named periodic task executed by :class:`BackgroundWorker`."""

    name: str
    fn: TaskFn


@dataclass
class BackgroundWorker:
    """In-process async worker that runs its tasks every ``interval_seconds``.

    A failing task is logged and does not prevent the others from running.
    """

    interval_seconds: float = 60.0
    tasks: Sequence[WorkerTask] = field(default_factory=list)
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    async def start(self, _app: Any = None) -> None:
        """Start the loop. Compatible with ``app.on_startup``."""
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def stop(self, _app: Any = None) -> None:
        """Cancel the loop. Compatible with ``app.on_cleanup``."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def sweep(self, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        for task in self.tasks:
            try:
                summary = await task.fn(now)
            except Exception:
                logger.exception("background_task failed", task=task.name)
                continue
            if summary:
                logger.info("background_task completed", task=task.name, summary=summary)

    async def _loop(self) -> None:
        logger.info(
            "background_worker started",
            interval_seconds=self.interval_seconds,
            tasks=[t.name for t in self.tasks],
        )
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep()
        except asyncio.CancelledError:
            logger.info("background_worker stopped")
            raise
