"""Job store: durable queue of background work."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List
from uuid import UUID

from asyncpg import Connection, Pool, Record  # type: ignore[import-untyped]

from webhook_service.core.exceptions import NotFoundError
from webhook_service.domain.dto import JobCreateDTO
from webhook_service.domain.models import Job
from webhook_service.repositories.base import BaseRepository


class JobRepository(BaseRepository):
    _json_columns = ("payload",)

    def __init__(self, pool: Pool):
        super().__init__(pool)

    @classmethod
    def _to_model(cls, record: Record | dict[str, Any]) -> Job:
        return Job.model_validate(cls._normalize(dict(record)))

    @classmethod
    async def insert(cls, conn: Connection, dto: JobCreateDTO) -> Job:
        """Insert on a caller-held connection, so it can share the caller's transaction."""
        record = await conn.fetchrow(
            """
            INSERT INTO jobs (type, payload, status, attempts, max_attempts, next_attempt_at)
            VALUES ($1, $2::jsonb, 'pending', 0, $3, now())
            RETURNING *
            """,
            dto.type.value,
            json.dumps(dto.payload),
            dto.max_attempts,
        )
        assert record is not None
        return cls._to_model(record)

    async def enqueue(self, dto: JobCreateDTO) -> Job:
        async with self._pool.acquire() as conn:
            return await self.insert(conn, dto)

    async def get(self, job_id: UUID) -> Job:
        record = await self._fetchrow("SELECT * FROM jobs WHERE id = $1", job_id)
        if record is None:
            raise NotFoundError("Job not found")
        return self._to_model(record)

    async def claim_next(self) -> Job | None:
        """
        Atomically claim the oldest eligible pending job.

        FOR UPDATE SKIP LOCKED lets any number of workers (in any number of
        processes) poll concurrently without two of them taking the same row.

        Side-effects:
          - status -> processing
          - locked_at -> now()
          - attempts += 1
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                record = await conn.fetchrow(
                    """
                    WITH cte AS (
                        SELECT id
                        FROM jobs
                        WHERE status = 'pending'
                          AND next_attempt_at <= now()
                          AND attempts < max_attempts
                        ORDER BY created_at ASC
                        FOR UPDATE SKIP LOCKED
                        LIMIT 1
                    )
                    UPDATE jobs j
                    SET status = 'processing',
                        locked_at = now(),
                        attempts = j.attempts + 1,
                        updated_at = now()
                    FROM cte
                    WHERE j.id = cte.id
                    RETURNING j.*
                    """
                )
        return self._to_model(record) if record is not None else None

    async def mark_completed(self, job_id: UUID, *, attempts: int) -> bool:
        # attempts identifies the claim; a reclaimed and re-claimed job has moved on
        result = await self._execute(
            """
            UPDATE jobs
            SET status = 'completed',
                error = NULL,
                locked_at = NULL,
                processed_at = now(),
                updated_at = now()
            WHERE id = $1 AND status = 'processing' AND attempts = $2
            """,
            job_id,
            attempts,
        )
        return self._affected(result) == 1

    async def mark_retry(
        self, job_id: UUID, *, attempts: int, error: str, next_attempt_at: datetime
    ) -> bool:
        result = await self._execute(
            """
            UPDATE jobs
            SET status = 'pending',
                error = $3,
                locked_at = NULL,
                next_attempt_at = $4,
                updated_at = now()
            WHERE id = $1 AND status = 'processing' AND attempts = $2
            """,
            job_id,
            attempts,
            error,
            next_attempt_at,
        )
        return self._affected(result) == 1

    async def mark_failed(self, job_id: UUID, *, attempts: int, error: str) -> bool:
        result = await self._execute(
            """
            UPDATE jobs
            SET status = 'failed',
                error = $3,
                locked_at = NULL,
                updated_at = now()
            WHERE id = $1 AND status = 'processing' AND attempts = $2
            """,
            job_id,
            attempts,
            error,
        )
        return self._affected(result) == 1

    async def reclaim_stuck(self, locked_before: datetime, *, error: str) -> tuple[int, int]:
        """Release jobs stuck in ``processing`` (e.g. after a worker crash).

        Jobs with attempts left go back to ``pending``; the rest become
        ``failed``. Returns ``(reclaimed, failed)`` row counts.
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                failed = await conn.execute(
                    """
                    UPDATE jobs
                    SET status = 'failed',
                        error = $2,
                        locked_at = NULL,
                        updated_at = now()
                    WHERE status = 'processing'
                      AND locked_at < $1
                      AND attempts >= max_attempts
                    """,
                    locked_before,
                    error,
                )
                reclaimed = await conn.execute(
                    """
                    UPDATE jobs
                    SET status = 'pending',
                        locked_at = NULL,
                        next_attempt_at = now(),
                        updated_at = now()
                    WHERE status = 'processing'
                      AND locked_at < $1
                      AND attempts < max_attempts
                    """,
                    locked_before,
                )
        return self._affected(reclaimed), self._affected(failed)

    async def latest_for_event(self, event_id: UUID) -> Job | None:
        record = await self._fetchrow(
            """
            SELECT *
            FROM jobs
            WHERE payload ->> 'webhook_event_id' = $1
            ORDER BY created_at DESC
            LIMIT 1
            """,
            str(event_id),
        )
        return self._to_model(record) if record is not None else None

    async def list_for_event(self, event_id: UUID) -> List[Job]:
        records = await self._fetch(
            """
            SELECT *
            FROM jobs
            WHERE payload ->> 'webhook_event_id' = $1
            ORDER BY created_at DESC
            """,
            str(event_id),
        )
        return [self._to_model(r) for r in records]
