"""Event store: every inbound webhook delivery, kept regardless of outcome."""
from __future__ import annotations

import json
from typing import Any, Callable, List, Tuple
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from webhook_service.core.exceptions import NotFoundError
from webhook_service.domain.dto import EventListFilters, JobCreateDTO, WebhookEventCreateDTO
from webhook_service.domain.models import Job, WebhookEvent, WebhookEventView
from webhook_service.repositories.base import BaseRepository
from webhook_service.repositories.jobs import JobRepository

_DERIVED_STATUS_SQL = """
    CASE
        WHEN j.status = 'failed' THEN 'failed'
        WHEN e.processed THEN 'processed'
        ELSE 'pending'
    END
"""


class WebhookEventRepository(BaseRepository):
    _json_columns = ("payload", "headers", "latest_job")

    def __init__(self, pool: Pool):
        super().__init__(pool)

    @classmethod
    def _to_model(cls, record: Record | dict[str, Any]) -> WebhookEvent:
        payload = cls._normalize(dict(record))
        payload.pop("latest_job", None)
        payload.pop("total_count", None)
        return WebhookEvent.model_validate(payload)

    async def insert_with_job(
        self,
        dto: WebhookEventCreateDTO,
        job_for: Callable[[WebhookEvent], JobCreateDTO],
    ) -> Tuple[WebhookEvent, Job | None]:
        """Store a delivery once per ``(source, idempotency_key)``, together with its first job.

        Event and job are written in one transaction, and only by the call
        that created the event; a concurrent or later identical delivery gets
        the stored event and ``None``.
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                record = await conn.fetchrow(
                    """
                    INSERT INTO webhook_events (
                        source,
                        event_type,
                        external_id,
                        payload,
                        headers,
                        signature,
                        signature_valid,
                        idempotency_key,
                        processed
                    )
                    VALUES ($1, $2, $3, $4::jsonb, $5::jsonb, $6, $7, $8, false)
                    ON CONFLICT (source, idempotency_key) DO NOTHING
                    RETURNING *
                    """,
                    dto.source,
                    dto.event_type,
                    dto.external_id,
                    json.dumps(dto.payload),
                    json.dumps(dto.headers),
                    dto.signature,
                    dto.signature_valid,
                    dto.idempotency_key,
                )
                if record is None:
                    record = await conn.fetchrow(
                        "SELECT * FROM webhook_events WHERE source = $1 AND idempotency_key = $2",
                        dto.source,
                        dto.idempotency_key,
                    )
                    assert record is not None
                    return self._to_model(record), None
                event = self._to_model(record)
                job = await JobRepository.insert(conn, job_for(event))
        return event, job

    async def get(self, event_id: UUID) -> WebhookEvent:
        record = await self._fetchrow("SELECT * FROM webhook_events WHERE id = $1", event_id)
        if record is None:
            raise NotFoundError("Webhook event not found")
        return self._to_model(record)

    async def find_processed_duplicate(
        self, source: str, *, external_id: str | None, idempotency_key: str
    ) -> WebhookEvent | None:
        record = await self._fetchrow(
            """
            SELECT *
            FROM webhook_events
            WHERE source = $1
              AND processed
              AND (idempotency_key = $3 OR ($2::text IS NOT NULL AND external_id = $2))
            ORDER BY created_at ASC
            LIMIT 1
            """,
            source,
            external_id,
            idempotency_key,
        )
        return self._to_model(record) if record is not None else None

    async def mark_processed(self, event_id: UUID) -> bool:
        """Flag the event processed unless a sibling with the same provider id already is.

        Returns False when a processed sibling exists; raises NotFoundError for
        an unknown id.
        """
        record = await self._fetchrow(
            """
            UPDATE webhook_events e
            SET processed = true,
                processed_at = COALESCE(e.processed_at, now())
            WHERE e.id = $1
              AND (
                  e.external_id IS NULL
                  OR NOT EXISTS (
                      SELECT 1
                      FROM webhook_events o
                      WHERE o.source = e.source
                        AND o.external_id = e.external_id
                        AND o.processed
                        AND o.id <> e.id
                  )
              )
            RETURNING id
            """,
            event_id,
        )
        if record is not None:
            return True
        await self.get(event_id)
        return False

    async def reset_for_retry(self, event_id: UUID) -> WebhookEvent:
        record = await self._fetchrow(
            """
            UPDATE webhook_events
            SET processed = false,
                last_retry_at = now()
            WHERE id = $1
            RETURNING *
            """,
            event_id,
        )
        if record is None:
            raise NotFoundError("Webhook event not found")
        return self._to_model(record)

    async def list_with_latest_job(
        self,
        filters: EventListFilters,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[WebhookEventView], int]:
        where = ["true"]
        values: list[Any] = []
        idx = 1
        if filters.source is not None:
            where.append(f"e.source = ${idx}")
            values.append(filters.source)
            idx += 1
        if filters.event_type is not None:
            where.append(f"e.event_type ILIKE '%' || ${idx} || '%'")
            values.append(filters.event_type)
            idx += 1
        status_sql = ""
        if filters.status is not None:
            status_sql = f"WHERE derived_status = ${idx}"
            values.append(filters.status.value)
            idx += 1
        where_sql = " AND ".join(where)
        joined_sql = f"""
            SELECT e.*,
                   CASE WHEN j.id IS NULL THEN NULL ELSE to_jsonb(j) END AS latest_job,
                   {_DERIVED_STATUS_SQL} AS derived_status
            FROM webhook_events e
            LEFT JOIN LATERAL (
                SELECT *
                FROM jobs
                WHERE payload ->> 'webhook_event_id' = e.id::text
                ORDER BY created_at DESC
                LIMIT 1
            ) j ON true
            WHERE {where_sql}
        """
        query = f"""
            WITH joined AS ({joined_sql})
            SELECT *,
                   COUNT(*) OVER() AS total_count
            FROM joined
            {status_sql}
            ORDER BY created_at DESC
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        records = await self._fetch(query, *values, limit, offset)
        items: List[WebhookEventView] = []
        total: int | None = None
        for rec in records:
            rec_dict = self._normalize(dict(rec))
            total_value = rec_dict.pop("total_count", None)
            if total_value is not None:
                total = int(total_value)
            latest = rec_dict.pop("latest_job", None)
            rec_dict.pop("derived_status", None)
            job = Job.model_validate(latest) if latest else None
            items.append(WebhookEventView.from_event(WebhookEvent.model_validate(rec_dict), job))
        if total is None:
            record = await self._fetchrow(
                f"WITH joined AS ({joined_sql}) SELECT COUNT(*) AS total FROM joined {status_sql}",
                *values,
            )
            total = int(record["total"]) if record else 0
        return items, total
