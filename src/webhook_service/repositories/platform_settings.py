"""Read access to platform settings owned by the storefront admin."""
from __future__ import annotations

import json
from typing import Any

from asyncpg import Pool  # type: ignore[import-untyped]

from webhook_service.repositories.base import BaseRepository


class PlatformSettingsRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    async def get(self, key: str) -> dict[str, Any] | None:
        record = await self._fetchrow("SELECT value FROM platform_settings WHERE key = $1", key)
        if record is None:
            return None
        value = record["value"]
        return json.loads(value) if isinstance(value, str) else value
