"""Helper utilities for API handlers."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from aiohttp import web

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        return None


def error_response(status: int, error: str) -> web.Response:
    return web.json_response({"ok": False, "error": error}, status=status)


def page_params(request: web.Request) -> tuple[int, int]:
    """``(page, limit)``; garbage falls back to defaults, limit is capped."""
    query = request.rel_url.query
    try:
        page = int(query.get("page", "1"))
    except ValueError:
        page = 1
    try:
        limit = int(query.get("limit", str(DEFAULT_PAGE_SIZE)))
    except ValueError:
        limit = DEFAULT_PAGE_SIZE
    return max(1, page), min(MAX_PAGE_SIZE, max(1, limit))


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse JSON body from request, raising HTTPBadRequest on invalid input."""
    try:
        data = await request.json()
    except Exception as exc:
        raise web.HTTPBadRequest(text="Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return data
