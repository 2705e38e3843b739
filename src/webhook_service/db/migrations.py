"""SQL migration runner shared by the startup hook and ``bin/migrate.py``."""
from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Iterable

import asyncpg  # type: ignore[import-untyped]
import structlog
from aiohttp import web

from webhook_service.settings import settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIRS = (
    Path(__file__).resolve().parents[3] / "migrations",  # repository checkout
    Path("/app/migrations"),  # container image
)


def find_migrations_dir(candidates: Iterable[Path] = MIGRATIONS_DIRS) -> Path | None:
    for path in candidates:
        if path.exists():
            return path
    return None


def load_migrations(directory: Path) -> dict[str, Path]:
    migrations: dict[str, Path] = {}
    for path in sorted(directory.glob("*.sql")):
        version = path.stem
        if version in migrations:
            raise ValueError(f"Duplicate migration version detected: {version}")
        migrations[version] = path
    return migrations


async def ensure_schema_table(conn: asyncpg.Connection) -> None:
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version text PRIMARY KEY,
            checksum text NOT NULL,
            applied_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )


async def pending_migrations(
    conn: asyncpg.Connection, migrations: dict[str, Path]
) -> list[tuple[str, Path, str, str]]:
    """Return ``(version, path, sql, checksum)`` for migrations not yet applied.

    Raises ``RuntimeError`` when an applied migration file was edited afterwards.
    """
    await ensure_schema_table(conn)
    rows = await conn.fetch("SELECT version, checksum FROM schema_migrations")
    applied = {row["version"]: row["checksum"] for row in rows}
    pending = []
    for version, path in migrations.items():
        sql = path.read_text(encoding="utf-8")
        checksum = hashlib.sha256(sql.encode("utf-8")).hexdigest()
        if version in applied:
            if applied[version] != checksum:
                raise RuntimeError(
                    f"Checksum mismatch for {version}: "
                    f"{applied[version]} (db) != {checksum} (file)"
                )
            continue
        pending.append((version, path, sql, checksum))
    return pending


async def apply_pending(conn: asyncpg.Connection, pending: list[tuple[str, Path, str, str]]) -> None:
    for version, path, sql, checksum in pending:
        logger.info("Applying migration", migration=path.name)
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, checksum) VALUES ($1, $2)",
                version,
                checksum,
            )


async def _connect_with_retry(database_url: str, *, attempts: int = 5, delay: float = 2.0):
    for attempt in range(1, attempts + 1):
        try:
            return await asyncpg.connect(database_url)
        except (OSError, asyncpg.PostgresError) as exc:
            logger.warning(
                "Database connection failed",
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc),
            )
            if attempt == attempts:
                raise
            await asyncio.sleep(delay)
    return None


async def apply_migrations_on_startup(_app: web.Application) -> None:
    """aiohttp startup hook applying pending migrations."""
    migrations_dir = find_migrations_dir()
    if migrations_dir is None:
        logger.warning("Migrations directory not found, skipping", tried=[str(p) for p in MIGRATIONS_DIRS])
        return
    migrations = load_migrations(migrations_dir)
    if not migrations:
        logger.warning("No migrations found, skipping", directory=str(migrations_dir))
        return

    conn = await _connect_with_retry(str(settings.database_url))
    try:
        pending = await pending_migrations(conn, migrations)
        if not pending:
            logger.info("No pending migrations")
            return
        await apply_pending(conn, pending)
        logger.info("Migrations applied", count=len(pending))
    finally:
        await conn.close()
