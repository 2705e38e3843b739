from __future__ import annotations

import asyncio
from pathlib import Path

import asyncpg
import pytest
from testsuite.databases.pgsql import discover

from tests.fakes import make_repositories
from webhook_service.main import create_app
from webhook_service.settings import settings

pytest_plugins = (
    "testsuite.pytest_plugin",
    "testsuite.databases.pgsql.pytest_plugin",
)

PG_SCHEMAS_PATH = Path(__file__).parent / "schemas" / "postgresql"


@pytest.fixture(scope="session")
def event_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture(scope="session")
def pgsql_local(pgsql_local_create):
    databases = discover.find_schemas(
        service_name=None,
        schema_dirs=[PG_SCHEMAS_PATH],
    )
    return pgsql_local_create(list(databases.values()))


@pytest.fixture
async def db_pool(pgsql):
    """asyncpg pool over the testsuite database, emptied before every test."""
    conninfo = pgsql["webhook_service"].conninfo
    pool = await asyncpg.create_pool(dsn=conninfo.get_uri(), max_size=10)
    try:
        yield pool
    finally:
        await pool.close()


@pytest.fixture
def repositories():
    return make_repositories()


@pytest.fixture
async def service_client(aiohttp_client, repositories):
    """Client for calling the service API backed by in-memory repositories."""
    app = create_app(repositories=repositories)
    return await aiohttp_client(app)


@pytest.fixture
def razorpay_secret(monkeypatch):
    secret = "rzp-test-secret"
    monkeypatch.setattr(settings, "razorpay_webhook_secret", secret)
    return secret


@pytest.fixture
def delhivery_secret(monkeypatch):
    secret = "dlv-test-secret"
    monkeypatch.setattr(settings, "delhivery_webhook_secret", secret)
    return secret


@pytest.fixture(autouse=True)
def no_provider_secrets(monkeypatch):
    """Start every test with signature verification unconfigured."""
    monkeypatch.setattr(settings, "razorpay_webhook_secret", "")
    monkeypatch.setattr(settings, "delhivery_webhook_secret", "")
