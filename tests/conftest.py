"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import httpx
import pytest
from tenacity import wait_exponential

from locindex.adapters.elasticsearch.adapter import ElasticsearchDatabase
from locindex.adapters.elasticsearch.transport import RetryTransport
from locindex.config.settings import Settings
from tests.fakes import FakeElasticsearch, RecordingSleep


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        database_uri="elasticsearch://?endpoint=http://es.test:9200&index=loc",
    )


@pytest.fixture
def backend() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_transport(backend: FakeElasticsearch, sleeps: RecordingSleep) -> RetryTransport:
    """Retry transport over the fake backend, with deterministic backoff and no real sleeping."""
    return RetryTransport(
        httpx.MockTransport(backend),
        sleep=sleeps,
        wait=wait_exponential(multiplier=0.5, exp_base=1.5, max=60),
    )


@pytest.fixture
async def es_client(retry_transport: RetryTransport) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(base_url="http://es.test:9200", transport=retry_transport) as client:
        yield client


@pytest.fixture
async def make_database(retry_transport: RetryTransport) -> AsyncIterator[Callable[..., ElasticsearchDatabase]]:
    """Factory for databases wired to the fake backend; closes them on teardown."""
    created: list[ElasticsearchDatabase] = []

    def _make(
        uri: str = "elasticsearch://?endpoint=http://es.test:9200&index=loc", flush_interval: float = 30.0
    ) -> ElasticsearchDatabase:
        db = ElasticsearchDatabase.from_uri(uri, transport=retry_transport, flush_interval=flush_interval)
        created.append(db)
        return db

    yield _make

    for db in created:
        await db.close()
