"""Tests for the concurrent bulk indexer."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from locindex.adapters.elasticsearch.bulk import (
    BulkIndexer,
    BulkIndexerClosedError,
    BulkIndexerError,
    BulkIndexerItem,
    BulkIndexerResponseItem,
)
from locindex.adapters.elasticsearch.transport import RetryTransport
from tests.fakes import FakeElasticsearch, GatedBulk, RecordingSleep, running_bulk_workers


def item(doc_id: str, **kwargs: Any) -> BulkIndexerItem:
    body = json.dumps({"id": doc_id, "label": f"Label {doc_id}"}).encode()
    return BulkIndexerItem(action="index", document_id=doc_id, body=body, **kwargs)


# ── Encoding ─────────────────────────────────────────────────────────────────


class TestBulkIndexerItem:
    def test_encode_index(self) -> None:
        lines = item("sh1").encode().decode().splitlines()
        assert json.loads(lines[0]) == {"index": {"_id": "sh1"}}
        assert json.loads(lines[1]) == {"id": "sh1", "label": "Label sh1"}

    def test_encode_with_index_override(self) -> None:
        encoded = BulkIndexerItem(action="create", document_id="n1", body=b"{}", index="other").encode()
        assert encoded == b'{"create": {"_index": "other", "_id": "n1"}}\n{}\n'

    def test_encode_delete_has_no_body(self) -> None:
        encoded = BulkIndexerItem(action="delete", document_id="n1", body=b"{}").encode()
        assert encoded == b'{"delete": {"_id": "n1"}}\n'


class TestBulkIndexerResponseItem:
    @pytest.mark.parametrize(
        ("info", "failed"),
        [
            ({"status": 200, "result": "updated"}, False),
            ({"status": 201, "result": "created"}, False),
            ({"status": 409}, True),
            ({"status": 200, "error": {"type": "version_conflict_engine_exception"}}, True),
        ],
    )
    def test_failed(self, info: dict, failed: bool) -> None:
        assert BulkIndexerResponseItem.model_validate(info).failed is failed


# ── Indexer ──────────────────────────────────────────────────────────────────


class TestBulkIndexer:
    async def test_close_flushes_buffered_items(self, es_client: httpx.AsyncClient, backend: FakeElasticsearch) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=1)
        for n in range(3):
            await indexer.add(item(f"sh{n}"))
        await indexer.close()

        stats = indexer.stats()
        assert stats.num_added == 3
        assert stats.num_flushed == 3
        assert stats.num_indexed == 3
        assert stats.num_failed == 0
        assert stats.num_requests == 1
        assert set(backend.documents) == {"sh0", "sh1", "sh2"}
        assert backend.requests[0].url.path == "/loc/_bulk"
        assert backend.requests[0].headers["content-type"] == "application/x-ndjson"

    async def test_many_workers_flush_everything(
        self, es_client: httpx.AsyncClient, backend: FakeElasticsearch
    ) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=4)
        for n in range(50):
            await indexer.add(item(f"sh{n}"))
        await indexer.close()

        stats = indexer.stats()
        assert stats.num_flushed == 50
        assert 1 <= stats.num_requests <= 4
        assert len(backend.documents) == 50

    async def test_item_callbacks(self, es_client: httpx.AsyncClient, backend: FakeElasticsearch) -> None:
        backend.fail_ids = {"bad"}
        succeeded: list[str] = []
        failures: list[tuple[str, BulkIndexerResponseItem | None, Exception | None]] = []

        indexer = BulkIndexer(es_client, "loc", num_workers=1)
        for doc_id in ("good", "bad"):
            await indexer.add(
                item(
                    doc_id,
                    on_success=lambda i, res: succeeded.append(i.document_id),
                    on_failure=lambda i, res, err: failures.append((i.document_id, res, err)),
                )
            )
        await indexer.close()

        assert succeeded == ["good"]
        ((doc_id, res, err),) = failures
        assert doc_id == "bad"
        assert err is None
        assert res is not None
        assert res.status == 400
        assert res.error is not None
        assert res.error.type == "mapper_parsing_exception"

        stats = indexer.stats()
        assert stats.num_flushed == 1
        assert stats.num_failed == 1
        assert stats.num_flushed + stats.num_failed == stats.num_added

    async def test_reindex_replaces_documents(self, es_client: httpx.AsyncClient, backend: FakeElasticsearch) -> None:
        for _ in range(2):
            indexer = BulkIndexer(es_client, "loc", num_workers=2)
            for n in range(5):
                await indexer.add(item(f"sh{n}"))
            await indexer.close()
            assert indexer.stats().num_flushed == 5
        assert len(backend.documents) == 5

    async def test_request_failure_raised_on_close(
        self, es_client: httpx.AsyncClient, backend: FakeElasticsearch
    ) -> None:
        backend.bulk_status = 500
        errors: list[Exception] = []
        failed: list[str] = []

        indexer = BulkIndexer(es_client, "loc", num_workers=1, on_error=errors.append)
        for n in range(3):
            await indexer.add(item(f"sh{n}", on_failure=lambda i, res, err: failed.append(i.document_id)))

        with pytest.raises(BulkIndexerError, match="500"):
            await indexer.close()

        assert len(errors) == 1
        assert failed == ["sh0", "sh1", "sh2"]
        stats = indexer.stats()
        assert stats.num_failed == 3
        assert stats.num_flushed == 0

    async def test_retried_requests_counted(
        self, es_client: httpx.AsyncClient, backend: FakeElasticsearch
    ) -> None:
        backend.queued_statuses = [429, 503]
        indexer = BulkIndexer(es_client, "loc", num_workers=1)
        await indexer.add(item("sh1"))
        await indexer.close()

        stats = indexer.stats()
        assert stats.num_flushed == 1
        assert stats.num_requests == 1
        assert stats.num_retried == 2

    async def test_exhausted_retries_fail_the_flush(
        self, es_client: httpx.AsyncClient, backend: FakeElasticsearch
    ) -> None:
        backend.bulk_status = 503
        indexer = BulkIndexer(es_client, "loc", num_workers=1)
        await indexer.add(item("sh1"))

        with pytest.raises(BulkIndexerError, match="503"):
            await indexer.close()
        assert len(backend.requests_to("/_bulk")) == 5
        assert indexer.stats().num_retried == 4

    async def test_flush_bytes_triggers_flush(self, es_client: httpx.AsyncClient, backend: FakeElasticsearch) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=1, flush_bytes=1)
        for n in range(3):
            await indexer.add(item(f"sh{n}"))
        await indexer.close()

        assert indexer.stats().num_requests == 3
        assert indexer.stats().num_flushed == 3

    async def test_flush_interval_triggers_flush(
        self, es_client: httpx.AsyncClient, backend: FakeElasticsearch
    ) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=1, flush_interval=0.05)
        await indexer.add(item("sh1"))
        await asyncio.sleep(0.3)

        assert "sh1" in backend.documents
        assert indexer.stats().num_flushed == 1
        await indexer.close()
        assert indexer.stats().num_requests == 1

    async def test_flush_hooks(self, es_client: httpx.AsyncClient) -> None:
        events: list[str] = []
        indexer = BulkIndexer(
            es_client,
            "loc",
            num_workers=1,
            on_flush_start=lambda: events.append("start"),
            on_flush_end=lambda: events.append("end"),
        )
        await indexer.add(item("sh1"))
        await indexer.close()
        assert events == ["start", "end"]

    async def test_undecodable_response(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>proxy error</html>"))
        async with httpx.AsyncClient(base_url="http://es.test", transport=transport) as client:
            indexer = BulkIndexer(client, "loc", num_workers=1)
            await indexer.add(item("sh1"))
            with pytest.raises(BulkIndexerError, match="decode"):
                await indexer.close()
        assert indexer.stats().num_failed == 1

    async def test_missing_response_items_count_as_failures(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"errors": False, "items": []}))
        async with httpx.AsyncClient(base_url="http://es.test", transport=transport) as client:
            indexer = BulkIndexer(client, "loc", num_workers=1)
            await indexer.add(item("sh1"))
            await indexer.add(item("sh2"))
            await indexer.close()

        stats = indexer.stats()
        assert stats.num_failed == 2
        assert stats.num_flushed == 0

    async def test_add_after_close(self, es_client: httpx.AsyncClient) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=1)
        await indexer.close()
        assert indexer.closed
        with pytest.raises(BulkIndexerClosedError):
            await indexer.add(item("sh1"))

    async def test_close_twice(self, es_client: httpx.AsyncClient) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=2)
        await indexer.close()
        await indexer.close()

    async def test_abort_discards_buffered_items(
        self, es_client: httpx.AsyncClient, backend: FakeElasticsearch
    ) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=2)
        for n in range(6):
            await indexer.add(item(f"sh{n}"))
        await indexer.abort()

        assert indexer.closed
        assert backend.requests_to("/_bulk") == []
        assert indexer.stats().num_flushed == 0
        with pytest.raises(BulkIndexerClosedError):
            await indexer.add(item("late"))

    async def test_abort_after_close(self, es_client: httpx.AsyncClient) -> None:
        indexer = BulkIndexer(es_client, "loc", num_workers=1)
        await indexer.add(item("sh1"))
        await indexer.close()
        await indexer.abort()
        assert indexer.stats().num_flushed == 1

    async def test_cancelled_close_stops_workers(self, backend: FakeElasticsearch, sleeps: RecordingSleep) -> None:
        handler = GatedBulk(backend)
        transport = RetryTransport(httpx.MockTransport(handler), sleep=sleeps)
        async with httpx.AsyncClient(base_url="http://es.test:9200", transport=transport) as client:
            indexer = BulkIndexer(client, "loc", num_workers=1, flush_interval=0.05)
            await indexer.add(item("sh1"))
            await handler.entered.wait()
            await indexer.add(item("sh2"))

            close = asyncio.create_task(indexer.close())
            await asyncio.sleep(0.05)
            close.cancel()
            await asyncio.sleep(0.01)
            handler.gate.set()

            with pytest.raises(asyncio.CancelledError):
                await close
            assert running_bulk_workers() == []

        assert len(backend.requests_to("/_bulk")) == 1
        assert set(backend.documents) == {"sh1"}
        assert indexer.stats().num_flushed == 1

    @pytest.mark.parametrize(
        "kwargs",
        [{"num_workers": 0}, {"flush_bytes": 0}, {"flush_interval": 0}],
    )
    async def test_invalid_configuration(self, es_client: httpx.AsyncClient, kwargs: dict) -> None:
        with pytest.raises(BulkIndexerError):
            BulkIndexer(es_client, "loc", **kwargs)
