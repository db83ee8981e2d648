"""Bulk indexer — Concurrent, buffered writes to the Elasticsearch ``_bulk`` API.

Items added with :meth:`BulkIndexer.add` go through a bounded queue to a
fixed pool of worker tasks. Each worker buffers NDJSON actions and flushes
them in one ``_bulk`` request once the buffer reaches ``flush_bytes`` or
``flush_interval`` seconds have passed since its last flush, whichever
comes first. A full queue makes ``add()`` wait, which pushes back on the
producer.

Per-item outcomes are reported through the item's ``on_success`` and
``on_failure`` callbacks and counted in :class:`BulkIndexerStats`. Only a
failed flush during :meth:`BulkIndexer.close` is raised to the caller.

Usage::

    indexer = BulkIndexer(client, "loc", num_workers=10)
    await indexer.add(BulkIndexerItem(action="index", document_id="sh1", body=b'{"id": "sh1"}'))
    await indexer.close()
    print(indexer.stats())
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from locindex.adapters.elasticsearch.transport import ABORT_EXTENSION, RETRIES_EXTENSION

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_BYTES = 5_000_000
DEFAULT_FLUSH_INTERVAL = 30.0


class BulkIndexerError(Exception):
    """Raised when a bulk request fails as a whole."""


class BulkIndexerClosedError(BulkIndexerError):
    """Raised when adding an item to a closed or aborted indexer."""


class BulkItemError(BaseModel):
    """Error reported by Elasticsearch for a single bulk item."""

    type: str = Field(default="", description="Error type, e.g. 'mapper_parsing_exception'")
    reason: str = Field(default="", description="Human readable reason")


class BulkIndexerResponseItem(BaseModel):
    """Outcome of a single bulk item as reported by Elasticsearch."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    index: str = Field(default="", alias="_index")
    document_id: str = Field(default="", alias="_id")
    result: str = Field(default="", description="created, updated, deleted, noop or not_found")
    status: int = Field(default=0, description="HTTP status of the item")
    error: BulkItemError | None = Field(default=None)

    @property
    def failed(self) -> bool:
        return (self.error is not None and bool(self.error.type)) or self.status > 201


class BulkIndexerStats(BaseModel):
    """Counters for one bulk indexer.

    Once the indexer is closed, ``num_flushed + num_failed == num_added``
    unless the run was aborted.
    """

    num_added: int = Field(default=0, description="Items accepted by add()")
    num_flushed: int = Field(default=0, description="Items written successfully")
    num_failed: int = Field(default=0, description="Items that failed")
    num_indexed: int = Field(default=0, description="Successful 'index' actions")
    num_created: int = Field(default=0, description="Successful 'create' actions")
    num_updated: int = Field(default=0, description="Successful 'update' actions")
    num_deleted: int = Field(default=0, description="Successful 'delete' actions")
    num_requests: int = Field(default=0, description="Bulk requests sent")
    num_retried: int = Field(default=0, description="Bulk requests retried by the transport")


OnSuccess = Callable[["BulkIndexerItem", BulkIndexerResponseItem], None]
OnFailure = Callable[["BulkIndexerItem", BulkIndexerResponseItem | None, Exception | None], None]


@dataclass
class BulkIndexerItem:
    """A single bulk action.

    Attributes:
        action: Bulk action: 'index', 'create', 'update' or 'delete'.
        document_id: Document key; Elasticsearch generates one when None.
        body: Encoded JSON body (unused for 'delete').
        index: Overrides the indexer's default index.
        on_success: Called with the item and its response on success.
        on_failure: Called with the item, its response (if any) and the
            transport error (if any) on failure.
    """

    action: str
    document_id: str | None = None
    body: bytes = b""
    index: str | None = None
    on_success: OnSuccess | None = field(default=None, repr=False)
    on_failure: OnFailure | None = field(default=None, repr=False)

    def encode(self) -> bytes:
        meta: dict[str, Any] = {}
        if self.index:
            meta["_index"] = self.index
        if self.document_id is not None:
            meta["_id"] = self.document_id
        line = json.dumps({self.action: meta}).encode() + b"\n"
        if self.action != "delete":
            line += self.body.rstrip(b"\n") + b"\n"
        return line


class _Buffer:
    def __init__(self) -> None:
        self.items: list[BulkIndexerItem] = []
        self.body = bytearray()

    def add(self, item: BulkIndexerItem) -> None:
        self.items.append(item)
        self.body += item.encode()

    def __len__(self) -> int:
        return len(self.items)

    def reset(self) -> None:
        self.items = []
        self.body = bytearray()


class BulkIndexer:
    """Writes items to Elasticsearch through a pool of concurrent workers.

    Must be created inside a running event loop; the worker tasks start
    immediately.

    Args:
        client: HTTP client whose base URL points at Elasticsearch.
        index: Default index for items that do not set one.
        num_workers: Number of worker tasks (and the queue size).
        flush_bytes: Buffer size that triggers a flush.
        flush_interval: Seconds after which a non-empty buffer is flushed.
        on_error: Called with every failed bulk request.
        on_flush_start: Called before each bulk request.
        on_flush_end: Called after each bulk request.

    Raises:
        BulkIndexerError: If the configuration is invalid or no event loop
            is running.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        index: str,
        *,
        num_workers: int = 10,
        flush_bytes: int = DEFAULT_FLUSH_BYTES,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        on_error: Callable[[Exception], None] | None = None,
        on_flush_start: Callable[[], None] | None = None,
        on_flush_end: Callable[[], None] | None = None,
    ) -> None:
        if num_workers < 1:
            raise BulkIndexerError(f"num_workers must be at least 1, got {num_workers}")
        if flush_bytes < 1 or flush_interval <= 0:
            raise BulkIndexerError("flush_bytes and flush_interval must be positive")

        self._client = client
        self._index = index
        self._flush_bytes = flush_bytes
        self._flush_interval = flush_interval
        self._on_error = on_error
        self._on_flush_start = on_flush_start
        self._on_flush_end = on_flush_end

        self._stats = BulkIndexerStats()
        self._closed = False
        self._abort = asyncio.Event()
        self._queue: asyncio.Queue[BulkIndexerItem | None] = asyncio.Queue(maxsize=num_workers)

        try:
            self._workers = [
                asyncio.create_task(self._run_worker(n), name=f"bulk-indexer-worker-{n}") for n in range(num_workers)
            ]
        except RuntimeError as e:
            raise BulkIndexerError(f"Failed to start bulk indexer workers: {e}") from e

    def stats(self) -> BulkIndexerStats:
        """Return a snapshot of the indexer's counters."""
        return self._stats.model_copy()

    @property
    def closed(self) -> bool:
        return self._closed

    async def add(self, item: BulkIndexerItem) -> None:
        """Queue an item, waiting while the queue is full.

        Raises:
            BulkIndexerClosedError: If the indexer is closed or aborted.
        """
        if self._closed:
            raise BulkIndexerClosedError("bulk indexer is closed")
        await self._queue.put(item)
        self._stats.num_added += 1

    async def close(self) -> None:
        """Flush every buffered item and stop the workers.

        If the calling task is cancelled while waiting, the indexer is
        aborted before the cancellation propagates, so no worker keeps
        running after this call returns.

        Raises:
            BulkIndexerError: If a final flush request failed.
        """
        if self._closed:
            return
        self._closed = True

        try:
            for _ in self._workers:
                await self._queue.put(None)
            # asyncio.wait leaves the workers running if we are cancelled here
            await asyncio.wait(self._workers)
        except asyncio.CancelledError:
            await self.abort()
            raise

        errors = [e for e in (worker.result() for worker in self._workers) if e is not None]
        if errors:
            raise errors[0]

    async def abort(self) -> None:
        """Stop without draining.

        Queued and buffered items are discarded. Requests already sent are
        allowed to finish but are not retried, and the call returns once
        every worker has stopped.
        """
        self._closed = True
        self._abort.set()
        if all(worker.done() for worker in self._workers):
            return

        discarded = 0
        while not self._queue.empty():
            if self._queue.get_nowait() is not None:
                discarded += 1
            self._queue.task_done()
        for _ in self._workers:
            await self._queue.put(None)

        await asyncio.gather(*self._workers, return_exceptions=True)
        logger.warning("Bulk indexer aborted, %d queued items discarded", discarded)

    # ── Workers ──────────────────────────────────────────────────────────

    async def _run_worker(self, worker_id: int) -> BulkIndexerError | None:
        loop = asyncio.get_running_loop()
        buf = _Buffer()
        deadline = loop.time() + self._flush_interval

        while True:
            if loop.time() >= deadline:
                if buf and not self._abort.is_set():
                    await self._flush(worker_id, buf)
                deadline = loop.time() + self._flush_interval

            try:
                async with asyncio.timeout_at(deadline):
                    item = await self._queue.get()
            except TimeoutError:
                continue

            self._queue.task_done()

            if self._abort.is_set():
                if item is None:
                    return None
                continue

            if item is None:
                if buf:
                    return await self._flush(worker_id, buf)
                return None

            buf.add(item)
            if len(buf.body) >= self._flush_bytes:
                await self._flush(worker_id, buf)
                deadline = loop.time() + self._flush_interval

    async def _flush(self, worker_id: int, buf: _Buffer) -> BulkIndexerError | None:
        items, body = buf.items, bytes(buf.body)
        buf.reset()

        if self._on_flush_start:
            self._on_flush_start()
        try:
            self._stats.num_requests += 1
            logger.debug("Worker %d flushing %d items (%d bytes)", worker_id, len(items), len(body))
            try:
                response = await self._client.post(
                    f"/{self._index}/_bulk",
                    content=body,
                    headers={"Content-Type": "application/x-ndjson"},
                    extensions={ABORT_EXTENSION: self._abort},
                )
            except httpx.HTTPError as e:
                return self._fail_all(items, BulkIndexerError(f"flush: {e}"))

            self._stats.num_retried += response.extensions.get(RETRIES_EXTENSION, 0)

            if response.is_error:
                return self._fail_all(
                    items, BulkIndexerError(f"flush: {response.status_code} {response.reason_phrase}")
                )

            try:
                entries = response.json().get("items", [])
                outcomes = [self._parse_entry(entry) for entry in entries]
            except (ValueError, AttributeError, ValidationError) as e:
                return self._fail_all(items, BulkIndexerError(f"flush: failed to decode bulk response, {e}"))

            self._record(items, outcomes)
            return None
        finally:
            if self._on_flush_end:
                self._on_flush_end()

    @staticmethod
    def _parse_entry(entry: dict[str, Any]) -> tuple[str, BulkIndexerResponseItem]:
        (action, info), *_ = entry.items()
        return action, BulkIndexerResponseItem.model_validate(info)

    def _record(self, items: list[BulkIndexerItem], outcomes: list[tuple[str, BulkIndexerResponseItem]]) -> None:
        for n, item in enumerate(items):
            if n >= len(outcomes):
                self._stats.num_failed += 1
                if item.on_failure:
                    item.on_failure(item, None, BulkIndexerError("item missing from bulk response"))
                continue

            action, info = outcomes[n]
            if info.failed:
                self._stats.num_failed += 1
                if item.on_failure:
                    item.on_failure(item, info, None)
                continue

            self._stats.num_flushed += 1
            counter = _ACTION_COUNTERS.get(action)
            if counter:
                setattr(self._stats, counter, getattr(self._stats, counter) + 1)
            if item.on_success:
                item.on_success(item, info)

    def _fail_all(self, items: list[BulkIndexerItem], error: BulkIndexerError) -> BulkIndexerError:
        self._stats.num_failed += len(items)
        if self._on_error:
            self._on_error(error)
        for item in items:
            if item.on_failure:
                item.on_failure(item, None, error)
        return error


_ACTION_COUNTERS = {
    "index": "num_indexed",
    "create": "num_created",
    "update": "num_updated",
    "delete": "num_deleted",
}
