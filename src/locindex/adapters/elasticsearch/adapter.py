"""Elasticsearch database — Bulk ingestion and paginated queries (v7 API).

The database is opened from a URI such as::

    elasticsearch://?endpoint=http://localhost:9200&index=loc&workers=20&query-by=text

and talks to Elasticsearch over its REST API using ``httpx``. Every request
goes through :class:`RetryTransport`, so transient 502/503/504/429
responses are retried with exponential backoff before reaching this code.

Records are written with :class:`BulkIndexer`; each record's ``id`` is the
document key, so re-indexing a record replaces it.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from locindex.adapters.base.adapter import LibraryOfCongressDatabase
from locindex.adapters.base.exceptions import AdministrationError, IndexingError, QueryError
from locindex.adapters.elasticsearch.bulk import (
    DEFAULT_FLUSH_INTERVAL,
    BulkIndexer,
    BulkIndexerClosedError,
    BulkIndexerError,
    BulkIndexerItem,
    BulkIndexerResponseItem,
)
from locindex.adapters.elasticsearch.config import ElasticsearchOptions, QueryBy
from locindex.adapters.elasticsearch.response import SearchResponse
from locindex.adapters.elasticsearch.transport import RetryTransport
from locindex.core.monitor import ProgressMonitor
from locindex.models.document import Document
from locindex.models.pagination import PageOptions, PaginatedResults
from locindex.models.query import QueryResult
from locindex.sources.base import Source

logger = logging.getLogger(__name__)

# Fields matched by each ?query-by= mode
_QUERY_FIELDS: dict[str, str] = {
    "text": "search",
    "label": "label.keyword",
}

_INDEX_BODY: dict[str, Any] = {
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "label": {
                "type": "text",
                "copy_to": "search",
                "fields": {"keyword": {"type": "keyword"}},
            },
            "source": {"type": "keyword"},
            "search": {"type": "text"},
        }
    }
}


class ElasticsearchDatabase(LibraryOfCongressDatabase):
    """Library of Congress database backed by an Elasticsearch index.

    Args:
        options: Validated URI options.
        transport: Retrying transport used for every request. Defaults to a
            :class:`RetryTransport` over a plain HTTP transport.
        flush_interval: Seconds after which bulk writers flush buffered
            documents.
    """

    def __init__(
        self,
        options: ElasticsearchOptions,
        *,
        transport: RetryTransport | None = None,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> None:
        self._options = options
        self._flush_interval = flush_interval
        self._logger = _diagnostics_logger(options.debug)

        event_hooks: dict[str, list[Any]] = {}
        if options.debug:
            event_hooks = {"request": [self._log_request], "response": [self._log_response]}

        self._client = httpx.AsyncClient(
            base_url=options.endpoint,
            transport=transport or RetryTransport(),
            timeout=httpx.Timeout(60.0),
            event_hooks=event_hooks,
        )

    @classmethod
    def from_uri(cls, uri: str, **kwargs: Any) -> ElasticsearchDatabase:
        """Create a database from its URI.

        Raises:
            ConfigurationError: If the URI or one of its options is invalid.
        """
        return cls(ElasticsearchOptions.from_uri(uri), **kwargs)

    @property
    def name(self) -> str:
        return "elasticsearch"

    @property
    def index_name(self) -> str:
        return self._options.index

    @property
    def workers(self) -> int:
        return self._options.workers

    @property
    def query_by(self) -> QueryBy:
        return self._options.query_by

    async def initialize(self) -> None:
        """Create the index when ``?create-index=true``.

        An index that already exists is left untouched.

        Raises:
            AdministrationError: If the index cannot be created.
        """
        if not self._options.create_index:
            return

        try:
            response = await self._client.put(f"/{self._options.index}", json=_INDEX_BODY)
        except httpx.HTTPError as e:
            raise AdministrationError(f"Failed to create index, {e}") from e

        if response.is_error:
            if _error_type(response) == "resource_already_exists_exception":
                logger.info("Index %s already exists", self._options.index)
                return
            raise AdministrationError(
                f"Failed to create index, {response.status_code} {response.reason_phrase}: {response.text}"
            )
        logger.info("Created index %s", self._options.index)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    # ── Indexing ─────────────────────────────────────────────────────────

    async def index(self, sources: Sequence[Source], monitor: ProgressMonitor) -> None:
        """Bulk-index every row of every source.

        Per-document failures are logged and counted, never raised.
        Cancelling the calling task stops submitting rows and abandons
        documents that have not been sent yet.

        Raises:
            IndexingError: If the bulk indexer cannot be created, a source
                fails to iterate, or the final flush fails. In the last
                case ``stats`` holds the counters gathered so far.
        """
        try:
            indexer = BulkIndexer(
                self._client,
                self._options.index,
                num_workers=self._options.workers,
                flush_interval=self._flush_interval,
                on_error=self._on_bulk_error,
                on_flush_end=self._on_flush_end,
            )
        except BulkIndexerError as e:
            label = sources[0].label if sources else "<no sources>"
            raise IndexingError(f"Failed to create bulk indexer for {label}, {e}") from e

        try:
            for src in sources:
                await self._index_source(indexer, src, monitor)
        except BaseException:
            await indexer.abort()
            self._log_stats(indexer)
            raise

        try:
            await indexer.close()
        except BulkIndexerError as e:
            raise IndexingError(f"Failed to close indexer, {e}", stats=indexer.stats()) from e
        finally:
            self._log_stats(indexer)

    async def _index_source(self, indexer: BulkIndexer, src: Source, monitor: ProgressMonitor) -> None:
        loop = asyncio.get_running_loop()

        async def callback(row: dict[str, str]) -> None:
            doc_id = row.get("id", "")
            if not doc_id:
                logger.error("Failed to index row from %s, missing id: %r", src.label, row)
                return

            doc = Document.from_row(row, src.label)
            item = BulkIndexerItem(
                action="index",
                document_id=doc_id,
                body=doc.model_dump_json().encode(),
                on_failure=_log_item_failure,
            )

            try:
                await indexer.add(item)
            except BulkIndexerClosedError as e:
                logger.error("Failed to schedule %s, %s", doc_id, e)
                return

            loop.call_soon(_signal, monitor)

        try:
            await src.index(callback)
        except Exception as e:
            raise IndexingError(f"Failed to index {src.label}, {e}") from e

    def _on_bulk_error(self, error: Exception) -> None:
        self._logger.warning("Bulk indexer reported an error: %s", error)

    def _on_flush_end(self) -> None:
        self._logger.debug("Bulk indexer flush end")

    def _log_stats(self, indexer: BulkIndexer) -> None:
        self._logger.info("Stats %s", indexer.stats())

    # ── Query ────────────────────────────────────────────────────────────

    async def query(self, q: str, options: PageOptions) -> tuple[list[QueryResult], PaginatedResults]:
        """Run a phrase query and return one page of results.

        The query string is matched against the free-text ``search`` field
        (``?query-by=text``) or the exact ``label.keyword`` field (default).

        Raises:
            QueryError: If the request fails, Elasticsearch returns an error
                status, or the response cannot be decoded.
        """
        body = {
            "query": {"match_phrase": {_QUERY_FIELDS[self._options.query_by]: q}},
            "track_total_hits": True,
        }

        params: dict[str, int] = {"size": options.per_page}
        if options.page > 1:
            params["from"] = options.offset

        try:
            response = await self._client.post(f"/{self._options.index}/_search", params=params, json=body)
        except httpx.HTTPError as e:
            raise QueryError(f"Failed to perform query, {e}") from e

        if response.is_error:
            raise QueryError(f"Request failed with response: {response.status_code} {response.reason_phrase}")

        try:
            parsed = SearchResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise QueryError(f"Failed to decode response, {e}") from e

        hits = parsed.hits.hits
        if len(hits) > options.per_page:
            self._logger.debug("Backend returned %d hits for a page of %d", len(hits), options.per_page)
            hits = hits[: options.per_page]

        total = parsed.hits.total
        if total.relation != "eq":
            logger.warning("Total hit count %d for %r is a lower bound", total.value, q)

        results = [hit.to_result() for hit in hits]
        return results, PaginatedResults.from_count(options, total.value)

    # ── Debug logging ────────────────────────────────────────────────────

    async def _log_request(self, request: httpx.Request) -> None:
        self._logger.debug("> %s %s\n%s", request.method, request.url, request.content.decode(errors="replace"))

    async def _log_response(self, response: httpx.Response) -> None:
        await response.aread()
        self._logger.debug("< %s %s\n%s", response.status_code, response.reason_phrase, response.text)


def _diagnostics_logger(debug: bool) -> logging.Logger:
    if not debug:
        return logger

    debug_logger = logging.getLogger(f"{__name__}.debug")
    debug_logger.setLevel(logging.DEBUG)
    debug_logger.propagate = False
    if not debug_logger.handlers:
        debug_logger.addHandler(logging.StreamHandler(sys.stdout))
    return debug_logger


def _log_item_failure(item: BulkIndexerItem, res: BulkIndexerResponseItem | None, err: Exception | None) -> None:
    if err is not None:
        logger.error("Failed to index %s, %s", item.document_id, err)
    elif res is not None and res.error is not None:
        logger.error("Failed to index %s, %s: %s", item.document_id, res.error.type, res.error.reason)
    else:
        logger.error("Failed to index %s, status %s", item.document_id, res.status if res else "unknown")


def _signal(monitor: ProgressMonitor) -> None:
    try:
        monitor.signal()
    except Exception:
        logger.warning("Progress monitor failed to signal", exc_info=True)


def _error_type(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error", {}).get("type", ""))
    except (ValueError, AttributeError):
        return ""
