"""Elasticsearch backend."""

from locindex.adapters.elasticsearch.adapter import ElasticsearchDatabase
from locindex.adapters.elasticsearch.bulk import BulkIndexer, BulkIndexerItem, BulkIndexerStats
from locindex.adapters.elasticsearch.config import ElasticsearchOptions
from locindex.adapters.elasticsearch.transport import RetryTransport

__all__ = [
    "BulkIndexer",
    "BulkIndexerItem",
    "BulkIndexerStats",
    "ElasticsearchDatabase",
    "ElasticsearchOptions",
    "RetryTransport",
]
