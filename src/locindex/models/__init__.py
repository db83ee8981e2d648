"""Data models shared by databases, sources and the API."""

from locindex.models.document import Document
from locindex.models.pagination import PageOptions, PaginatedResults
from locindex.models.query import QueryResult

__all__ = ["Document", "PageOptions", "PaginatedResults", "QueryResult"]
