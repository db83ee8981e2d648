"""Database-specific exceptions."""

from __future__ import annotations

from typing import Any


class DatabaseError(Exception):
    """Base exception for database adapter errors."""


class ConfigurationError(DatabaseError):
    """Raised when a database URI or one of its options is invalid."""


class AdministrationError(DatabaseError):
    """Raised when an administrative call (e.g. index creation) fails."""


class QueryError(DatabaseError):
    """Raised when a search query fails or its response cannot be decoded."""


class IndexingError(DatabaseError):
    """Raised when an ingestion run cannot be set up or completed.

    Per-document failures never raise this; they are logged and counted.

    Attributes:
        stats: Bulk indexer statistics gathered before the failure, if any.
    """

    def __init__(self, message: str, stats: Any | None = None) -> None:
        super().__init__(message)
        self.stats = stats


class UnknownDatabaseError(DatabaseError):
    """Raised when no database is registered for a URI scheme."""
