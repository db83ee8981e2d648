"""Base database adapter — Abstract interface for all search backends.

Every backend must implement this interface to integrate with locindex.
The adapter is responsible for:
  1. Bulk-loading records from one or more sources into its index
  2. Translating a query string and page request into a backend search
  3. Normalizing backend hits and counts into ``QueryResult`` and
     ``PaginatedResults``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from locindex.core.monitor import ProgressMonitor
from locindex.models.pagination import PageOptions, PaginatedResults
from locindex.models.query import QueryResult
from locindex.sources.base import Source


class LibraryOfCongressDatabase(ABC):
    """Abstract base class for Library of Congress record databases.

    Instances are created through the registry from a database URI and are
    shared across many ``index()`` and ``query()`` calls. They must not be
    mutated after ``initialize()`` returns.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'elasticsearch')."""

    async def initialize(self) -> None:  # noqa: B027
        """Run one-shot setup (administrative calls, connectivity).

        Called once by the registry after construction.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the database."""

    @abstractmethod
    async def index(self, sources: Sequence[Source], monitor: ProgressMonitor) -> None:
        """Write every row of every source into the database.

        Args:
            sources: Source collections to ingest.
            monitor: Receives one signal per scheduled record.

        Raises:
            IndexingError: If the run cannot be set up or completed.
        """

    @abstractmethod
    async def query(self, q: str, options: PageOptions) -> tuple[list[QueryResult], PaginatedResults]:
        """Query the database for one page of results.

        Args:
            q: The query string.
            options: The page request.

        Returns:
            The results for the requested page and the pagination metadata.

        Raises:
            QueryError: If the backend request fails or cannot be decoded.
        """

    async def __aenter__(self) -> LibraryOfCongressDatabase:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
