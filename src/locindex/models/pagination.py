"""Pagination models — Page requests and count-derived page metadata.

Results are paged by offset: page ``N`` of size ``S`` skips ``(N - 1) * S``
records. Page metadata is derived only from the total count reported by
the backend, never from the length of the returned slice.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, computed_field


class PageOptions(BaseModel):
    """A page request."""

    page: int = Field(default=1, ge=1, description="1-based page number")
    per_page: int = Field(default=10, gt=0, description="Number of results per page")

    @property
    def offset(self) -> int:
        """Zero-based number of records to skip."""
        return (self.page - 1) * self.per_page


class PaginatedResults(BaseModel):
    """Pagination metadata for one page of query results."""

    total: int = Field(ge=0, description="Total number of matching records")
    per_page: int = Field(gt=0, description="Number of results per page")
    page: int = Field(ge=1, description="Current page number")
    pages: int = Field(ge=0, description="Total number of pages")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def next_page(self) -> int | None:
        """Number of the next page, or None on the last page."""
        return self.page + 1 if self.page < self.pages else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def previous_page(self) -> int | None:
        """Number of the previous page, or None on the first page."""
        return self.page - 1 if self.page > 1 else None

    @property
    def has_next(self) -> bool:
        return self.next_page is not None

    @property
    def has_previous(self) -> bool:
        return self.previous_page is not None

    @classmethod
    def from_count(cls, options: PageOptions, total: int) -> PaginatedResults:
        """Build page metadata from a total record count and the page request.

        Args:
            options: The page request that produced the results.
            total: Total number of matching records reported by the backend.

        Returns:
            Populated pagination metadata.
        """
        pages = math.ceil(total / options.per_page) if total > 0 else 0
        return cls(total=total, per_page=options.per_page, page=options.page, pages=pages)
