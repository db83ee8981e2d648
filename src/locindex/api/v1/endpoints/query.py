"""Query endpoint — One page of records matching a query string."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from locindex.adapters.base.adapter import LibraryOfCongressDatabase
from locindex.adapters.base.exceptions import QueryError
from locindex.api.deps import get_database
from locindex.models.pagination import PageOptions, PaginatedResults
from locindex.models.query import QueryResult

logger = logging.getLogger(__name__)

router = APIRouter()


class QueryResponse(BaseModel):
    """One page of query results."""

    results: list[QueryResult] = Field(description="Records on the requested page")
    pagination: PaginatedResults = Field(description="Page metadata derived from the total match count")


@router.get(
    "/query",
    response_model=QueryResponse,
    summary="Query records",
    responses={
        422: {"description": "Validation error — missing query or invalid page parameters"},
        502: {"description": "The search backend failed or returned an unreadable response"},
    },
)
async def query(
    q: str = Query(min_length=1, description="Query string"),
    page: int = Query(default=1, ge=1, description="1-based page number"),
    per_page: int = Query(default=10, ge=1, le=100, description="Results per page"),
    database: LibraryOfCongressDatabase = Depends(get_database),
) -> QueryResponse:
    """Query the database for one page of matching records."""
    try:
        results, pagination = await database.query(q, PageOptions(page=page, per_page=per_page))
    except QueryError as e:
        logger.error("Query failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Query failed: {e!s}") from e
    return QueryResponse(results=results, pagination=pagination)
