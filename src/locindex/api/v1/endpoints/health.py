"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from locindex import __version__
from locindex.adapters.base.adapter import LibraryOfCongressDatabase
from locindex.api.deps import get_database

router = APIRouter()


class HealthResponse(BaseModel):
    """System health check response."""

    status: str = Field(description="Health status (e.g. 'healthy')")
    version: str = Field(description="locindex version")
    service: str = Field(description="Service name ('locindex')")
    database: str = Field(description="Name of the database backend")


@router.get("/health", response_model=HealthResponse, summary="System Health Check")
async def health_check(
    database: LibraryOfCongressDatabase = Depends(get_database),
) -> HealthResponse:
    """Basic health check endpoint with database info."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        service="locindex",
        database=database.name,
    )
