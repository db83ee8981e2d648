"""Query result model."""

from __future__ import annotations

from pydantic import BaseModel, Field


class QueryResult(BaseModel):
    """A single record returned by a database query."""

    id: str = Field(description="Record identifier")
    label: str = Field(default="", description="Preferred label of the record")
    source: str = Field(default="", description="Source collection label")
