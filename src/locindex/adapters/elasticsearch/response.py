"""Elasticsearch search response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from locindex.models.query import QueryResult


class TotalHits(BaseModel):
    """Total hit count, ``relation`` is 'gte' when the count is a lower bound."""

    value: int = Field(default=0, ge=0)
    relation: str = Field(default="eq")


class Hit(BaseModel):
    """A single search hit."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", alias="_id")
    source: dict[str, Any] = Field(default_factory=dict, alias="_source")

    def to_result(self) -> QueryResult:
        return QueryResult(
            id=str(self.source.get("id") or self.id),
            label=str(self.source.get("label", "")),
            source=str(self.source.get("source", "")),
        )


class Hits(BaseModel):
    total: TotalHits = Field(default_factory=TotalHits)
    hits: list[Hit] = Field(default_factory=list)

    @field_validator("total", mode="before")
    @classmethod
    def _parse_total(cls, v: Any) -> Any:
        # Pre-7.0 clusters report the total as a bare integer
        if isinstance(v, int):
            return {"value": v}
        return v


class SearchResponse(BaseModel):
    """Body of a ``_search`` response."""

    model_config = ConfigDict(extra="ignore")

    took: int = Field(default=0)
    hits: Hits
