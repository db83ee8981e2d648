"""Document model — The normalized unit written to a search index."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Document(BaseModel):
    """A single Library of Congress record as stored in the index.

    ``id`` doubles as the backend document key, so indexing the same
    record twice replaces the earlier copy instead of adding a second one.
    """

    id: str = Field(description="Record identifier, used as the document key")
    label: str = Field(default="", description="Preferred label of the record")
    source: str = Field(default="", description="Label of the source collection the record came from")

    @classmethod
    def from_row(cls, row: dict[str, str], source: str) -> Document:
        """Build a document from a raw source row."""
        return cls(id=row["id"], label=row.get("label", ""), source=source)
