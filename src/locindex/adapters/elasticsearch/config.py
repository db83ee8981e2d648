"""Elasticsearch database URI options.

Options are read from the query string of the database URI::

    elasticsearch://?endpoint=http://localhost:9200&index=loc&workers=20&query-by=text

Empty values fall back to the defaults. Unrecognised parameters are ignored.
"""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from locindex.adapters.base.exceptions import ConfigurationError

QueryBy = Literal["text", "label"]


class ElasticsearchOptions(BaseModel):
    """Validated options for an Elasticsearch database."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    endpoint: str = Field(default="http://localhost:9200", description="Elasticsearch base URL")
    index: str = Field(default="libraryofcongress", min_length=1, description="Target index name")
    workers: int = Field(default=10, gt=0, description="Number of concurrent bulk writers")
    debug: bool = Field(default=False, description="Log requests and responses to stdout")
    query_by: QueryBy = Field(default="label", alias="query-by", description="Field queries are matched against")
    create_index: bool = Field(default=False, alias="create-index", description="Create the index on startup")

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http:// or https:// URL")
        return v.rstrip("/")

    @classmethod
    def from_uri(cls, uri: str) -> ElasticsearchOptions:
        """Parse options from a database URI.

        Args:
            uri: The database URI.

        Returns:
            The validated options.

        Raises:
            ConfigurationError: If the URI cannot be parsed or an option is invalid.
        """
        try:
            parts = urlsplit(uri)
        except ValueError as e:
            raise ConfigurationError(f"Failed to parse URI, {e}") from e

        params: dict[str, Any] = {}
        for key, value in parse_qsl(parts.query):
            params.setdefault(key, value)

        try:
            return cls.model_validate(params)
        except ValidationError as e:
            problems = "; ".join(
                f"?{'.'.join(str(p) for p in err['loc'])}= parameter: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid {problems}") from e
