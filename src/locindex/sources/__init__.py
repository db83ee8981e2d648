"""Record sources — Producers of rows for ingestion."""

from locindex.sources.base import RowCallback, Source
from locindex.sources.csvfile import CSVSource

__all__ = ["CSVSource", "RowCallback", "Source"]
