"""locindex — Library of Congress records in Elasticsearch, indexed in bulk and queried by page."""

__version__ = "0.1.0"
