"""Database adapter layer — Pluggable search backends.

Built-in backends:
  - elasticsearch / elasticsearchv7: Elasticsearch v7 API (bulk indexing,
    phrase and exact-label queries)

Implement ``LibraryOfCongressDatabase`` and register a factory with
``register_database()`` to add your own backend.
"""
