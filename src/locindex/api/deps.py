"""API dependencies — Dependency injection for FastAPI endpoints."""

from __future__ import annotations

from locindex.adapters.base.adapter import LibraryOfCongressDatabase

# Global database instance (set during application lifespan)
_database: LibraryOfCongressDatabase | None = None


def set_database(database: LibraryOfCongressDatabase | None) -> None:
    """Set the global database instance (called during app lifespan)."""
    global _database
    _database = database


def get_database() -> LibraryOfCongressDatabase:
    """Get the global database instance.

    Raises:
        RuntimeError: If no database has been opened.
    """
    if _database is None:
        raise RuntimeError("Database not initialized. Is the server running?")
    return _database
