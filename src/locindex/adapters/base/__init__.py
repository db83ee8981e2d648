"""Base database interface — Abstract classes for search backends."""

from locindex.adapters.base.adapter import LibraryOfCongressDatabase
from locindex.adapters.base.registry import DatabaseRegistry, open_database, register_database

__all__ = ["DatabaseRegistry", "LibraryOfCongressDatabase", "open_database", "register_database"]
