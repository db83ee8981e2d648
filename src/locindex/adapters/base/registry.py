"""Database Registry — Maps backend names to database factories.

A database URI names its backend in the scheme, e.g.
``elasticsearch://?endpoint=http://localhost:9200&index=loc``. The registry
resolves the scheme to a factory, builds the database and runs its one-shot
initialization. Built-in backends are registered when this module is
imported; their modules are only imported on first use.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from urllib.parse import urlsplit

from locindex.adapters.base.adapter import LibraryOfCongressDatabase
from locindex.adapters.base.exceptions import ConfigurationError, UnknownDatabaseError

logger = logging.getLogger(__name__)

DatabaseFactory = Callable[[str], LibraryOfCongressDatabase]
"""Builds an uninitialized database from its URI."""


class DatabaseRegistry:
    """Registry of database factories keyed by backend name.

    Example:
        >>> registry = DatabaseRegistry()
        >>> registry.register("elasticsearch", ElasticsearchDatabase.from_uri)
        >>> db = await registry.open("elasticsearch://?index=loc")
    """

    def __init__(self) -> None:
        self._factories: dict[str, DatabaseFactory] = {}

    def register(self, name: str, factory: DatabaseFactory) -> None:
        """Register a database factory.

        Args:
            name: Backend name, matched against the URI scheme.
            factory: Callable building a database from its URI.
        """
        if name in self._factories:
            logger.warning("Overwriting existing database registration: %s", name)
        self._factories[name] = factory
        logger.debug("Registered database: %s", name)

    def factory(self, name: str) -> DatabaseFactory:
        """Look up the factory registered under ``name``.

        Raises:
            UnknownDatabaseError: If nothing is registered under this name.
        """
        try:
            return self._factories[name]
        except KeyError:
            raise UnknownDatabaseError(
                f"Unknown database '{name}'. Available databases: {self.registered_databases}"
            ) from None

    async def open(self, uri: str) -> LibraryOfCongressDatabase:
        """Create and initialize the database described by ``uri``.

        Args:
            uri: Database URI; its scheme selects the backend.

        Returns:
            The initialized database.

        Raises:
            ConfigurationError: If the URI has no scheme or invalid options.
            UnknownDatabaseError: If the scheme is not registered.
            AdministrationError: If initialization fails.
        """
        scheme = urlsplit(uri).scheme
        if not scheme:
            raise ConfigurationError(f"Database URI has no scheme: {uri!r}")

        database = self.factory(scheme)(uri)
        try:
            await database.initialize()
        except BaseException:
            await database.close()
            raise
        logger.info("Opened %s database", database.name)
        return database

    @property
    def registered_databases(self) -> list[str]:
        """List all registered backend names."""
        return sorted(self._factories)


def _lazy_factory(module_path: str, class_name: str) -> DatabaseFactory:
    def factory(uri: str) -> LibraryOfCongressDatabase:
        module = importlib.import_module(module_path)
        return getattr(module, class_name).from_uri(uri)

    return factory


# Maps backend names to (module_path, class_name) for lazy import
_BUILTIN_DATABASES: dict[str, tuple[str, str]] = {
    "elasticsearch": ("locindex.adapters.elasticsearch.adapter", "ElasticsearchDatabase"),
    "elasticsearchv7": ("locindex.adapters.elasticsearch.adapter", "ElasticsearchDatabase"),
}

default_registry = DatabaseRegistry()

for _name, (_module_path, _class_name) in _BUILTIN_DATABASES.items():
    default_registry.register(_name, _lazy_factory(_module_path, _class_name))


def register_database(name: str, factory: DatabaseFactory) -> None:
    """Register a database factory with the default registry."""
    default_registry.register(name, factory)


async def open_database(uri: str) -> LibraryOfCongressDatabase:
    """Open a database through the default registry."""
    return await default_registry.open(uri)
