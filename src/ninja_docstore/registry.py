"""Resource routing: maps resource names to configured repositories."""

from __future__ import annotations

from typing import Any

from ninja_docstore.cache import DocumentCache
from ninja_docstore.config import DocStoreConfig
from ninja_docstore.connections import ConnectionManager
from ninja_docstore.expand import Expander
from ninja_docstore.repository import DocumentRepository
from ninja_docstore.schema import ResourceSchema
from ninja_docstore.store import MongoStore


class RepositoryRegistry:
    """Builds and holds one :class:`DocumentRepository` per resource.

    All repositories share the registry's :class:`Expander`, so expand paths
    can cross into any registered resource.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager | None = None,
        config: DocStoreConfig | None = None,
        *,
        database: Any = None,
        cache_client: Any = None,
    ) -> None:
        self._connection_manager = connection_manager
        self._config = config or DocStoreConfig()
        self._database = database
        self._cache_client = cache_client
        self._repositories: dict[str, DocumentRepository] = {}
        self._expander = Expander(self)

    @property
    def expander(self) -> Expander:
        return self._expander

    def _get_database(self) -> Any:
        if self._database is None:
            if self._connection_manager is None:
                raise RuntimeError("RepositoryRegistry needs a database or a ConnectionManager.")
            self._database = self._connection_manager.get_mongo_database(self._config.connection_profile)
        return self._database

    def _get_cache_client(self) -> Any:
        if self._cache_client is None and self._connection_manager is not None and self._config.cache_profile:
            self._cache_client = self._connection_manager.get_redis_client(self._config.cache_profile)
        return self._cache_client

    def register(
        self,
        schema: ResourceSchema,
        *,
        cache_enabled: bool | None = None,
        store: MongoStore | None = None,
    ) -> DocumentRepository:
        """Create the repository for *schema* and make it available by name."""
        if schema.name in self._repositories:
            raise ValueError(f"Resource '{schema.name}' is already registered")
        enabled = self._config.cache_enabled if cache_enabled is None else cache_enabled

        if store is None:
            collection = self._get_database()[schema.collection]
            store = MongoStore(collection, resource=schema.name, id_field=schema.id_field)

        cache = None
        if enabled:
            client = self._get_cache_client()
            if client is None:
                raise RuntimeError(f"Caching enabled for '{schema.name}' but no cache client is configured.")
            cache = DocumentCache(client, schema.collection, id_field=schema.id_field)

        repository = DocumentRepository(
            schema,
            store,
            cache=cache,
            cache_enabled=enabled,
            expander=self._expander,
            config=self._config,
        )
        self._repositories[schema.name] = repository
        return repository

    def get(self, name: str) -> DocumentRepository:
        if name not in self._repositories:
            raise KeyError(f"Resource '{name}' not registered. Available: {list(self._repositories.keys())}")
        return self._repositories[name]

    def schema(self, name: str) -> ResourceSchema:
        return self.get(name).schema

    def store(self, name: str) -> MongoStore:
        return self.get(name).store

    def __contains__(self, name: object) -> bool:
        return name in self._repositories
