"""Document repository: CRUD and search over one resource with a write-through cache."""

from __future__ import annotations

import copy
import logging
from typing import Any, Protocol

from pydantic import BaseModel

from ninja_docstore.cache import DocumentCache, NullDocumentCache
from ninja_docstore.changelog import CREATED, compute_change_log
from ninja_docstore.config import DocStoreConfig
from ninja_docstore.merge import MergePolicy, apply_update
from ninja_docstore.query import QueryOptions, SearchOptions, SearchResult, build_query_options
from ninja_docstore.schema import ResourceSchema
from ninja_docstore.store import MongoStore

logger = logging.getLogger(__name__)

CHANGE_LOG_KEY = "changeLog"
MODIFIED_KEY = "modifieds"


class DocumentExpander(Protocol):
    async def expand(
        self, schema: ResourceSchema, documents: list[dict[str, Any]], paths: Any
    ) -> list[dict[str, Any]]: ...


class DeleteManyResult(BaseModel):
    deleted_count: int


class DocumentRepository:
    """CRUD, count and paginated search for a single resource.

    Reads are cache-first when caching is on; every write goes to the store
    first and then refreshes or invalidates the cache.  The cache only ever
    holds the canonical, unexpanded document.  Missing documents are reported
    as ``None``; store failures propagate as
    :class:`~ninja_docstore.exceptions.PersistenceError` subclasses.
    """

    def __init__(
        self,
        schema: ResourceSchema,
        store: MongoStore,
        *,
        cache: DocumentCache | NullDocumentCache | None = None,
        cache_enabled: bool | None = None,
        expander: DocumentExpander | None = None,
        config: DocStoreConfig | None = None,
    ) -> None:
        self._schema = schema
        self._store = store
        self._config = config or DocStoreConfig()
        enabled = self._config.cache_enabled if cache_enabled is None else cache_enabled
        self._cache: DocumentCache | NullDocumentCache = cache if (enabled and cache is not None) else NullDocumentCache()
        self._expander = expander

    @property
    def schema(self) -> ResourceSchema:
        return self._schema

    @property
    def store(self) -> MongoStore:
        return self._store

    @property
    def resource(self) -> str:
        return self._schema.name

    @property
    def cache_enabled(self) -> bool:
        return self._cache.enabled

    @property
    def _id_field(self) -> str:
        return self._schema.id_field

    async def _expand(self, document: dict[str, Any], expand: Any) -> dict[str, Any]:
        if not expand:
            return document
        if self._expander is None:
            raise RuntimeError(f"Repository for '{self.resource}' has no expander configured")
        return (await self._expander.expand(self._schema, [document], expand))[0]

    # -- CRUD -----------------------------------------------------------------

    async def create(self, data: dict[str, Any], *, expand: Any = None) -> dict[str, Any]:
        """Persist a new document and return it with ``changeLog = {"created": True}``."""
        doc = await self._store.insert(self._schema.prepare_new(data))
        await self._cache.set(doc)
        logger.info("Created %s %s", self.resource, doc[self._id_field])

        result = await self._expand(copy.deepcopy(doc), expand)
        result[CHANGE_LOG_KEY] = dict(CREATED)
        return result

    async def read(self, id: Any, *, expand: Any = None) -> dict[str, Any] | None:
        """Fetch one document by id, cache first.  Returns ``None`` if absent."""
        doc = await self._cache.get(id)
        if doc is not None:
            logger.debug("Cache hit for %s %s", self.resource, id)
        else:
            doc = await self._store.find_one({self._id_field: id})
            if doc is None:
                return None
            await self._cache.set(doc)
            if self._cache.enabled:
                logger.debug("Cache miss for %s %s", self.resource, id)
        return await self._expand(doc, expand)

    async def update(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        *,
        expand: Any = None,
        merge_policy: Any = None,
    ) -> dict[str, Any] | None:
        """Merge *update* into the first document matching *query*.

        *merge_policy* is ``False``/``None`` (hard), ``True`` (soft), a mapping
        of field -> bool (mixed), or a :class:`MergePolicy`.  The result carries
        ``modifieds`` and ``changeLog``; ``None`` means nothing matched.
        """
        policy = MergePolicy.parse(merge_policy)
        old = await self._store.find_one(query)
        if old is None:
            return None

        merged = apply_update(old, update, policy, id_field=self._id_field)
        doc = merged.document
        if merged.touched:
            fields = {key: doc[key] for key in merged.touched}
            fields.update(self._schema.stamp_update(doc))
            if not await self._store.update_fields(doc[self._id_field], fields):
                # Removed between the load and the write.
                await self._cache.delete(doc[self._id_field])
                logger.info("Update of %s %s found no document", self.resource, doc[self._id_field])
                return None

        change_log, modified = compute_change_log(old, doc, merged.touched)
        await self._cache.set(doc)
        logger.info("Updated %s %s: %s", self.resource, doc[self._id_field], ", ".join(modified) or "no changes")

        result = await self._expand(copy.deepcopy(doc), expand)
        result[MODIFIED_KEY] = modified
        result[CHANGE_LOG_KEY] = change_log
        return result

    async def delete(self, query: dict[str, Any]) -> bool | None:
        """Remove the first document matching *query*; ``None`` if nothing matched."""
        doc = await self._store.find_one(query)
        if doc is None:
            return None
        id = doc[self._id_field]
        await self._store.remove(id)
        await self._cache.delete(id)
        logger.info("Deleted %s %s", self.resource, id)
        return True

    async def delete_many(self, filter: dict[str, Any]) -> DeleteManyResult:
        """Delete every match and invalidate their cache entries.

        Ids are collected before the delete, and the cache is only touched when
        something was actually removed.
        """
        ids: list[Any] = []
        if self._cache.enabled:
            ids = await self._store.find_ids(filter)

        deleted = await self._store.delete_many(filter)
        if self._cache.enabled and deleted:
            await self._cache.delete_many(ids)
        logger.info("Deleted %d %s documents", deleted, self.resource)
        return DeleteManyResult(deleted_count=deleted)

    async def count(self, query: dict[str, Any]) -> int:
        return await self._store.count(query)

    # -- search ---------------------------------------------------------------

    async def search(
        self,
        filter: dict[str, Any] | None = None,
        options: SearchOptions | dict[str, Any] | None = None,
        has_near: bool = False,
    ) -> SearchResult | list[dict[str, Any]]:
        """Run a filtered, sorted, paginated search.

        Returns a :class:`SearchResult` envelope, or just the page of documents
        when ``list_only`` is set.  *has_near* switches to a count that accepts
        proximity clauses.
        """
        if options is None:
            options = SearchOptions()
        elif not isinstance(options, SearchOptions):
            options = SearchOptions.model_validate(options)
        if options.limit is None:
            options = options.model_copy(update={"limit": self._config.default_limit})

        query: QueryOptions = build_query_options(filter, options, locale=self._config.collation_locale)
        docs = await self._store.find(query)
        if query.expand and docs:
            if self._expander is None:
                raise RuntimeError(f"Repository for '{self.resource}' has no expander configured")
            docs = await self._expander.expand(self._schema, docs, query.expand)

        if options.list_only:
            return docs

        count = await self._store.count(query.filter, near=has_near)
        return SearchResult.build(page=options.page, limit=options.page_size, count=count, data=docs)
