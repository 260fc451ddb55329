"""Motor/MongoDB document store used by the repository."""

from __future__ import annotations

import logging
from typing import Any

from ninja_docstore.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    PersistenceError,
    QueryError,
)
from ninja_docstore.query import QueryOptions

logger = logging.getLogger(__name__)


class MongoStore:
    """Thin async wrapper over a Motor collection.

    Every driver exception is logged (type name only) and re-raised as a
    :class:`~ninja_docstore.exceptions.PersistenceError` subclass with the
    original exception chained as ``__cause__``.
    """

    def __init__(self, collection: Any, *, resource: str | None = None, id_field: str = "_id") -> None:
        self._collection = collection
        self._resource = resource or getattr(collection, "name", "document")
        self._id_field = id_field

    @property
    def resource(self) -> str:
        return self._resource

    @property
    def id_field(self) -> str:
        return self._id_field

    def _fail(self, exc: Exception, operation: str, *, read: bool) -> PersistenceError:
        name = type(exc).__name__
        if _is_duplicate_key_error(exc):
            logger.error("Mongo %s failed for %s: duplicate key", operation, self._resource)
            return DuplicateEntityError(
                entity_name=self._resource,
                operation=operation,
                detail="A document with the same key already exists.",
                cause=exc,
            )
        if _is_connection_error(exc):
            logger.error("Mongo %s connection error for %s: %s", operation, self._resource, name)
            return ConnectionFailedError(
                entity_name=self._resource,
                operation=operation,
                detail="Database connection failed.",
                cause=exc,
            )
        logger.error("Mongo %s failed for %s: %s", operation, self._resource, name)
        if read:
            return QueryError(
                entity_name=self._resource,
                operation=operation,
                detail="Query execution failed.",
                cause=exc,
            )
        return PersistenceError(
            entity_name=self._resource,
            operation=operation,
            detail="Write operation failed.",
            cause=exc,
        )

    # -- reads ----------------------------------------------------------------

    async def find_one(self, filter: dict[str, Any]) -> dict[str, Any] | None:
        try:
            doc = await self._collection.find_one(filter)
        except Exception as exc:
            raise self._fail(exc, "find_one", read=True) from exc
        return dict(doc) if doc is not None else None

    async def find(self, options: QueryOptions) -> list[dict[str, Any]]:
        """Run a find with sort, collation, skip and limit applied server-side."""
        kwargs: dict[str, Any] = {}
        if options.projection is not None:
            kwargs["projection"] = options.projection
        if options.sort:
            kwargs["sort"] = options.sort
        if options.collation is not None:
            kwargs["collation"] = options.collation
        if options.skip:
            kwargs["skip"] = options.skip
        if options.limit:
            kwargs["limit"] = options.limit
        try:
            cursor = self._collection.find(options.filter, **kwargs)
            return [dict(doc) async for doc in cursor]
        except Exception as exc:
            raise self._fail(exc, "find", read=True) from exc

    async def find_ids(self, filter: dict[str, Any]) -> list[Any]:
        docs = await self.find(QueryOptions(filter=filter, projection={self._id_field: 1}))
        return [doc[self._id_field] for doc in docs if self._id_field in doc]

    async def count(self, filter: dict[str, Any], *, near: bool = False) -> int:
        """Count documents matching *filter*.

        ``count_documents`` wraps the filter in an aggregation ``$match``, which
        the server rejects for ``$near``/``$nearSphere``.  Proximity filters are
        counted by walking an ``_id``-only cursor instead.
        """
        try:
            if not near:
                return int(await self._collection.count_documents(filter))
            total = 0
            async for _ in self._collection.find(filter, projection={self._id_field: 1}):
                total += 1
            return total
        except Exception as exc:
            raise self._fail(exc, "count", read=True) from exc

    # -- writes ---------------------------------------------------------------

    async def insert(self, document: dict[str, Any]) -> dict[str, Any]:
        try:
            result = await self._collection.insert_one(document)
        except Exception as exc:
            raise self._fail(exc, "insert", read=False) from exc
        document.setdefault(self._id_field, result.inserted_id)
        return document

    async def update_fields(self, id: Any, fields: dict[str, Any]) -> bool:
        """``$set`` only *fields* on the document with identifier *id*."""
        if not fields:
            return True
        try:
            result = await self._collection.update_one({self._id_field: id}, {"$set": fields})
        except Exception as exc:
            raise self._fail(exc, "update", read=False) from exc
        return result.matched_count > 0

    async def remove(self, id: Any) -> bool:
        try:
            result = await self._collection.delete_one({self._id_field: id})
        except Exception as exc:
            raise self._fail(exc, "remove", read=False) from exc
        return result.deleted_count > 0

    async def delete_many(self, filter: dict[str, Any]) -> int:
        try:
            result = await self._collection.delete_many(filter)
        except Exception as exc:
            raise self._fail(exc, "delete_many", read=False) from exc
        return int(result.deleted_count)


def _is_duplicate_key_error(exc: Exception) -> bool:
    """Check whether *exc* is a MongoDB duplicate-key error.

    Matches PyMongo's ``DuplicateKeyError`` by name, or any write error
    carrying code 11000.
    """
    if type(exc).__name__ == "DuplicateKeyError":
        return True
    return getattr(exc, "code", None) == 11000


def _is_connection_error(exc: Exception) -> bool:
    """Check whether *exc* indicates a connection-level failure."""
    type_names = {cls.__name__ for cls in type(exc).__mro__}
    return bool(type_names & {"ConnectionFailure", "ServerSelectionTimeoutError", "AutoReconnect", "NetworkTimeout"})
