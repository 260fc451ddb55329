"""Write-through document cache backed by Redis.

Entries are BSON extended JSON so ObjectId and datetime values survive the
round-trip.  The cache is an accelerator only: an entry that cannot be decoded
is reported as a miss and the caller falls back to the store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from bson import json_util
from bson.errors import BSONError

logger = logging.getLogger(__name__)

_JSON_OPTIONS = json_util.RELAXED_JSON_OPTIONS


@runtime_checkable
class CacheBackend(Protocol):
    """The slice of ``redis.asyncio.Redis`` the cache relies on."""

    async def get(self, name: str) -> Any: ...
    async def set(self, name: str, value: Any) -> Any: ...
    async def delete(self, *names: str) -> Any: ...
    def pipeline(self, transaction: bool = True) -> Any: ...


def serialize(document: Mapping[str, Any]) -> str:
    return json_util.dumps(document, json_options=_JSON_OPTIONS)


def deserialize(raw: str | bytes) -> dict[str, Any] | None:
    """Decode a cached entry, returning ``None`` if it is corrupt or not a document."""
    try:
        value = json_util.loads(raw, json_options=_JSON_OPTIONS)
    except (ValueError, TypeError, BSONError):
        return None
    return value if isinstance(value, dict) else None


class NullDocumentCache:
    """Stand-in used when caching is disabled; every read misses."""

    enabled = False

    async def get(self, id: Any) -> dict[str, Any] | None:
        return None

    async def set(self, document: Mapping[str, Any]) -> None:
        return None

    async def delete(self, id: Any) -> None:
        return None

    async def delete_many(self, ids: Iterable[Any]) -> None:
        return None


class DocumentCache:
    """Per-resource document cache keyed by ``resource:id``."""

    enabled = True

    def __init__(self, client: CacheBackend, resource: str, *, id_field: str = "_id") -> None:
        self._client = client
        self._resource = resource
        self._id_field = id_field

    @property
    def resource(self) -> str:
        return self._resource

    def key(self, id: Any) -> str:
        return f"{self._resource}:{id}"

    async def get(self, id: Any) -> dict[str, Any] | None:
        key = self.key(id)
        raw = await self._client.get(key)
        if raw is None:
            return None
        document = deserialize(raw)
        if document is None:
            logger.warning("Discarding unreadable cache entry %s", key)
            return None
        # Keys are stringified, so only an id of the stored type is a hit.
        if document.get(self._id_field) != id:
            return None
        return document

    async def set(self, document: Mapping[str, Any]) -> None:
        await self._client.set(self.key(document[self._id_field]), serialize(document))

    async def delete(self, id: Any) -> None:
        await self._client.delete(self.key(id))

    async def delete_many(self, ids: Iterable[Any]) -> None:
        keys = [self.key(id) for id in ids]
        if not keys:
            return
        pipe = self._client.pipeline(transaction=False)
        pipe.delete(*keys)
        await pipe.execute()
        logger.debug("Invalidated %d cache entries for %s", len(keys), self._resource)
