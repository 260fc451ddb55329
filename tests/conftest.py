"""Shared fakes and fixtures for ninja-docstore tests."""

from __future__ import annotations

import copy
import re
from types import SimpleNamespace
from typing import Any

import pytest
from bson import ObjectId
from ninja_docstore.cache import DocumentCache
from ninja_docstore.registry import RepositoryRegistry
from ninja_docstore.schema import RelationSchema, ResourceSchema

_MISSING = object()


def _compare(value: Any, op: str, operand: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    if op == "$gt":
        return value > operand
    if op == "$gte":
        return value >= operand
    if op == "$lt":
        return value < operand
    return value <= operand


def _matches_condition(value: Any, cond: Any) -> bool:
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        for op, operand in cond.items():
            if op == "$in":
                values = value if isinstance(value, list) else [value]
                if not any(v in operand for v in values):
                    return False
            elif op == "$nin":
                values = value if isinstance(value, list) else [value]
                if any(v in operand for v in values):
                    return False
            elif op == "$ne":
                if value == operand:
                    return False
            elif op in ("$gt", "$gte", "$lt", "$lte"):
                if not _compare(value, op, operand):
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                if not isinstance(value, str) or not re.search(operand, value, flags):
                    return False
            elif op == "$options":
                continue
            elif op == "$near":
                if value is _MISSING:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(value, list) and not isinstance(cond, list):
        return cond in value
    return value == cond


def matches(doc: dict[str, Any], filter: dict[str, Any]) -> bool:
    return all(_matches_condition(doc.get(key, _MISSING), cond) for key, cond in filter.items())


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            yield doc


class FakeCollection:
    """In-memory stand-in for a Motor collection.

    Supports the subset of query operators the repository and filter builder
    emit, and records ``count_documents`` calls so near-count routing can be
    verified.
    """

    def __init__(self, name: str = "items") -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self.count_documents_calls = 0
        self.find_calls: list[dict[str, Any]] = []

    def _match(self, filter: dict[str, Any]) -> list[dict[str, Any]]:
        return [doc for doc in self.docs if matches(doc, filter)]

    async def find_one(self, filter: dict[str, Any]) -> dict[str, Any] | None:
        found = self._match(filter)
        return copy.deepcopy(found[0]) if found else None

    def find(self, filter: dict[str, Any], **kwargs: Any) -> FakeCursor:
        self.find_calls.append({"filter": filter, **kwargs})
        docs = copy.deepcopy(self._match(filter))
        collation = kwargs.get("collation")
        for field, direction in reversed(kwargs.get("sort") or []):

            def key(doc: dict[str, Any], field: str = field) -> Any:
                value = doc.get(field)
                if isinstance(value, str) and collation:
                    return (0, value.casefold())
                return (0, value) if value is not None else (-1, 0)

            docs.sort(key=key, reverse=direction == -1)
        skip = kwargs.get("skip", 0)
        limit = kwargs.get("limit", 0)
        docs = docs[skip : skip + limit] if limit else docs[skip:]
        projection = kwargs.get("projection")
        if projection:
            docs = [{k: v for k, v in doc.items() if k in projection or k == "_id"} for doc in docs]
        return FakeCursor(docs)

    async def count_documents(self, filter: dict[str, Any]) -> int:
        self.count_documents_calls += 1
        for cond in filter.values():
            if isinstance(cond, dict) and "$near" in cond:
                raise RuntimeError("$near is not allowed inside of a $match aggregation expression")
        return len(self._match(filter))

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        document.setdefault("_id", ObjectId())
        if any(doc["_id"] == document["_id"] for doc in self.docs):
            exc = RuntimeError("E11000 duplicate key error")
            exc.code = 11000  # type: ignore[attr-defined]
            raise exc
        self.docs.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def update_one(self, filter: dict[str, Any], update: dict[str, Any]) -> SimpleNamespace:
        found = self._match(filter)
        if not found:
            return SimpleNamespace(matched_count=0, modified_count=0)
        found[0].update(copy.deepcopy(update["$set"]))
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def delete_one(self, filter: dict[str, Any]) -> SimpleNamespace:
        found = self._match(filter)
        if not found:
            return SimpleNamespace(deleted_count=0)
        self.docs.remove(found[0])
        return SimpleNamespace(deleted_count=1)

    async def delete_many(self, filter: dict[str, Any]) -> SimpleNamespace:
        found = self._match(filter)
        for doc in found:
            self.docs.remove(doc)
        return SimpleNamespace(deleted_count=len(found))


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))


class FakePipeline:
    def __init__(self, client: FakeRedis) -> None:
        self._client = client
        self._queued: list[tuple[str, ...]] = []

    def delete(self, *names: str) -> FakePipeline:
        self._queued.append(names)
        return self

    async def execute(self) -> list[int]:
        self._client.pipeline_executions += 1
        return [await self._client.delete(*names) for names in self._queued]


class FakeRedis:
    """Byte-returning fake of ``redis.asyncio.Redis`` with call counters."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.get_calls = 0
        self.set_calls = 0
        self.pipeline_executions = 0

    async def get(self, name: str) -> bytes | None:
        self.get_calls += 1
        return self.data.get(name)

    async def set(self, name: str, value: str | bytes) -> bool:
        self.set_calls += 1
        self.data[name] = value.encode() if isinstance(value, str) else value
        return True

    async def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            if self.data.pop(name, None) is not None:
                removed += 1
        return removed

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def redis_client() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def books_schema() -> ResourceSchema:
    return ResourceSchema(
        name="books",
        defaults={"tags": []},
        relations=[
            RelationSchema(field="author", target="authors"),
            RelationSchema(field="reviewers", target="authors", many=True),
        ],
    )


@pytest.fixture
def authors_schema() -> ResourceSchema:
    return ResourceSchema(
        name="authors",
        relations=[RelationSchema(field="publisher", target="publishers")],
    )


@pytest.fixture
def registry(database: FakeDatabase, redis_client: FakeRedis, books_schema, authors_schema) -> RepositoryRegistry:
    reg = RepositoryRegistry(database=database, cache_client=redis_client)
    reg.register(books_schema, cache_enabled=True)
    reg.register(authors_schema, cache_enabled=True)
    reg.register(ResourceSchema(name="publishers"))
    return reg


@pytest.fixture
def books(registry: RepositoryRegistry):
    return registry.get("books")


@pytest.fixture
def books_cache(redis_client: FakeRedis) -> DocumentCache:
    return DocumentCache(redis_client, "books")
