"""Tests for paginated search."""

import math

import pytest
from ninja_docstore.config import DocStoreConfig
from ninja_docstore.filters import FilterBuilder
from ninja_docstore.query import SearchOptions, SearchResult
from ninja_docstore.repository import DocumentRepository
from ninja_docstore.store import MongoStore


@pytest.fixture
async def seeded(books, database):
    for i, title in enumerate(["banana", "Apple", "cherry", "apricot", "Blueberry"]):
        await books.create({"_id": i, "title": title, "status": "open" if i % 2 == 0 else "closed"})
    return books


async def test_envelope_defaults(seeded):
    result = await seeded.search({})

    assert isinstance(result, SearchResult)
    assert (result.page, result.limit, result.count, result.pages) == (1, 50, 5, 1)
    assert len(result.data) == 5


async def test_count_reflects_filter_not_page(seeded):
    result = await seeded.search({"status": "open"}, {"limit": 2})

    assert result.count == 3
    assert result.pages == 2
    assert len(result.data) == 2


@pytest.mark.parametrize("limit", [1, 2, 3, 4, 5, 7])
async def test_pages_and_page_size_invariant(seeded, limit):
    seen = []
    first = await seeded.search({}, SearchOptions(limit=limit, sort="title"))
    assert first.pages == math.ceil(5 / limit)
    for page in range(1, first.pages + 1):
        result = await seeded.search({}, SearchOptions(limit=limit, page=page, sort="title"))
        assert len(result.data) <= limit
        seen.extend(d["_id"] for d in result.data)
    assert sorted(seen) == [0, 1, 2, 3, 4]


async def test_sort_is_locale_aware(seeded, database):
    result = await seeded.search({}, {"sort": "title"})

    assert [d["title"] for d in result.data] == ["Apple", "apricot", "banana", "Blueberry", "cherry"]
    assert database["books"].find_calls[-1]["collation"] == {"locale": "en"}


async def test_descending_sort(seeded):
    result = await seeded.search({}, {"sort": "-title", "limit": 1})
    assert result.data[0]["title"] == "cherry"


async def test_second_page(seeded):
    result = await seeded.search({}, {"sort": "title", "page": 2, "limit": 2})
    assert [d["title"] for d in result.data] == ["banana", "Blueberry"]
    assert result.page == 2


async def test_non_positive_page_starts_at_first_page(seeded):
    result = await seeded.search({}, {"sort": "title", "page": -1, "limit": 2})
    assert [d["title"] for d in result.data] == ["Apple", "apricot"]


async def test_list_only_returns_bare_documents(seeded, database):
    counts_before = database["books"].count_documents_calls
    docs = await seeded.search({"status": "closed"}, {"listOnly": True, "sort": "title"})

    assert isinstance(docs, list)
    assert [d["title"] for d in docs] == ["Apple", "apricot"]
    assert database["books"].count_documents_calls == counts_before


async def test_near_search_avoids_count_documents(books, database):
    await books.create({"_id": "a", "location": {"type": "Point", "coordinates": [0, 0]}})
    await books.create({"_id": "b"})
    built = FilterBuilder([]).build({"near": "0,0,1000"})

    result = await books.search(built.filter, {}, built.has_near)

    assert result.count == 1
    assert [d["_id"] for d in result.data] == ["a"]
    assert database["books"].count_documents_calls == 0


async def test_config_default_limit_applies(database, books_schema):
    database["books"].docs = [{"_id": i} for i in range(30)]
    repo = DocumentRepository(
        books_schema, MongoStore(database["books"]), config=DocStoreConfig(default_limit=10)
    )
    result = await repo.search()
    assert (result.limit, result.pages, len(result.data)) == (10, 3, 10)


@pytest.mark.parametrize("raw", [0, "", "abc"])
async def test_config_default_limit_replaces_unusable_limit(database, books_schema, raw):
    database["books"].docs = [{"_id": i} for i in range(30)]
    repo = DocumentRepository(
        books_schema, MongoStore(database["books"]), config=DocStoreConfig(default_limit=10)
    )
    result = await repo.search({}, {"limit": raw})
    assert (result.limit, len(result.data)) == (10, 10)


async def test_explicit_limit_beats_config(database, books_schema):
    database["books"].docs = [{"_id": i} for i in range(30)]
    repo = DocumentRepository(
        books_schema, MongoStore(database["books"]), config=DocStoreConfig(default_limit=10)
    )
    assert (await repo.search({}, {"limit": 25})).limit == 25


async def test_search_without_expander_rejects_expand(database, books_schema):
    database["books"].docs = [{"_id": 1, "author": 2}]
    repo = DocumentRepository(books_schema, MongoStore(database["books"]))
    with pytest.raises(RuntimeError, match="no expander"):
        await repo.search({}, {"expand": "author"})
