"""Query options, search options and the paginated result envelope."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_LIMIT = 50
DEFAULT_PAGE = 1

ASCENDING = 1
DESCENDING = -1


def _coerce_int(value: Any, default: int) -> int:
    """Numeric coercion with a fallback for empty, zero or non-numeric input."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return number or default


def parse_sort(sort: str | Mapping[str, Any] | Sequence[Any] | None) -> list[tuple[str, int]]:
    """Normalise a sort spec into ``[(field, direction), ...]``.

    Accepts ``"-created,name"`` style strings, ``{"name": 1, "age": "desc"}``
    mappings, or an existing list of pairs.
    """
    if not sort:
        return []
    if isinstance(sort, str):
        keys: list[tuple[str, int]] = []
        for token in sort.replace(" ", ",").split(","):
            token = token.strip()
            if not token:
                continue
            if token[0] == "-":
                keys.append((token[1:], DESCENDING))
            else:
                keys.append((token.lstrip("+"), ASCENDING))
        return keys
    if isinstance(sort, Mapping):
        return [(field, _direction(direction)) for field, direction in sort.items()]
    return [(field, _direction(direction)) for field, direction in sort]


def _direction(value: Any) -> int:
    if isinstance(value, str):
        return DESCENDING if value.lower() in ("-1", "desc", "descending") else ASCENDING
    return DESCENDING if value == DESCENDING else ASCENDING


def parse_expand(expand: str | Sequence[str] | None) -> list[str]:
    """Split ``"author,comments.author"`` (or a list) into de-duplicated dotted paths."""
    if not expand:
        return []
    raw = expand.split(",") if isinstance(expand, str) else list(expand)
    paths: list[str] = []
    for path in raw:
        path = path.strip()
        if path and path not in paths:
            paths.append(path)
    return paths


class QueryOptions(BaseModel):
    """Everything the store needs to run one find, passed as a single value."""

    filter: dict[str, Any] = Field(default_factory=dict)
    sort: list[tuple[str, int]] = Field(default_factory=list)
    limit: int = Field(default=0, ge=0, description="0 means no limit.")
    skip: int = Field(default=0, ge=0)
    collation: dict[str, Any] | None = None
    projection: dict[str, Any] | None = None
    expand: list[str] = Field(default_factory=list)


class SearchOptions(BaseModel):
    """Caller-facing search options.

    ``page`` and ``limit`` tolerate query-string input: anything non-numeric
    or zero falls back to the default.  An unusable ``limit`` is left as
    ``None`` so the repository can apply its configured page size.
    """

    sort: str | dict[str, Any] | list[tuple[str, int]] | None = None
    page: int = DEFAULT_PAGE
    limit: int | None = None
    expand: str | list[str] | None = None
    list_only: bool = Field(default=False, alias="listOnly")

    model_config = {"populate_by_name": True}

    @field_validator("page", mode="before")
    @classmethod
    def _coerce_page(cls, v: Any) -> int:
        return _coerce_int(v, DEFAULT_PAGE)

    @field_validator("limit", mode="before")
    @classmethod
    def _coerce_limit(cls, v: Any) -> int | None:
        return abs(_coerce_int(v, 0)) or None

    @property
    def page_size(self) -> int:
        return self.limit or DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return self.page_size * (self.page - 1) if self.page > 0 else 0


def build_query_options(
    filter: Mapping[str, Any] | None,
    options: SearchOptions,
    *,
    locale: str = "en",
) -> QueryOptions:
    """Translate search options into store query options.

    Collation is only attached when sorting so that string fields order by
    *locale* rules instead of raw code points.
    """
    sort = parse_sort(options.sort)
    return QueryOptions(
        filter=dict(filter or {}),
        sort=sort,
        limit=options.page_size,
        skip=options.skip,
        collation={"locale": locale} if sort else None,
        expand=parse_expand(options.expand),
    )


class SearchResult(BaseModel):
    """One page of search results plus totals over the whole filtered set."""

    page: int
    limit: int
    count: int
    pages: int
    data: list[dict[str, Any]]

    @classmethod
    def build(cls, *, page: int, limit: int, count: int, data: list[dict[str, Any]]) -> SearchResult:
        return cls(page=page, limit=limit, count=count, pages=page_count(count, limit), data=data)


def page_count(count: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(count / limit)
