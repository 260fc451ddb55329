"""Translate flat request parameters into store filters.

Only whitelisted fields become filter clauses.  Values may carry a leading
operator::

    status=!archived        -> {"status": {"$ne": "archived"}}
    price=>=10              -> {"price": {"$gte": 10}}
    name=^Jo                -> {"name": {"$regex": "^Jo"}}
    name=~ann               -> {"name": {"$regex": "ann", "$options": "i"}}
    tag=[a, b]              -> {"tag": {"$in": ["a", "b"]}}
    created=2024-01-01|2024-02-01  (date fields only)
    near=-73.98,40.75,500   -> {$near} on the geo field
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, NamedTuple

from ninja_docstore.exceptions import FilterError

CONTROL_KEYS: frozenset[str] = frozenset(
    {"page", "sort", "near", "limit", "expand", "search", "list_only", "listOnly"}
)

# Longest operators first so ">=" wins over ">".
_OPERATORS: tuple[tuple[str, str], ...] = (
    (">=", "$gte"),
    ("<=", "$lte"),
    (">", "$gt"),
    ("<", "$lt"),
    ("!", "$ne"),
)

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


class BuiltFilter(NamedTuple):
    filter: dict[str, Any]
    has_near: bool


def _scalar(raw: str) -> Any:
    if raw == "true":
        return True
    if raw == "false":
        return False
    if _NUMBER_RE.match(raw):
        return float(raw) if "." in raw else int(raw)
    return raw


def _parse_datetime(raw: str, field: str) -> datetime:
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise FilterError(f"Invalid date for '{field}': {raw!r}") from exc


def _value_clause(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    if raw.startswith("^") and len(raw) > 1:
        return {"$regex": f"^{re.escape(raw[1:])}"}
    if raw.startswith("$") and len(raw) > 1:
        return {"$regex": f"{re.escape(raw[1:])}$"}
    if raw.startswith("~") and len(raw) > 1:
        return {"$regex": re.escape(raw[1:]), "$options": "i"}
    for prefix, operator in _OPERATORS:
        if raw.startswith(prefix) and len(raw) > len(prefix):
            return {operator: _scalar(raw[len(prefix) :])}
    return _scalar(raw)


def _list_clause(values: Iterable[Any]) -> dict[str, Any]:
    values = list(values)
    if values and all(isinstance(v, str) and v.startswith("!") for v in values):
        return {"$nin": [_scalar(v[1:]) for v in values]}
    return {"$in": [_scalar(v) if isinstance(v, str) else v for v in values]}


def parse_near(raw: str, geo_field: str) -> dict[str, Any]:
    """Build a ``$near`` clause from ``"lng,lat[,max[,min]]"``."""
    parts = [p.strip() for p in str(raw).split(",")]
    if len(parts) < 2 or len(parts) > 4:
        raise FilterError(f"near must be 'lng,lat[,max[,min]]', got {raw!r}")
    try:
        numbers = [float(p) for p in parts]
    except ValueError as exc:
        raise FilterError(f"near must contain only numbers, got {raw!r}") from exc

    lng, lat = numbers[0], numbers[1]
    if not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise FilterError(f"near coordinates out of range: {raw!r}")

    near: dict[str, Any] = {"$geometry": {"type": "Point", "coordinates": [lng, lat]}}
    if len(numbers) > 2:
        near["$maxDistance"] = numbers[2]
    if len(numbers) > 3:
        near["$minDistance"] = numbers[3]
    return {geo_field: {"$near": near}}


class FilterBuilder:
    """Whitelisted query-parameter to filter translation for one resource."""

    def __init__(
        self,
        whitelist: Iterable[str],
        *,
        date_fields: Iterable[str] = (),
        geo_field: str = "location",
    ) -> None:
        self._date_fields = frozenset(date_fields)
        self._whitelist = frozenset(whitelist) | self._date_fields
        self._geo_field = geo_field

    def _date_range(self, field: str, raw: str) -> Any:
        if "|" not in raw:
            return _parse_datetime(raw, field)
        start, _, end = raw.partition("|")
        clause: dict[str, Any] = {}
        if start:
            clause["$gte"] = _parse_datetime(start, field)
        if end:
            clause["$lte"] = _parse_datetime(end, field)
        if not clause:
            raise FilterError(f"Empty date range for '{field}'")
        return clause

    def build(self, params: Mapping[str, Any]) -> BuiltFilter:
        query: dict[str, Any] = {}
        for key, raw in params.items():
            if key in CONTROL_KEYS or key not in self._whitelist or raw is None:
                continue
            if key in self._date_fields and isinstance(raw, str):
                query[key] = self._date_range(key, raw)
            elif isinstance(raw, (list, tuple)):
                query[key] = _list_clause(raw)
            else:
                query[key] = _value_clause(raw)

        near = params.get("near")
        if near:
            query.update(parse_near(near, self._geo_field))
        return BuiltFilter(query, bool(near))
