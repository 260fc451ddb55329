"""Typed views over document field values.

Merge and diff code never inspects raw Python types directly; it asks
:func:`kind_of` for a :class:`FieldKind` and branches on that closed set.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any


class _Missing:
    """Sentinel for a field that is absent from a document."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class FieldKind(str, Enum):
    """Shape of a single field value."""

    MISSING = "missing"
    SCALAR = "scalar"
    OBJECT = "object"
    SEQUENCE = "sequence"


def kind_of(value: Any) -> FieldKind:
    """Classify *value*.  ``None`` is a scalar; strings and bytes are never sequences."""
    if value is MISSING:
        return FieldKind.MISSING
    if isinstance(value, Mapping):
        return FieldKind.OBJECT
    if isinstance(value, (list, tuple)):
        return FieldKind.SEQUENCE
    return FieldKind.SCALAR


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality for objects and sequences, strict equality for scalars.

    Booleans only ever equal booleans, so ``True`` and ``1`` differ even though
    Python would consider them equal.
    """
    kind_a, kind_b = kind_of(a), kind_of(b)
    if kind_a != kind_b:
        return False
    if kind_a == FieldKind.OBJECT:
        if a.keys() != b.keys():
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if kind_a == FieldKind.SEQUENCE:
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if kind_a == FieldKind.MISSING:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return bool(a == b)


def contains(items: Iterable[Any], value: Any) -> bool:
    """True when some element of *items* is deep-equal to *value*."""
    return any(deep_equal(item, value) for item in items)


def unique_union(existing: Iterable[Any], incoming: Iterable[Any]) -> list[Any]:
    """Concatenate *existing* and *incoming*, keeping the first of any deep-equal duplicates."""
    merged: list[Any] = []
    for item in [*existing, *incoming]:
        if not contains(merged, item):
            merged.append(item)
    return merged


def as_sequence(value: Any) -> list[Any]:
    """Coerce *value* to a list: absent or ``None`` -> ``[]``, scalars/objects -> ``[value]``."""
    kind = kind_of(value)
    if kind == FieldKind.MISSING or value is None:
        return []
    if kind == FieldKind.SEQUENCE:
        return list(value)
    return [value]
