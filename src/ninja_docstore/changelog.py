"""Change-log computation for partial updates.

A change-log maps each modified field to either ``{"from": old, "to": new}``
or, for array fields, ``{"added": [...], "removed": [...]}``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from ninja_docstore.values import MISSING, FieldKind, contains, kind_of

CREATED: dict[str, Any] = {"created": True}


class ChangeLogResult(NamedTuple):
    change_log: dict[str, Any]
    modified: list[str]


def _is_array_change(old: Any, new: Any) -> bool:
    if kind_of(new) != FieldKind.SEQUENCE:
        return False
    return kind_of(old) in (FieldKind.SEQUENCE, FieldKind.MISSING) or old is None


def diff_sequences(old: Iterable[Any], new: Iterable[Any]) -> dict[str, list[Any]]:
    """Return the elements only in *new* (``added``) and only in *old* (``removed``)."""
    old_items = list(old)
    new_items = list(new)
    return {
        "added": [item for item in new_items if not contains(old_items, item)],
        "removed": [item for item in old_items if not contains(new_items, item)],
    }


def compute_change_log(
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    touched: Iterable[str] | None,
) -> ChangeLogResult:
    """Diff *old* against *new* over the *touched* fields.

    Array fields whose added/removed sets both come out empty are dropped from
    the result and from the returned ``modified`` list: the value was rewritten
    but is element-for-element the same.
    """
    change_log: dict[str, Any] = {}
    modified: list[str] = []

    for field in touched or ():
        old_value = old.get(field, MISSING)
        new_value = new.get(field, MISSING)

        if _is_array_change(old_value, new_value):
            change = diff_sequences(old_value or [], new_value)
            if not change["added"] and not change["removed"]:
                continue
            change_log[field] = change
        else:
            change_log[field] = {
                "from": None if old_value is MISSING else old_value,
                "to": None if new_value is MISSING else new_value,
            }
        modified.append(field)

    return ChangeLogResult(change_log, modified)
