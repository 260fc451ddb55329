"""Merge policies for partial updates.

``hard`` overwrites every updated field.  ``soft`` appends incoming array
elements to the stored array, skipping duplicates.  ``mixed`` picks soft or hard
per field; non-array values are always overwritten.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, StrictBool

from ninja_docstore.exceptions import MergePolicyError
from ninja_docstore.values import MISSING, FieldKind, as_sequence, deep_equal, kind_of, unique_union


class MergeMode(str, Enum):
    HARD = "hard"
    SOFT = "soft"
    MIXED = "mixed"


class MergePolicy(BaseModel):
    """How array fields in an update map combine with the stored document."""

    mode: MergeMode = MergeMode.HARD
    soft_fields: dict[str, StrictBool] = Field(default_factory=dict, description="Per-field soft flags for mixed mode.")

    model_config = {"frozen": True}

    @classmethod
    def hard(cls) -> MergePolicy:
        return cls(mode=MergeMode.HARD)

    @classmethod
    def soft(cls) -> MergePolicy:
        return cls(mode=MergeMode.SOFT)

    @classmethod
    def mixed(cls, fields: Mapping[str, Any]) -> MergePolicy:
        for key, flag in fields.items():
            if not isinstance(flag, bool):
                raise MergePolicyError(
                    f"Merge flag for field '{key}' must be true or false, got {flag!r}"
                )
        return cls(mode=MergeMode.MIXED, soft_fields=dict(fields))

    @classmethod
    def parse(cls, value: Any) -> MergePolicy:
        """Build a policy from ``None``, a bool, a field -> bool mapping, or a policy."""
        if isinstance(value, MergePolicy):
            return value
        if value is None:
            return cls.hard()
        if isinstance(value, bool):
            return cls.soft() if value else cls.hard()
        if isinstance(value, Mapping):
            return cls.mixed(value)
        raise MergePolicyError(
            f"Merge policy must be a bool or a mapping of field -> bool, got {type(value).__name__}"
        )

    def is_soft(self, key: str) -> bool:
        if self.mode == MergeMode.SOFT:
            return True
        if self.mode == MergeMode.MIXED:
            return self.soft_fields.get(key) is True
        return False


class MergeResult(NamedTuple):
    document: dict[str, Any]
    touched: list[str]


def _merged_value(policy: MergePolicy, key: str, existing: Any, incoming: Any) -> Any:
    if policy.mode == MergeMode.SOFT:
        if kind_of(existing) == FieldKind.SEQUENCE:
            additions = incoming if kind_of(incoming) == FieldKind.SEQUENCE else [incoming]
            return unique_union(existing, additions)
        return incoming
    if policy.mode == MergeMode.MIXED:
        if kind_of(incoming) == FieldKind.SEQUENCE and policy.is_soft(key):
            return unique_union(as_sequence(existing), incoming)
        return incoming
    return incoming


def apply_update(
    document: Mapping[str, Any],
    update: Mapping[str, Any],
    policy: MergePolicy,
    *,
    id_field: str = "_id",
) -> MergeResult:
    """Apply *update* to a copy of *document* under *policy*.

    Returns the new document and the fields whose value actually changed, in
    update-map order.  Keys outside *update* are left alone, and *id_field* is
    never rewritten.
    """
    result = copy.deepcopy(dict(document))
    touched: list[str] = []

    for key, incoming in update.items():
        if key == id_field:
            continue
        existing = result.get(key, MISSING)
        value = _merged_value(policy, key, existing, copy.deepcopy(incoming))
        if existing is not MISSING and deep_equal(existing, value):
            continue
        result[key] = value
        touched.append(key)

    return MergeResult(result, touched)
