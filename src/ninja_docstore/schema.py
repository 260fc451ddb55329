"""Resource and relation definitions."""

from __future__ import annotations

import copy
import keyword
import re
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator, model_validator

# Valid identifier: starts with a letter, alphanumeric + underscores, max 64 chars.
_IDENTIFIER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,63}$")

CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"


def _utcnow() -> datetime:
    # Mongo stores millisecond precision; truncate so cached and stored copies match.
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


class RelationSchema(BaseModel):
    """A reference field that can be expanded into the documents it points at."""

    field: str = Field(min_length=1, description="Field holding the reference id (or list of ids).")
    target: str = Field(min_length=1, description="Resource name the reference points into.")
    many: bool = Field(default=False, description="Whether the field holds a list of references.")
    target_field: str = Field(default="_id", description="Field on the target the reference matches.")

    model_config = {"extra": "forbid"}


class ResourceSchema(BaseModel):
    """A named collection of documents sharing defaults and relations."""

    name: str = Field(min_length=1, description="Resource name.")
    collection_name: str | None = Field(default=None, description="Override for the collection name.")
    id_field: str = Field(default="_id", description="Unique identifier field.")
    defaults: dict[str, Any] = Field(default_factory=dict, description="Values applied to missing fields on create.")
    timestamps: bool = Field(default=False, description="Maintain createdAt/updatedAt.")
    relations: list[RelationSchema] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(
                f"Resource name {v!r} is not a valid identifier. "
                "Must start with a letter, contain only alphanumeric characters "
                "and underscores, and be at most 64 characters."
            )
        if keyword.iskeyword(v):
            raise ValueError(f"Resource name {v!r} is a Python reserved keyword.")
        return v

    @model_validator(mode="after")
    def validate_relations(self) -> ResourceSchema:
        seen: set[str] = set()
        for relation in self.relations:
            if relation.field in seen:
                raise ValueError(f"Resource '{self.name}' has duplicate relation on field '{relation.field}'")
            if relation.field == self.id_field:
                raise ValueError(f"Resource '{self.name}' cannot relate through its id field")
            seen.add(relation.field)
        return self

    @property
    def collection(self) -> str:
        return self.collection_name or self.name

    def relation(self, field: str) -> RelationSchema | None:
        for relation in self.relations:
            if relation.field == field:
                return relation
        return None

    def prepare_new(self, data: dict[str, Any]) -> dict[str, Any]:
        """Copy *data*, fill defaults, assign an id and stamp timestamps."""
        doc = copy.deepcopy(data)
        for key, value in self.defaults.items():
            if key not in doc:
                doc[key] = copy.deepcopy(value)
        if doc.get(self.id_field) is None:
            doc[self.id_field] = ObjectId()
        if self.timestamps:
            now = _utcnow()
            doc.setdefault(CREATED_AT, now)
            doc[UPDATED_AT] = now
        return doc

    def stamp_update(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Return the extra fields an update writes alongside the touched ones."""
        if not self.timestamps:
            return {}
        doc[UPDATED_AT] = _utcnow()
        return {UPDATED_AT: doc[UPDATED_AT]}
