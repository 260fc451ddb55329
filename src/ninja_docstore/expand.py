"""Relation expansion: replace reference ids with the documents they point at."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ninja_docstore.exceptions import ExpansionError
from ninja_docstore.query import QueryOptions, parse_expand
from ninja_docstore.schema import ResourceSchema
from ninja_docstore.values import MISSING, FieldKind, kind_of

if TYPE_CHECKING:
    from ninja_docstore.registry import RepositoryRegistry

logger = logging.getLogger(__name__)

PathTree = dict[str, "PathTree"]


def build_path_tree(paths: Iterable[str]) -> PathTree:
    """``["a", "a.b", "c"]`` -> ``{"a": {"b": {}}, "c": {}}``."""
    tree: PathTree = {}
    for path in paths:
        node = tree
        for part in path.split("."):
            if not part:
                raise ExpansionError(f"Invalid expand path {path!r}")
            node = node.setdefault(part, {})
    return tree


def _ref_key(value: Any) -> str:
    return str(value)


class Expander:
    """Resolves expand paths across resources known to a registry.

    One ``$in`` query is issued per relation per nesting level, however many
    documents are being expanded.
    """

    def __init__(self, registry: RepositoryRegistry) -> None:
        self._registry = registry

    async def expand(
        self,
        schema: ResourceSchema,
        documents: list[dict[str, Any]],
        paths: str | Iterable[str],
    ) -> list[dict[str, Any]]:
        """Return deep copies of *documents* with every path in *paths* expanded."""
        tree = build_path_tree(parse_expand(paths if isinstance(paths, str) else list(paths)))
        expanded = copy.deepcopy(documents)
        if tree and expanded:
            await self._expand_level(schema, expanded, tree)
        return expanded

    async def expand_one(self, schema: ResourceSchema, document: dict[str, Any], paths: str | Iterable[str]) -> dict[str, Any]:
        return (await self.expand(schema, [document], paths))[0]

    async def _expand_level(self, schema: ResourceSchema, documents: list[dict[str, Any]], tree: PathTree) -> None:
        for field, subtree in tree.items():
            relation = schema.relation(field)
            if relation is None:
                raise ExpansionError(f"Resource '{schema.name}' has no relation named '{field}'")

            refs: dict[str, Any] = {}
            for doc in documents:
                for ref in _references(doc.get(field, MISSING)):
                    refs.setdefault(_ref_key(ref), ref)
            if not refs:
                continue

            target_schema = self._registry.schema(relation.target)
            store = self._registry.store(relation.target)
            related = await store.find(
                QueryOptions(filter={relation.target_field: {"$in": list(refs.values())}})
            )
            if subtree:
                await self._expand_level(target_schema, related, subtree)

            index = {_ref_key(doc[relation.target_field]): doc for doc in related if relation.target_field in doc}
            missing = refs.keys() - index.keys()
            if missing:
                logger.debug("Unresolved %s references on %s.%s: %d", relation.target, schema.name, field, len(missing))

            for doc in documents:
                value = doc.get(field, MISSING)
                kind = kind_of(value)
                if kind == FieldKind.SEQUENCE:
                    doc[field] = [_resolve(item, index) for item in value]
                elif kind != FieldKind.MISSING and value is not None:
                    doc[field] = _resolve(value, index)


def _references(value: Any) -> list[Any]:
    kind = kind_of(value)
    if kind == FieldKind.MISSING or value is None:
        return []
    if kind == FieldKind.SEQUENCE:
        return [item for item in value if kind_of(item) == FieldKind.SCALAR and item is not None]
    if kind == FieldKind.SCALAR:
        return [value]
    return []


def _resolve(value: Any, index: dict[str, dict[str, Any]]) -> Any:
    if kind_of(value) != FieldKind.SCALAR or value is None:
        return value
    target = index.get(_ref_key(value))
    return copy.deepcopy(target) if target is not None else value
