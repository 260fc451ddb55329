"""Ninja DocStore: cached document repositories with change-logs and merge updates."""

from ninja_docstore.cache import DocumentCache, NullDocumentCache
from ninja_docstore.changelog import ChangeLogResult, compute_change_log
from ninja_docstore.config import DocStoreConfig
from ninja_docstore.connections import ConnectionManager, ConnectionProfile, InvalidConnectionURL, redact_url
from ninja_docstore.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    ExpansionError,
    FilterError,
    MergePolicyError,
    PersistenceError,
    QueryError,
)
from ninja_docstore.expand import Expander
from ninja_docstore.filters import BuiltFilter, FilterBuilder
from ninja_docstore.merge import MergeMode, MergePolicy, MergeResult, apply_update
from ninja_docstore.query import QueryOptions, SearchOptions, SearchResult, build_query_options
from ninja_docstore.registry import RepositoryRegistry
from ninja_docstore.repository import DeleteManyResult, DocumentRepository
from ninja_docstore.schema import RelationSchema, ResourceSchema
from ninja_docstore.store import MongoStore
from ninja_docstore.values import FieldKind, deep_equal, kind_of, unique_union

__all__ = [
    "BuiltFilter",
    "ChangeLogResult",
    "ConnectionFailedError",
    "ConnectionManager",
    "ConnectionProfile",
    "DeleteManyResult",
    "DocStoreConfig",
    "DocumentCache",
    "DocumentRepository",
    "DuplicateEntityError",
    "Expander",
    "ExpansionError",
    "FieldKind",
    "FilterBuilder",
    "FilterError",
    "InvalidConnectionURL",
    "MergeMode",
    "MergePolicy",
    "MergePolicyError",
    "MergeResult",
    "MongoStore",
    "NullDocumentCache",
    "PersistenceError",
    "QueryError",
    "QueryOptions",
    "RelationSchema",
    "RepositoryRegistry",
    "ResourceSchema",
    "SearchOptions",
    "SearchResult",
    "apply_update",
    "build_query_options",
    "compute_change_log",
    "deep_equal",
    "kind_of",
    "redact_url",
    "unique_union",
]
