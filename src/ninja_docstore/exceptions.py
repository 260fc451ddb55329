"""Domain exceptions for the document store.

Motor/PyMongo driver exceptions are caught at the store boundary and re-raised
as one of the :class:`PersistenceError` subclasses; the repository lets them
through untouched.  Input and configuration mistakes are ``ValueError``
subclasses so they can be caught alongside ordinary argument errors.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base exception for all store failures.

    Attributes:
        entity_name: The resource (collection) involved.
        operation: The store operation that failed (e.g. ``"insert"``, ``"find_one"``).
        detail: A sanitised description of what went wrong.
    """

    def __init__(
        self,
        *,
        entity_name: str,
        operation: str,
        detail: str,
        cause: Exception | None = None,
    ) -> None:
        self.entity_name = entity_name
        self.operation = operation
        self.detail = detail
        msg = f"[{entity_name}] {operation} failed: {detail}"
        super().__init__(msg)
        if cause is not None:
            self.__cause__ = cause


class DuplicateEntityError(PersistenceError):
    """Raised when a write violates a uniqueness constraint."""


class ConnectionFailedError(PersistenceError):
    """Raised when the store cannot be reached."""


class QueryError(PersistenceError):
    """Raised for rejected queries: bad operators, malformed filters, planner errors."""


class MergePolicyError(ValueError):
    """Raised when a merge policy is neither a bool nor a mapping of field -> bool."""


class FilterError(ValueError):
    """Raised when request parameters cannot be turned into a store filter."""


class ExpansionError(ValueError):
    """Raised when an expand path names a relation the resource does not define."""
