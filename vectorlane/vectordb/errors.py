"""Exceptions raised by vector database backends."""

from __future__ import annotations


class VectorDatabaseError(Exception):
    """Base class for every error surfaced by a backend."""


class DatabaseConnectionError(VectorDatabaseError):
    """Opening the database failed. The instance is unusable afterwards."""

    def __init__(self, uri: str, cause: Exception) -> None:
        self.uri = uri
        super().__init__(f"Failed to connect to database at {uri!r}: {cause}")
        self.__cause__ = cause


class UninitializedError(VectorDatabaseError):
    """An operation ran without an open database handle."""

    def __init__(self, backend: str = "lancedb") -> None:
        self.backend = backend
        super().__init__(f"{backend} client not initialized")


class CollectionNotFoundError(VectorDatabaseError):
    """The named collection could not be opened."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"Collection '{collection}' does not exist")


class IndexCreationError(VectorDatabaseError):
    """Building the full-text index failed for a reason other than it already existing."""

    def __init__(self, collection: str, column: str, cause: Exception) -> None:
        self.collection = collection
        self.column = column
        super().__init__(f"FTS index creation on '{collection}.{column}' failed: {cause}")
        self.__cause__ = cause


class OperationError(VectorDatabaseError):
    """Wraps an engine failure with the collection and operation that hit it."""

    def __init__(self, collection: str | None, operation: str, cause: Exception) -> None:
        self.collection = collection
        self.operation = operation
        target = f" on '{collection}'" if collection else ""
        super().__init__(f"{operation}{target} failed: {cause}")
        self.__cause__ = cause
