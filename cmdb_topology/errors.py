"""Error hierarchy shared by the store, the services and the HTTP layer."""

from __future__ import annotations

from typing import Any


class CmdbError(Exception):
    """Base class for every error raised by this package."""

    code = "cmdb_error"


class ValidationError(CmdbError):
    """Malformed caller input."""

    code = "validation_error"

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class TypeCoercionError(CmdbError):
    """A record field could not be coerced to the expected type."""

    code = "type_coercion_error"

    def __init__(self, value: Any, target: str, reason: str | None = None) -> None:
        detail = f"cannot convert {value!r} ({type(value).__name__}) to {target}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)
        self.value = value
        self.target = target


class StorageError(CmdbError):
    code = "storage_error"


class StorageLookupError(StorageError, LookupError):
    """A read against the store failed."""

    code = "lookup_error"


class DuplicateIndexError(StorageError):
    """The index (same name or same keys) already exists."""

    code = "duplicate_index"

    def __init__(self, collection: str, name: str) -> None:
        super().__init__(f"index {name} already exists on {collection}")
        self.collection = collection
        self.name = name


class OperationCancelled(CmdbError):
    """The request context was cancelled or ran past its deadline."""

    code = "cancelled"


class AggregationError(CmdbError):
    """Failure inside a batched iteration, tagged with the stage it came from."""

    code = "aggregation_error"

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage}: {cause}")
        self.stage = stage
        self.cause = cause
