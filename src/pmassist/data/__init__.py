"""Project data access boundary."""

from .store import (
    ConflictError,
    DataStore,
    DataStoreError,
    Entity,
    Filter,
    InMemoryDataStore,
    RecordNotFoundError,
    StorePermissionError,
    TransientStoreError,
)

__all__ = [
    "ConflictError",
    "DataStore",
    "DataStoreError",
    "Entity",
    "Filter",
    "InMemoryDataStore",
    "RecordNotFoundError",
    "StorePermissionError",
    "TransientStoreError",
]
