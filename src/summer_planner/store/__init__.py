"""
Entity store: backend interface, in-memory and REST backends, and the adapter
"""

from .adapter import COLLECTIONS, CollectionSpec, EntityStore, get_collection, row_to_record
from .backend import Filter, FilterOp, Order, StorageBackend
from .memory_backend import InMemoryBackend
from .rest_backend import RestBackend

__all__ = [
    "COLLECTIONS",
    "CollectionSpec",
    "EntityStore",
    "Filter",
    "FilterOp",
    "InMemoryBackend",
    "Order",
    "RestBackend",
    "StorageBackend",
    "get_collection",
    "row_to_record",
]
