"""Indexing pipeline and chat engine."""

from .indexer import Indexer, IndexStats
from .engine import ChatEngine, ChatRequestError
from .catalog import CollectionMap, ProductCatalog, QueryCache

__all__ = [
    "Indexer",
    "IndexStats",
    "ChatEngine",
    "ChatRequestError",
    "CollectionMap",
    "ProductCatalog",
    "QueryCache",
]
