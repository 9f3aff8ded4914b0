"""
Embedding Store - in-memory vector similarity search.
"""

from embedding_core.interfaces import (
    EmbeddingItem,
    SearchOptions,
    SearchResult,
    StoreSnapshot,
    EmbeddingStoreError,
    EmptyBatchError,
    DimensionMismatchError,
    ElementKindError,
    EmptyStoreError,
    InvalidFormatError,
    CorruptDataError,
    SerializationError,
    MemoryLimitError,
    InvalidSearchOptionsError,
)
from embedding_core.search import SimilaritySearch
from embedding_core.store import EmbeddingStore, create_embedding_store

__version__ = "0.1.0"

__all__ = [
    "EmbeddingStore",
    "SimilaritySearch",
    "create_embedding_store",
    "EmbeddingItem",
    "SearchOptions",
    "SearchResult",
    "StoreSnapshot",
    "EmbeddingStoreError",
    "EmptyBatchError",
    "DimensionMismatchError",
    "ElementKindError",
    "EmptyStoreError",
    "InvalidFormatError",
    "CorruptDataError",
    "SerializationError",
    "MemoryLimitError",
    "InvalidSearchOptionsError",
]
