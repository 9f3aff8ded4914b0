"""
Interfaces, value types and errors shared by store components.
"""

from .store_interface import (
    EmbeddingStoreInterface,
    EmbeddingItem,
    EmbeddingInput,
    PayloadT,
    StoreSnapshot,
    SearchOptions,
    SearchResult,
    MetricType,
    IndexType,
    DEFAULT_MINIMUM_SCORE,
    DEFAULT_MAXIMUM_RESULTS,
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
from .embedding_coercion import (
    NUMERIC_KINDS,
    resolve_dtype,
    to_vector,
    cast_to_kind,
    coerce_batch,
    coerce_matrix,
    coerce_query,
)

__all__ = [
    'EmbeddingStoreInterface',
    'EmbeddingItem',
    'EmbeddingInput',
    'PayloadT',
    'StoreSnapshot',
    'SearchOptions',
    'SearchResult',
    'MetricType',
    'IndexType',
    'DEFAULT_MINIMUM_SCORE',
    'DEFAULT_MAXIMUM_RESULTS',
    'EmbeddingStoreError',
    'EmptyBatchError',
    'DimensionMismatchError',
    'ElementKindError',
    'EmptyStoreError',
    'InvalidFormatError',
    'CorruptDataError',
    'SerializationError',
    'MemoryLimitError',
    'InvalidSearchOptionsError',
    'NUMERIC_KINDS',
    'resolve_dtype',
    'to_vector',
    'cast_to_kind',
    'coerce_batch',
    'coerce_matrix',
    'coerce_query',
]
