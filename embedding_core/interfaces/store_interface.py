"""
Abstract interface and shared types for embedding stores.

This module defines the contract an embedding store implements, the value types
that cross its boundary (snapshots, search options and results) and the error
hierarchy raised by store operations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

import numpy as np

PayloadT = TypeVar("PayloadT")

EmbeddingInput = Union[Sequence[Union[int, float]], np.ndarray]

DEFAULT_MINIMUM_SCORE = 0.0
DEFAULT_MAXIMUM_RESULTS = 16


class MetricType(Enum):
    """Supported similarity metrics."""

    COSINE = "COSINE"


class IndexType(Enum):
    """Supported index types."""

    FLAT = "FLAT"


@dataclass(frozen=True)
class EmbeddingItem(Generic[PayloadT]):
    """An embedding paired with the payload it identifies."""

    embedding: EmbeddingInput
    payload: PayloadT


@dataclass(frozen=True)
class StoreSnapshot(Generic[PayloadT]):
    """
    Consistent, read-only view of a store at one point in time.

    ``embeddings`` is ``None`` when the store is empty; otherwise it is a
    read-only ``[N, D]`` matrix whose row ``i`` belongs to ``payloads[i]``.
    """

    embeddings: Optional[np.ndarray]
    payloads: Tuple[PayloadT, ...]

    @property
    def is_empty(self) -> bool:
        return self.embeddings is None

    @property
    def size(self) -> int:
        return len(self.payloads)

    @property
    def dimension(self) -> int:
        if self.embeddings is None:
            return 0
        return int(self.embeddings.shape[1])


@dataclass(frozen=True)
class SearchOptions:
    """
    Filters applied while walking the ranked candidates.

    Attributes:
        minimum_score: Candidates scoring below this value end the walk.
            Must lie in [-1, 1].
        maximum_results: Upper bound on the number of results. Must be >= 0.
    """

    minimum_score: float = DEFAULT_MINIMUM_SCORE
    maximum_results: int = DEFAULT_MAXIMUM_RESULTS

    def __post_init__(self):
        if isinstance(self.minimum_score, bool) or not isinstance(
            self.minimum_score, (int, float, np.integer, np.floating)
        ):
            raise InvalidSearchOptionsError(
                f"minimum_score must be a number, got {type(self.minimum_score).__name__}"
            )
        if not -1.0 <= self.minimum_score <= 1.0:
            raise InvalidSearchOptionsError(
                f"minimum_score must be between -1 and 1, got {self.minimum_score}"
            )
        if isinstance(self.maximum_results, bool) or not isinstance(
            self.maximum_results, (int, np.integer)
        ):
            raise InvalidSearchOptionsError(
                f"maximum_results must be an integer, got {type(self.maximum_results).__name__}"
            )
        if self.maximum_results < 0:
            raise InvalidSearchOptionsError(
                f"maximum_results must be >= 0, got {self.maximum_results}"
            )


@dataclass(frozen=True)
class SearchResult(Generic[PayloadT]):
    """A ranked match: cosine score and the payload of the matching row."""

    score: float
    payload: PayloadT

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "payload": self.payload}


class EmbeddingStoreInterface(ABC, Generic[PayloadT]):
    """
    Abstract base class for embedding store implementations.

    A store owns a growable matrix of embeddings and a parallel sequence of
    payloads, and keeps their lengths equal after every mutation.
    """

    @abstractmethod
    def append(
        self, items: Sequence[Union[EmbeddingItem[PayloadT], Tuple[EmbeddingInput, PayloadT]]]
    ) -> int:
        """
        Append embeddings and their payloads.

        Args:
            items: Non-empty sequence of embedding/payload pairs

        Returns:
            Number of items stored after the append
        """
        pass

    @abstractmethod
    def load(self, buffer: bytes) -> None:
        """
        Replace the whole store with the contents of a dumped buffer.

        Args:
            buffer: Bytes produced by ``dump``
        """
        pass

    @abstractmethod
    def dump(self) -> bytes:
        """
        Encode embeddings and payloads into a single buffer.

        Returns:
            Encoded buffer containing ``embeddings`` and ``data``
        """
        pass

    @abstractmethod
    def size(self) -> int:
        """Return the number of stored items."""
        pass

    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension, or 0 when it is not established yet."""
        pass

    @abstractmethod
    def snapshot(self) -> StoreSnapshot[PayloadT]:
        """Return a consistent read-only view of the current state."""
        pass

    @abstractmethod
    def search(
        self,
        query: EmbeddingInput,
        minimum_score: Optional[float] = None,
        maximum_results: Optional[int] = None,
    ) -> List[SearchResult[PayloadT]]:
        """
        Return the payloads most similar to ``query``, best first.

        Args:
            query: Query embedding
            minimum_score: Lowest score to return (store default if None)
            maximum_results: Maximum number of results (store default if None)

        Returns:
            Ranked search results
        """
        pass

    def __len__(self) -> int:
        return self.size()

    def __str__(self) -> str:
        """String representation of the store."""
        return f"{self.__class__.__name__}(size={self.size()}, dim={self.dimension()})"


class EmbeddingStoreError(Exception):
    """Base exception for embedding store related errors."""

    pass


class EmptyBatchError(EmbeddingStoreError):
    """Exception raised when an append receives no items."""

    pass


class DimensionMismatchError(EmbeddingStoreError):
    """Exception raised for dimension mismatches."""

    def __init__(self, expected: Optional[int], actual: Union[int, Tuple[int, ...]]):
        wanted = expected if expected is not None else "a non-empty 1-D vector"
        super().__init__(f"Embedding dimension mismatch: expected {wanted}, got {actual}")
        self.expected = expected
        self.actual = actual


class ElementKindError(EmbeddingStoreError):
    """Exception raised when an embedding's element kind is not compatible with the store."""

    pass


class EmptyStoreError(EmbeddingStoreError):
    """Exception raised when an operation needs data and the store has none."""

    pass


class InvalidFormatError(EmbeddingStoreError):
    """Exception raised when a decoded buffer does not have the expected shape."""

    pass


class CorruptDataError(EmbeddingStoreError):
    """Exception raised when a buffer cannot be decoded at all."""

    pass


class SerializationError(EmbeddingStoreError):
    """Exception raised when a value cannot be encoded."""

    pass


class MemoryLimitError(EmbeddingStoreError):
    """Exception raised when the embedding matrix would exceed its memory ceiling."""

    pass


class InvalidSearchOptionsError(EmbeddingStoreError, ValueError):
    """Exception raised for out-of-range search options."""

    pass
