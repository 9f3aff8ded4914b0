"""
In-memory embedding store backed by NumPy.

This module provides the store that owns the embedding matrix and the payloads
attached to its rows. Appends build a new matrix by concatenation; the whole
state is swapped in one step so readers always see matching rows and payloads.
"""

import logging
import time
from collections.abc import Mapping
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from embedding_core.interfaces import (
    EmbeddingStoreInterface,
    EmbeddingItem,
    EmbeddingInput,
    StoreSnapshot,
    SearchOptions,
    SearchResult,
    MetricType,
    IndexType,
    PayloadT,
    DEFAULT_MINIMUM_SCORE,
    DEFAULT_MAXIMUM_RESULTS,
    EmptyBatchError,
    DimensionMismatchError,
    ElementKindError,
    EmptyStoreError,
    InvalidFormatError,
    MemoryLimitError,
    NUMERIC_KINDS,
    resolve_dtype,
    cast_to_kind,
    coerce_batch,
    coerce_matrix,
)
from embedding_core.search import SimilaritySearch
from embedding_core.serialization import MsgpackCodec

ItemInput = Union[EmbeddingItem, Tuple[EmbeddingInput, Any], Mapping]

_EMPTY_STATE: StoreSnapshot = StoreSnapshot(embeddings=None, payloads=())


class EmbeddingStore(EmbeddingStoreInterface[PayloadT]):
    """
    NumPy implementation of the embedding store interface.

    Holds an ``[N, D]`` embedding matrix and ``N`` payloads in memory and
    answers exact cosine-similarity queries. Mutations are serialized by a
    lock and never leave a partially updated state behind.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        codec: Optional[MsgpackCodec] = None,
        searcher: Optional[SimilaritySearch] = None,
    ):
        """
        Initialize the embedding store.

        Args:
            config: Configuration dictionary with keys:
                - dtype: Element kind of stored rows (default: inferred from
                  the first append or load)
                - dimension: Required embedding dimension (default: taken from
                  the first append or load)
                - max_memory_usage: Ceiling for the matrix in MB (default: None,
                  no ceiling)
                - minimum_score: Default search threshold (default: 0.0)
                - maximum_results: Default search result count (default: 16)
                - use_single_float: Encode floats as 32-bit on dump (default: False)
            codec: Serialization codec (default: MsgpackCodec)
            searcher: Search algorithm (default: SimilaritySearch)
        """
        config = config or {}
        self.config = config
        self.logger = logging.getLogger(__name__)

        self._configured_dtype = resolve_dtype(config.get("dtype"))
        self._configured_dimension = config.get("dimension")
        if self._configured_dimension is not None and self._configured_dimension <= 0:
            raise ValueError(f"dimension must be positive, got {self._configured_dimension}")
        self.max_memory_usage = config.get("max_memory_usage")
        self.search_options = SearchOptions(
            minimum_score=config.get("minimum_score", DEFAULT_MINIMUM_SCORE),
            maximum_results=config.get("maximum_results", DEFAULT_MAXIMUM_RESULTS),
        )

        self.codec = codec or MsgpackCodec(use_single_float=config.get("use_single_float", False))
        self.searcher = searcher or SimilaritySearch()

        # Thread safety
        self._lock = Lock()

        self._state: StoreSnapshot[PayloadT] = _EMPTY_STATE
        self.created_at = time.time()
        self.updated_at = self.created_at

    @classmethod
    def from_buffer(cls, buffer: bytes, config: Optional[Dict[str, Any]] = None):
        """Create a store and load it from a dumped buffer."""
        store = cls(config)
        store.load(buffer)
        return store

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def size(self) -> int:
        return self._state.size

    def dimension(self) -> int:
        state = self._state
        if state.is_empty:
            return self._configured_dimension or 0
        return state.dimension

    @property
    def dtype(self) -> Optional[np.dtype]:
        """Element kind of stored rows, or None before it is established."""
        state = self._state
        if state.is_empty:
            return self._configured_dtype
        return state.embeddings.dtype

    @property
    def embeddings(self) -> Optional[np.ndarray]:
        """Read-only view of the embedding matrix, None when empty."""
        return self._state.embeddings

    @property
    def payloads(self) -> Tuple[PayloadT, ...]:
        return self._state.payloads

    def snapshot(self) -> StoreSnapshot[PayloadT]:
        with self._lock:
            return self._state

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def append(self, items: Sequence[ItemInput]) -> int:
        """
        Append embeddings and their payloads.

        Args:
            items: Non-empty sequence of ``EmbeddingItem`` objects,
                ``(embedding, payload)`` pairs or ``{"embedding", "data"}`` maps

        Returns:
            Number of items stored after the append

        Raises:
            EmptyBatchError: If ``items`` is empty
            DimensionMismatchError: If an embedding length differs from the
                store's dimension
            ElementKindError: If an embedding is not numeric, its kind
                cannot be stored without changing kind, or its values do not
                fit the store's kind
            MemoryLimitError: If the grown matrix would exceed the ceiling
        """
        pairs = [self._unpack_item(item) for item in items]
        if not pairs:
            raise EmptyBatchError("Cannot append an empty batch")

        embeddings = [embedding for embedding, _ in pairs]
        new_payloads = tuple(payload for _, payload in pairs)

        return self._append_block(
            lambda dimension, dtype: coerce_batch(embeddings, dimension, dtype),
            new_payloads,
        )

    def append_matrix(self, embeddings: np.ndarray, payloads: Sequence[PayloadT]) -> int:
        """
        Append a ``[k, D]`` matrix of embeddings in one step.

        Rows are validated as a block instead of one by one, which keeps
        large appends cheap.

        Args:
            embeddings: 2-D array-like, one embedding per row
            payloads: One payload per row, in row order

        Returns:
            Number of items stored after the append

        Raises:
            EmptyBatchError: If ``payloads`` is empty
            ValueError: If the payload count differs from the row count
            DimensionMismatchError: If ``embeddings`` is not 2-D or its width
                differs from the store's dimension
            ElementKindError: If the matrix is not numeric or its values do
                not fit the store's kind
            MemoryLimitError: If the grown matrix would exceed the ceiling
        """
        new_payloads = tuple(payloads)
        if not new_payloads:
            raise EmptyBatchError("Cannot append an empty batch")

        def coerce(dimension, dtype):
            block = coerce_matrix(embeddings, dimension, dtype)
            if block.shape[0] != len(new_payloads):
                raise ValueError(
                    f"Number of payloads ({len(new_payloads)}) must match number of "
                    f"embeddings ({block.shape[0]})"
                )
            return block

        return self._append_block(coerce, new_payloads)

    def _append_block(self, coerce, new_payloads: Tuple[PayloadT, ...]) -> int:
        """Coerce a block against the current state and install the grown matrix."""
        with self._lock:
            state = self._state
            if state.is_empty:
                block = coerce(self._configured_dimension, self._configured_dtype)
                self._check_memory_usage(block.shape[0], block)
                matrix = block
            else:
                block = coerce(state.dimension, state.embeddings.dtype)
                self._check_memory_usage(state.size + block.shape[0], block)
                matrix = np.concatenate([state.embeddings, block], axis=0)

            matrix.flags.writeable = False

            # The previous matrix is dropped here together with its payloads.
            self._state = StoreSnapshot(
                embeddings=matrix, payloads=state.payloads + new_payloads
            )
            self.updated_at = time.time()
            size = self._state.size

        self.logger.info(
            f"Appended {len(new_payloads)} embeddings, store now holds {size} "
            f"(dimension {matrix.shape[1]}, dtype {matrix.dtype})"
        )
        return size

    def add(self, embedding: EmbeddingInput, payload: PayloadT) -> int:
        """Append a single embedding and its payload."""
        return self.append([EmbeddingItem(embedding=embedding, payload=payload)])

    def load(self, buffer: bytes) -> None:
        """
        Replace the whole store with the contents of a dumped buffer.

        Args:
            buffer: Bytes produced by ``dump``

        Raises:
            CorruptDataError: If the buffer cannot be decoded
            InvalidFormatError: If the decoded value lacks a 2-D numeric
                ``embeddings`` array or a matching ``data`` array
        """
        decoded = self.codec.decode(buffer)
        new_state = self._state_from_decoded(decoded)

        with self._lock:
            self._state = new_state
            self.updated_at = time.time()

        self.logger.info(
            f"Loaded {new_state.size} embeddings with dimension {new_state.dimension}"
        )

    def reset(self) -> None:
        """Drop every embedding and payload."""
        with self._lock:
            dropped = self._state.size
            self._state = _EMPTY_STATE
            self.updated_at = time.time()

        self.logger.info(f"Reset store, dropped {dropped} embeddings")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def dump(self) -> bytes:
        """
        Encode embeddings and payloads into a single buffer.

        Raises:
            EmptyStoreError: If nothing has been stored yet
            SerializationError: If a payload cannot be encoded
        """
        state = self.snapshot()
        if state.is_empty:
            raise EmptyStoreError("There is no data in the store")

        buffer = self.codec.encode(
            {
                "embeddings": state.embeddings.tolist(),
                "data": list(state.payloads),
            }
        )
        self.logger.debug(f"Dumped {state.size} embeddings into {len(buffer)} bytes")
        return buffer

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
            Ranked search results; empty when the store is empty
        """
        options = SearchOptions(
            minimum_score=(
                self.search_options.minimum_score if minimum_score is None else minimum_score
            ),
            maximum_results=(
                self.search_options.maximum_results
                if maximum_results is None
                else maximum_results
            ),
        )
        return self.searcher.search(self.snapshot(), query, options)

    def info(self) -> Dict[str, Any]:
        """
        Get information about the store.

        Returns:
            Dictionary with store information
        """
        state = self.snapshot()
        dtype = self.dtype
        return {
            "num_entities": state.size,
            "dimension": self.dimension(),
            "dtype": str(dtype) if dtype is not None else None,
            "metric_type": MetricType.COSINE.value,
            "index_type": IndexType.FLAT.value,
            "memory_usage_mb": self._get_memory_usage(state) / (1024 * 1024),
            "max_memory_usage_mb": self.max_memory_usage,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def health_check(self) -> Dict[str, Any]:
        """
        Check that rows and payloads still line up.

        Returns:
            Dictionary with health status information
        """
        state = self.snapshot()
        rows = 0 if state.is_empty else state.embeddings.shape[0]
        if rows != len(state.payloads):
            return {
                "status": "unhealthy",
                "error": f"{rows} embeddings but {len(state.payloads)} payloads",
            }
        return {"status": "healthy", "store_info": self.info()}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _unpack_item(self, item: ItemInput) -> Tuple[EmbeddingInput, Any]:
        if isinstance(item, EmbeddingItem):
            return item.embedding, item.payload
        if isinstance(item, Mapping):
            if "embedding" not in item:
                raise TypeError("Item mapping must have an 'embedding' key")
            return item["embedding"], item.get("data", item.get("payload"))
        if isinstance(item, tuple) and len(item) == 2:
            return item[0], item[1]
        raise TypeError(
            f"Expected an EmbeddingItem, (embedding, payload) tuple or mapping, "
            f"got {type(item).__name__}"
        )

    def _state_from_decoded(self, decoded: Any) -> StoreSnapshot:
        """Validate a decoded buffer and build the state it describes."""
        if not isinstance(decoded, Mapping):
            raise InvalidFormatError(
                f"The buffer does not include valid data: expected a map, "
                f"got {type(decoded).__name__}"
            )
        rows = decoded.get("embeddings")
        data = decoded.get("data")
        if not isinstance(rows, (list, tuple)) or not isinstance(data, (list, tuple)):
            raise InvalidFormatError(
                "The buffer does not include valid data: 'embeddings' and 'data' "
                "must both be arrays"
            )

        if not rows and not data:
            return _EMPTY_STATE

        try:
            matrix = np.asarray(rows)
        except (ValueError, TypeError) as e:
            raise InvalidFormatError(f"'embeddings' is not a rectangular array: {e}") from e

        if matrix.ndim != 2 or matrix.shape[1] == 0:
            raise InvalidFormatError(
                f"'embeddings' must be a 2-D array with at least one column, "
                f"got shape {matrix.shape}"
            )
        if matrix.dtype.kind not in NUMERIC_KINDS:
            raise InvalidFormatError(
                f"'embeddings' must hold integers or floats, got {matrix.dtype}"
            )
        if matrix.shape[0] != len(data):
            raise InvalidFormatError(
                f"'embeddings' has {matrix.shape[0]} rows but 'data' has {len(data)} entries"
            )

        if self._configured_dimension and matrix.shape[1] != self._configured_dimension:
            raise DimensionMismatchError(self._configured_dimension, matrix.shape[1])
        if self._configured_dtype is not None:
            try:
                matrix = cast_to_kind(matrix, self._configured_dtype)
            except ElementKindError as e:
                raise InvalidFormatError(str(e)) from e

        self._check_memory_usage(matrix.shape[0], matrix)
        matrix.flags.writeable = False
        return StoreSnapshot(embeddings=matrix, payloads=tuple(data))

    def _check_memory_usage(self, rows: int, sample: np.ndarray):
        """
        Check that a matrix of ``rows`` rows shaped like ``sample`` fits the ceiling.

        Args:
            rows: Number of rows of the prospective matrix
            sample: Array with the prospective row width and element kind
        """
        if not self.max_memory_usage:
            return

        row_bytes = sample.shape[1] * sample.dtype.itemsize
        total_usage_mb = rows * row_bytes / (1024 * 1024)
        if total_usage_mb > self.max_memory_usage:
            raise MemoryLimitError(
                f"Memory limit exceeded: {total_usage_mb:.2f}MB > {self.max_memory_usage}MB"
            )

    def _get_memory_usage(self, state: StoreSnapshot) -> int:
        """Bytes held by the embedding matrix."""
        if state.is_empty:
            return 0
        return int(state.embeddings.nbytes)


def create_embedding_store(config_manager=None) -> EmbeddingStore:
    """
    Create a store configured from the application configuration.

    Args:
        config_manager: Configuration manager (global instance if None)

    Returns:
        Configured, empty embedding store
    """
    if config_manager is None:
        from embedding_core.config import get_config

        config_manager = get_config()
    return EmbeddingStore(config_manager.get_store_config())
