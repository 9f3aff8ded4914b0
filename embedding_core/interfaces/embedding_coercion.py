"""
Conversion of caller-supplied embeddings into NumPy arrays.

Embeddings arrive as Python sequences or NumPy arrays. They are converted once
at the store boundary; anything that is not a non-empty 1-D vector of integers
or floats is rejected instead of being coerced silently.
"""

from typing import Optional, Sequence

import numpy as np

from .store_interface import DimensionMismatchError, ElementKindError, EmbeddingInput

# Signed integers, unsigned integers, floats.
NUMERIC_KINDS = "iuf"


def resolve_dtype(dtype) -> Optional[np.dtype]:
    """Normalize a dtype name, rejecting non-numeric kinds."""
    if dtype is None:
        return None
    try:
        resolved = np.dtype(dtype)
    except TypeError as e:
        raise ElementKindError(f"Unknown element kind: {dtype!r}") from e
    if resolved.kind not in NUMERIC_KINDS:
        raise ElementKindError(f"Element kind must be integer or float, got {resolved}")
    return resolved


def to_vector(embedding: EmbeddingInput) -> np.ndarray:
    """
    Convert a single embedding to a 1-D numeric array.

    Raises:
        ElementKindError: If the values are not integers or floats
        DimensionMismatchError: If the embedding is not a non-empty 1-D vector
    """
    try:
        vector = np.asarray(embedding)
    except (ValueError, TypeError) as e:
        raise ElementKindError(f"Embedding is not a numeric vector: {e}") from e

    if vector.dtype.kind not in NUMERIC_KINDS:
        raise ElementKindError(
            f"Embedding elements must be integers or floats, got {vector.dtype}"
        )
    if vector.ndim != 1:
        raise DimensionMismatchError(None, vector.shape)
    if vector.shape[0] == 0:
        raise DimensionMismatchError(None, 0)
    return vector


def cast_to_kind(array: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """
    Cast ``array`` to ``dtype`` if no value would change kind.

    Integers may become floats; floats never become integers. A narrowing
    cast is only applied when every value fits the target kind.

    Raises:
        ElementKindError: If the cast would change kind, wrap an integer or
            turn a finite float into an infinity
    """
    if array.dtype == dtype:
        return array
    if not np.can_cast(array.dtype, dtype, casting="same_kind"):
        raise ElementKindError(f"Cannot store {array.dtype} values in a {dtype} store")
    if np.can_cast(array.dtype, dtype, casting="safe") or array.size == 0:
        return array.astype(dtype)

    if dtype.kind in "iu":
        bounds = np.iinfo(dtype)
        low, high = int(array.min()), int(array.max())
        if low < bounds.min or high > bounds.max:
            raise ElementKindError(
                f"Values in [{low}, {high}] do not fit a {dtype} store "
                f"([{bounds.min}, {bounds.max}])"
            )
        return array.astype(dtype)

    with np.errstate(over="ignore"):
        cast = array.astype(dtype)
    if np.any(np.isfinite(array) & ~np.isfinite(cast)):
        raise ElementKindError(f"Values overflow a {dtype} store")
    return cast


def coerce_batch(
    embeddings: Sequence[EmbeddingInput],
    dimension: Optional[int] = None,
    dtype: Optional[np.dtype] = None,
) -> np.ndarray:
    """
    Stack embeddings into a ``[k, D]`` block.

    Args:
        embeddings: Embeddings to stack
        dimension: Required length, or None to take it from the first embedding
        dtype: Required element kind, or None to keep the common kind of the batch

    Returns:
        A new array that shares no memory with the inputs
    """
    vectors = [to_vector(embedding) for embedding in embeddings]

    expected = dimension if dimension else vectors[0].shape[0]
    for vector in vectors:
        if vector.shape[0] != expected:
            raise DimensionMismatchError(expected, vector.shape[0])

    block = np.stack(vectors)
    if dtype is not None:
        block = cast_to_kind(block, dtype)
    return block


def coerce_matrix(
    embeddings,
    dimension: Optional[int] = None,
    dtype: Optional[np.dtype] = None,
) -> np.ndarray:
    """
    Validate an already stacked ``[k, D]`` block of embeddings.

    The block is copied once, so later changes to ``embeddings`` do not
    reach the store.
    """
    try:
        block = np.array(embeddings)
    except (ValueError, TypeError) as e:
        raise ElementKindError(f"Embeddings are not a numeric matrix: {e}") from e

    if block.dtype.kind not in NUMERIC_KINDS:
        raise ElementKindError(
            f"Embedding elements must be integers or floats, got {block.dtype}"
        )
    if block.ndim != 2 or block.shape[1] == 0:
        raise DimensionMismatchError(dimension, block.shape)
    if dimension and block.shape[1] != dimension:
        raise DimensionMismatchError(dimension, block.shape[1])
    if dtype is not None:
        block = cast_to_kind(block, dtype)
    return block


def coerce_query(
    query: EmbeddingInput, dimension: int, dtype: np.dtype
) -> np.ndarray:
    """Shape a query embedding as a single ``[1, D]`` row of the store's kind."""
    vector = to_vector(query)
    if vector.shape[0] != dimension:
        raise DimensionMismatchError(dimension, vector.shape[0])
    return cast_to_kind(vector, dtype)[np.newaxis, :]
