"""
NumPy-based embedding store.

This package provides an in-memory store of fixed-dimension embeddings and the
payloads attached to them, searched exactly by cosine similarity.

Features:
- Growable ``[N, D]`` embedding matrix with a parallel payload sequence
- Dimension and element-kind validation at the API boundary
- Deterministic ranking (equal scores keep insertion order)
- Dump/load of the whole store to a single msgpack buffer
- Thread-safe mutations with consistent read snapshots
- Optional memory ceiling

Usage:
    store = EmbeddingStore({'dtype': 'float32'})

    store.append([
        ([1.0, 0.0], 'a'),
        ([0.0, 1.0], 'b'),
    ])

    results = store.search([1.0, 0.0], minimum_score=0.5)

    buffer = store.dump()
    restored = EmbeddingStore.from_buffer(buffer)
"""

from .embedding_store import EmbeddingStore, create_embedding_store

__all__ = ['EmbeddingStore', 'create_embedding_store']
